"""Read raw material rows out of the published KBOB workbook."""

from __future__ import annotations

import io
import unicodedata
import zipfile
from datetime import date, datetime, time
from typing import Any, Iterable

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from kbob.common.errors import SourceFormatError

# Positional layout of the KBOB "Baumaterialien / Matériaux" sheet.
COLUMN_FIELDS = (
    "id",
    "uuid",
    "name",
    "disposalId",
    "disposal",
    "density",
    "unit",
    "ubpTotal",
    "ubpProduction",
    "ubpDisposal",
    "primaryEnergyTotal",
    "primaryEnergyProductionTotal",
    "primaryEnergyProductionEnergetic",
    "primaryEnergyProductionMaterial",
    "primaryEnergyDisposal",
    "primaryEnergyRenewableTotal",
    "primaryEnergyRenewableProductionTotal",
    "primaryEnergyRenewableProductionEnergetic",
    "primaryEnergyRenewableProductionMaterial",
    "primaryEnergyRenewableDisposal",
    "primaryEnergyNonRenewableTotal",
    "primaryEnergyNonRenewableProductionTotal",
    "primaryEnergyNonRenewableProductionEnergetic",
    "primaryEnergyNonRenewableProductionMaterial",
    "primaryEnergyNonRenewableDisposal",
    "ghgTotal",
    "ghgProduction",
    "ghgDisposal",
    "biogenicCarbon",
    "nameFr",
    "disposalFr",
)
ID_COLUMN = COLUMN_FIELDS.index("id")
UUID_COLUMN = COLUMN_FIELDS.index("uuid")
NAME_COLUMN = COLUMN_FIELDS.index("name")


def _fold(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch)).lower()


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _cell(row: tuple, index: int) -> Any:
    if index >= len(row):
        return None
    value = row[index]
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    return value


def _find_sheet_name(sheet_names: Iterable[str], keywords: Iterable[str]) -> str:
    folded_keywords = [_fold(k) for k in keywords]
    for name in sheet_names:
        folded = _fold(name)
        if any(keyword in folded for keyword in folded_keywords):
            return name
    raise SourceFormatError("Materials sheet not found in workbook")


def extract_rows(rows: Iterable[tuple], header_marker: str) -> list[dict[str, Any]]:
    """Turn sheet rows into raw material rows.

    Rows before the header row are ignored. A row with a blank UUID cell and
    a name is a group heading; its name becomes ``group`` for the rows below.
    """
    marker = _fold(header_marker)
    header_seen = False
    current_group = ""
    out: list[dict[str, Any]] = []

    for row in rows:
        if not header_seen:
            first = _cell(row, ID_COLUMN)
            if first is not None and marker in _fold(str(first)):
                header_seen = True
            continue

        if all(_is_blank(value) for value in row):
            continue

        if _is_blank(_cell(row, UUID_COLUMN)):
            heading = _cell(row, NAME_COLUMN)
            if _is_blank(heading):
                heading = _cell(row, ID_COLUMN)
            if not _is_blank(heading):
                current_group = str(heading).strip()
                continue

        raw = {field: _cell(row, idx) for idx, field in enumerate(COLUMN_FIELDS)}
        for idx in range(len(COLUMN_FIELDS), len(row)):
            if not _is_blank(row[idx]):
                raw[f"column{idx + 1}"] = _cell(row, idx)
        raw["group"] = current_group
        out.append(raw)

    if not header_seen:
        raise SourceFormatError("Header row not found in materials sheet")
    return out


def parse_workbook_rows(
    content: bytes,
    *,
    sheet_keywords: Iterable[str],
    header_marker: str,
) -> list[dict[str, Any]]:
    try:
        workbook = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except (zipfile.BadZipFile, InvalidFileException, KeyError, OSError, ValueError) as exc:
        raise SourceFormatError(f"Unreadable workbook: {exc}") from exc

    try:
        sheet = workbook[_find_sheet_name(workbook.sheetnames, sheet_keywords)]
        return extract_rows(sheet.iter_rows(values_only=True), header_marker)
    finally:
        workbook.close()
