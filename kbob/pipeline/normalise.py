"""Normalise raw source rows into canonical material records."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Iterable, Mapping

from kbob.common.constants import (
    CANONICAL_FIELDS,
    METRIC_FIELDS,
    REJECT_DUPLICATE_UUID,
    REJECT_EMPTY_GROUP,
    REJECT_INVALID_FIELD,
    REJECT_INVALID_NUMBER,
    REJECT_MISSING_UUID,
)
from kbob.common.models import SCALAR_TYPES, Material, RejectedRow
from kbob.common.numbers import NumberFormatError, is_finite, parse_density, parse_number


class RowRejected(ValueError):
    def __init__(self, reason: str, detail: str) -> None:
        super().__init__(detail)
        self.reason = reason
        self.detail = detail


@dataclass(frozen=True)
class NormaliseResult:
    materials: tuple[Material, ...]
    rejected: tuple[RejectedRow, ...]

    @property
    def rejected_by_reason(self) -> dict[str, int]:
        return dict(sorted(Counter(row.reason for row in self.rejected).items()))


def _text(raw: Mapping[str, Any], field: str) -> str:
    value = raw.get(field)
    if value is None:
        return ""
    return str(value).strip()


def _metric(raw: Mapping[str, Any], field: str) -> float:
    try:
        value = parse_number(raw.get(field))
    except NumberFormatError as exc:
        raise RowRejected(REJECT_INVALID_NUMBER, f"{field}: {exc}") from exc
    if not is_finite(value):
        raise RowRejected(REJECT_INVALID_NUMBER, f"{field} must be a finite number, got {raw.get(field)!r}")
    return value


def normalise_row(raw: Any) -> Material:
    if not isinstance(raw, Mapping):
        raise RowRejected(REJECT_INVALID_FIELD, f"Row must be a mapping, got {type(raw).__name__}")

    uuid = _text(raw, "uuid")
    if not uuid:
        raise RowRejected(REJECT_MISSING_UUID, "uuid is missing")
    group = _text(raw, "group")
    if not group:
        raise RowRejected(REJECT_EMPTY_GROUP, "group is empty")

    try:
        density = parse_density(raw.get("density"))
    except NumberFormatError as exc:
        raise RowRejected(REJECT_INVALID_NUMBER, f"density: {exc}") from exc
    if density is None or not (is_finite(density.minimum) and is_finite(density.maximum)):
        raise RowRejected(REJECT_INVALID_NUMBER, f"density must be a finite number, got {raw.get('density')!r}")
    if density.minimum < 0:
        raise RowRejected(REJECT_INVALID_NUMBER, f"density must not be negative, got {raw.get('density')!r}")

    metrics = {field: _metric(raw, field) for field in METRIC_FIELDS}

    extras: dict[str, Any] = {}
    for key, value in raw.items():
        if key in CANONICAL_FIELDS:
            continue
        if not isinstance(value, SCALAR_TYPES):
            raise RowRejected(REJECT_INVALID_FIELD, f"Extra field {key!r} is not a scalar")
        extras[str(key)] = value

    return Material(
        id=_text(raw, "id"),
        uuid=uuid,
        group=group,
        name=_text(raw, "name"),
        name_fr=_text(raw, "nameFr"),
        disposal=_text(raw, "disposal"),
        density=density.value,
        unit=_text(raw, "unit"),
        ubp_total=metrics["ubpTotal"],
        ubp_production=metrics["ubpProduction"],
        ubp_disposal=metrics["ubpDisposal"],
        ghg_total=metrics["ghgTotal"],
        ghg_production=metrics["ghgProduction"],
        ghg_disposal=metrics["ghgDisposal"],
        density_min=density.minimum,
        density_max=density.maximum,
        extras=MappingProxyType(extras),
    )


def normalise_rows(raw_rows: Iterable[Any]) -> NormaliseResult:
    """Validate rows in source order.

    Invalid rows are collected with a reason code instead of failing the
    batch. When several valid rows share a uuid the last one in source order
    is kept and the earlier ones are rejected as duplicates.
    """
    accepted: list[tuple[int, Material]] = []
    rejected: list[RejectedRow] = []
    raw_by_index: dict[int, Any] = {}

    for idx, raw in enumerate(raw_rows):
        try:
            material = normalise_row(raw)
        except RowRejected as exc:
            rejected.append(RejectedRow(row_index=idx, raw_row=raw, reason=exc.reason, detail=exc.detail))
            continue
        raw_by_index[idx] = raw
        accepted.append((idx, material))

    last_index_by_uuid = {material.uuid: idx for idx, material in accepted}

    materials: list[Material] = []
    for idx, material in accepted:
        winner = last_index_by_uuid[material.uuid]
        if idx == winner:
            materials.append(material)
            continue
        rejected.append(
            RejectedRow(
                row_index=idx,
                raw_row=raw_by_index[idx],
                reason=REJECT_DUPLICATE_UUID,
                detail=f"uuid {material.uuid} superseded by row {winner}",
            )
        )

    rejected.sort(key=lambda row: row.row_index)
    return NormaliseResult(materials=tuple(materials), rejected=tuple(rejected))
