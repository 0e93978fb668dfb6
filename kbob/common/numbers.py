"""Numeric coercion for Swiss-formatted source values."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass

MISSING_TOKENS = {"", "-"}

_RANGE_RE = re.compile(r"^([\d\s'.,]+?)\s*-\s*([\d\s'.,]+)$")
_THOUSANDS_COMMA_RE = re.compile(r"^\d{3}(\D|$)")
_STRIP_RE = re.compile(r"[^\d.eE+-]")


class NumberFormatError(ValueError):
    pass


@dataclass(frozen=True)
class DensityValue:
    value: float
    minimum: float
    maximum: float


def parse_number(value: object) -> float | None:
    """Parse a source cell into a float.

    Returns ``None`` for blank and ``"-"`` cells. Raises ``NumberFormatError``
    for anything else that is not a number. Non-finite results are returned
    as-is; callers decide whether to accept them.

    Thousands separators may be spaces or apostrophes. A comma followed by
    exactly three digits is a thousands separator, otherwise a decimal comma.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise NumberFormatError(f"Boolean is not a number: {value!r}")
    if isinstance(value, (int, float)):
        return float(value)

    text = str(value).strip()
    if text in MISSING_TOKENS:
        return None
    if text.lower() in {"nan", "inf", "+inf", "-inf", "infinity", "-infinity"}:
        return float(text)

    cleaned = re.sub(r"\s+", "", text).replace("'", "").replace("’", "")
    comma = cleaned.find(",")
    if comma != -1:
        if _THOUSANDS_COMMA_RE.match(cleaned[comma + 1 :]):
            cleaned = cleaned.replace(",", "")
        else:
            cleaned = cleaned.replace(",", ".")
    cleaned = _STRIP_RE.sub("", cleaned)
    if cleaned in MISSING_TOKENS:
        raise NumberFormatError(f"Not a number: {value!r}")
    try:
        return float(cleaned)
    except ValueError as exc:
        raise NumberFormatError(f"Not a number: {value!r}") from exc


def parse_density(value: object) -> DensityValue | None:
    """Parse a density cell, accepting ranges such as ``"1 400 - 1 500"``."""
    if isinstance(value, str):
        match = _RANGE_RE.match(value.strip())
        if match:
            low = parse_number(match.group(1))
            high = parse_number(match.group(2))
            if low is None or high is None:
                raise NumberFormatError(f"Incomplete density range: {value!r}")
            low, high = min(low, high), max(low, high)
            return DensityValue(value=low, minimum=low, maximum=high)

    number = parse_number(value)
    if number is None:
        return None
    return DensityValue(value=number, minimum=number, maximum=number)


def is_finite(value: float | None) -> bool:
    return value is not None and math.isfinite(value)
