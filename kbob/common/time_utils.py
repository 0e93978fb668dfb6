"""UTC-focused helpers for ingestion timestamps."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


def utc_timestamp_iso() -> str:
    return utc_now().isoformat(timespec="milliseconds")


def to_iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.isoformat()


def parse_iso(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def strictly_after(candidate: datetime, previous: datetime | None) -> datetime:
    """Return ``candidate`` nudged forward so it sorts after ``previous``."""
    if previous is None or candidate > previous:
        return candidate
    return previous + timedelta(microseconds=1)
