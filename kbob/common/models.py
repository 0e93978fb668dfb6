"""Data models used across the cache."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, Mapping

from kbob.common.constants import CANONICAL_FIELDS
from kbob.common.time_utils import to_iso

SCALAR_TYPES = (str, int, float, bool, type(None))


@dataclass(frozen=True)
class Material:
    id: str
    uuid: str
    group: str
    name: str
    name_fr: str
    disposal: str
    density: float
    unit: str
    ubp_total: float
    ubp_production: float
    ubp_disposal: float
    ghg_total: float
    ghg_production: float
    ghg_disposal: float
    density_min: float | None = None
    density_max: float | None = None
    extras: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "uuid": self.uuid,
            "group": self.group,
            "name": self.name,
            "nameFr": self.name_fr,
            "disposal": self.disposal,
            "density": self.density,
            "densityMin": self.density_min,
            "densityMax": self.density_max,
            "unit": self.unit,
            "ubpTotal": self.ubp_total,
            "ubpProduction": self.ubp_production,
            "ubpDisposal": self.ubp_disposal,
            "ghgTotal": self.ghg_total,
            "ghgProduction": self.ghg_production,
            "ghgDisposal": self.ghg_disposal,
        }
        for key, value in self.extras.items():
            payload.setdefault(key, value)
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Material":
        extras = {key: value for key, value in payload.items() if key not in CANONICAL_FIELDS}
        return cls(
            id=str(payload.get("id") or ""),
            uuid=str(payload["uuid"]),
            group=str(payload["group"]),
            name=str(payload.get("name") or ""),
            name_fr=str(payload.get("nameFr") or ""),
            disposal=str(payload.get("disposal") or ""),
            density=float(payload["density"]),
            unit=str(payload.get("unit") or ""),
            ubp_total=float(payload["ubpTotal"]),
            ubp_production=float(payload["ubpProduction"]),
            ubp_disposal=float(payload["ubpDisposal"]),
            ghg_total=float(payload["ghgTotal"]),
            ghg_production=float(payload["ghgProduction"]),
            ghg_disposal=float(payload["ghgDisposal"]),
            density_min=payload.get("densityMin"),
            density_max=payload.get("densityMax"),
            extras=MappingProxyType(extras),
        )


@dataclass(frozen=True)
class RejectedRow:
    row_index: int
    raw_row: Any
    reason: str
    detail: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "row_index": self.row_index,
            "reason": self.reason,
            "detail": self.detail,
        }


@dataclass(frozen=True)
class IngestionOutcome:
    run_id: str
    started_at: datetime
    finished_at: datetime
    success: bool
    record_count: int = 0
    rejected_count: int = 0
    rejected_by_reason: Mapping[str, int] = field(default_factory=dict)
    failure_reason: str | None = None
    ingested_at: datetime | None = None

    @property
    def duration_ms(self) -> int:
        return int((self.finished_at - self.started_at).total_seconds() * 1000)

    def to_dict(self) -> dict[str, Any]:
        return {
            "runId": self.run_id,
            "startedAt": to_iso(self.started_at),
            "finishedAt": to_iso(self.finished_at),
            "success": self.success,
            "recordCount": self.record_count,
            "rejectedCount": self.rejected_count,
            "rejectedByReason": dict(sorted(self.rejected_by_reason.items())),
            "failureReason": self.failure_reason,
            "ingestedAt": to_iso(self.ingested_at),
        }


@dataclass(frozen=True)
class Page:
    items: tuple[Material, ...]
    page: int
    page_size: int
    total_items: int
    total_pages: int


@dataclass(frozen=True)
class SourceVersion:
    """Release of the published dataset, read from its dated download path."""

    version: str
    date: str
    url: str

    def to_dict(self) -> dict[str, Any]:
        return {"version": self.version, "date": self.date, "downloadUrl": self.url}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "SourceVersion":
        return cls(
            version=str(payload["version"]),
            date=str(payload["date"]),
            url=str(payload["downloadUrl"]),
        )


@dataclass(frozen=True)
class VersionCheck:
    has_new_version: bool
    current: SourceVersion | None
    candidate: SourceVersion | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "hasNewVersion": self.has_new_version,
            "currentVersion": self.current.to_dict() if self.current else None,
            "candidateVersion": self.candidate.to_dict() if self.candidate else None,
        }
