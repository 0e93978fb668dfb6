"""Read-only queries over the published snapshot."""

from __future__ import annotations

import math
import re
import statistics
from typing import Any, Sequence

from kbob.common.constants import COMPARE_METRIC_LABELS, DEFAULT_COMPARE_METRICS, SEARCH_LANGUAGES
from kbob.common.errors import InvalidPageRequest, InvalidRequest
from kbob.common.models import Material, Page
from kbob.pipeline.snapshot_store import SnapshotStore

_NON_ALNUM_RE = re.compile(r"[^A-Za-z0-9]")


def _is_positive_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def _uuid_key(value: str) -> str:
    return _NON_ALNUM_RE.sub("", value).upper()


def _check_language(language: str) -> None:
    if language not in SEARCH_LANGUAGES:
        raise InvalidRequest(f"language must be one of: {', '.join(SEARCH_LANGUAGES)}")


def _localised_name(material: Material, language: str) -> str:
    return material.name_fr if language == "fr" else material.name


def _metric_unit(metric: str) -> str:
    lowered = metric.lower()
    if "ghg" in lowered or "gwp" in lowered:
        return "kg CO2 eq"
    if "ubp" in lowered:
        return "UBP"
    if "biogenic" in lowered:
        return "kg C"
    return "unknown"


class QueryService:
    """Each call reads the store once and answers from that snapshot only."""

    def __init__(self, store: SnapshotStore) -> None:
        self.store = store

    def materials_by_group(self, group: str) -> tuple[Material, ...]:
        snapshot = self.store.current()
        return snapshot.by_group.get(group, ())

    def all_materials(self, page: int, page_size: int) -> Page:
        if not _is_positive_int(page):
            raise InvalidPageRequest(f"page must be a positive integer, got {page!r}")
        if not _is_positive_int(page_size):
            raise InvalidPageRequest(f"pageSize must be a positive integer, got {page_size!r}")

        snapshot = self.store.current()
        total_items = len(snapshot.materials)
        start = (page - 1) * page_size
        return Page(
            items=snapshot.materials[start : start + page_size],
            page=page,
            page_size=page_size,
            total_items=total_items,
            total_pages=math.ceil(total_items / page_size),
        )

    def material_by_uuid(self, uuid: str) -> Material | None:
        snapshot = self.store.current()
        exact = snapshot.by_uuid.get(uuid)
        if exact is not None:
            return exact
        wanted = _uuid_key(uuid)
        if not wanted:
            return None
        for material in snapshot.materials:
            if _uuid_key(material.uuid) == wanted:
                return material
        return None

    def search(self, query: str, language: str = "de") -> tuple[Material, ...]:
        needle = (query or "").strip().lower()
        if not needle:
            raise InvalidRequest("Search query is required")
        _check_language(language)

        snapshot = self.store.current()
        return tuple(m for m in snapshot.materials if needle in _localised_name(m, language).lower())

    def metric_stats(self, metric: str) -> dict[str, Any] | None:
        snapshot = self.store.current()
        values: list[float] = []
        for material in snapshot.materials:
            value = material.to_dict().get(metric)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                continue
            if math.isfinite(value):
                values.append(float(value))
        if not values:
            return None
        return {
            "metric": metric,
            "unit": _metric_unit(metric),
            "min": min(values),
            "max": max(values),
            "avg": sum(values) / len(values),
            "median": statistics.median(values),
            "count": len(snapshot.materials),
            "nonNullCount": len(values),
        }

    def groups(self) -> list[str]:
        return sorted(self.store.current().by_group)

    def units(self) -> list[str]:
        return sorted({m.unit for m in self.store.current().materials if m.unit})

    def names(self, language: str = "de") -> list[dict[str, str]]:
        _check_language(language)
        named = [
            {"uuid": m.uuid, "name": _localised_name(m, language)}
            for m in self.store.current().materials
            if _localised_name(m, language).strip()
        ]
        return sorted(named, key=lambda item: (item["name"].casefold(), item["uuid"]))

    def compare(
        self,
        uuids: Sequence[str],
        metrics: Sequence[str] | None = None,
        language: str = "de",
    ) -> dict[str, Any]:
        """Side-by-side metric values for the requested materials.

        UUIDs match like ``material_by_uuid``; unknown ones are left out.
        Metrics outside ``COMPARE_METRIC_LABELS`` are dropped.
        """
        wanted = [key for key in (_uuid_key(u) for u in uuids) if key]
        if not wanted:
            raise InvalidRequest("At least one UUID is required")
        _check_language(language)
        requested = DEFAULT_COMPARE_METRICS if metrics is None else metrics
        valid_metrics = [metric for metric in requested if metric in COMPARE_METRIC_LABELS]

        comparison = []
        for material in self.store.current().materials:
            if _uuid_key(material.uuid) not in wanted:
                continue
            payload = material.to_dict()
            comparison.append(
                {
                    "uuid": material.uuid,
                    "name": _localised_name(material, language),
                    "unit": material.unit,
                    "metrics": {
                        metric: {"value": payload.get(metric), "label": COMPARE_METRIC_LABELS[metric]}
                        for metric in valid_metrics
                    },
                }
            )
        return {
            "comparison": comparison,
            "metrics": valid_metrics,
            "metricLabels": [{"key": metric, "label": COMPARE_METRIC_LABELS[metric]} for metric in valid_metrics],
        }
