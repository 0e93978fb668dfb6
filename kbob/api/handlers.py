"""Translate core results into request/response payloads.

Every handler returns an ``ApiResponse`` whose status code agrees with the
``success`` flag. The routing framework in front of these handlers is out of
scope; it only has to serialise ``body`` as JSON with ``status``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

from kbob.common.errors import IngestionInProgress, InvalidLinkFormat, InvalidPageRequest, InvalidRequest
from kbob.common.logging import get_logger, log_failure
from kbob.common.time_utils import to_iso
from kbob.pipeline.ingestion import IngestionCoordinator
from kbob.pipeline.queries import QueryService
from kbob.pipeline.snapshot_store import SnapshotStore
from kbob.source.link_validator import LinkValidator

COMPONENT = "api"


@dataclass(frozen=True)
class ApiResponse:
    status: int
    body: dict[str, Any] = field(default_factory=dict)


def _parse_positive_int(value: object, name: str, default: int) -> int:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise InvalidPageRequest(f"{name} must be a positive integer")
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError as exc:
        raise InvalidPageRequest(f"{name} must be a positive integer") from exc


def _split_list(value: object) -> list[str] | None:
    if value is None:
        return None
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return [str(part).strip() for part in value if str(part).strip()]


class KbobApi:
    def __init__(
        self,
        store: SnapshotStore,
        queries: QueryService,
        validator: LinkValidator,
        coordinator: IngestionCoordinator,
        *,
        default_page_size: int = 10,
        logger: logging.Logger | None = None,
    ) -> None:
        self.store = store
        self.queries = queries
        self.validator = validator
        self.coordinator = coordinator
        self.default_page_size = default_page_size
        self.logger = logger or get_logger(COMPONENT)

    def _internal_error(self, message: str, *, handler: str, **extra: Any) -> ApiResponse:
        log_failure(
            self.logger,
            f"{handler} failed",
            exc_info=True,
            component=COMPONENT,
            event="HANDLER_FAIL",
            status="error",
            error_code="UNEXPECTED_ERROR",
        )
        return ApiResponse(500, {"success": False, "error": message, **extra})

    def last_ingestion(self) -> ApiResponse:
        return ApiResponse(200, {"lastIngestionTime": to_iso(self.store.last_ingested_at())})

    def materials_by_group(self, group: str) -> ApiResponse:
        try:
            materials = self.queries.materials_by_group(group)
        except Exception:
            return self._internal_error("Failed to fetch materials by group", handler="materials_by_group", materials=[])
        return ApiResponse(
            200,
            {
                "success": True,
                "materials": [m.to_dict() for m in materials],
                "count": len(materials),
            },
        )

    def all_materials(self, page: object = None, page_size: object = None) -> ApiResponse:
        try:
            result = self.queries.all_materials(
                _parse_positive_int(page, "page", 1),
                _parse_positive_int(page_size, "pageSize", self.default_page_size),
            )
        except InvalidPageRequest as exc:
            return ApiResponse(400, {"success": False, "error": str(exc), "materials": [], "count": 0})
        except Exception:
            return self._internal_error("Failed to fetch materials", handler="all_materials", materials=[], count=0)
        return ApiResponse(
            200,
            {
                "success": True,
                "materials": [m.to_dict() for m in result.items],
                "count": len(result.items),
                "totalItems": result.total_items,
                "totalPages": result.total_pages,
                "currentPage": result.page,
                "pageSize": result.page_size,
            },
        )

    def material_by_uuid(self, uuid: str) -> ApiResponse:
        try:
            material = self.queries.material_by_uuid(uuid)
        except Exception:
            return self._internal_error("Failed to fetch material", handler="material_by_uuid")
        if material is None:
            return ApiResponse(404, {"success": False, "error": "Material not found", "requestedUUID": uuid})
        return ApiResponse(200, {"success": True, "material": material.to_dict()})

    def search(self, query: str | None, language: str | None = None) -> ApiResponse:
        lang = language or "de"
        try:
            materials = self.queries.search(query or "", lang)
        except InvalidRequest as exc:
            return ApiResponse(400, {"success": False, "error": str(exc), "materials": [], "count": 0})
        except Exception:
            return self._internal_error("Failed to search materials", handler="search", materials=[], count=0)
        return ApiResponse(
            200,
            {
                "success": True,
                "materials": [m.to_dict() for m in materials],
                "count": len(materials),
                "query": query,
                "language": lang,
            },
        )

    def metric_stats(self, metric: str | None) -> ApiResponse:
        if not metric:
            return ApiResponse(400, {"success": False, "error": "Metric parameter is required"})
        try:
            stats = self.queries.metric_stats(metric)
        except Exception:
            return self._internal_error("Failed to calculate statistics", handler="metric_stats")
        if stats is None:
            return ApiResponse(404, {"success": False, "error": "No data available for the specified metric"})
        return ApiResponse(200, {"success": True, "metric": metric, "unit": stats.pop("unit"), "stats": stats})

    def names(self, language: str | None = None) -> ApiResponse:
        lang = language or "de"
        try:
            names = self.queries.names(lang)
        except InvalidRequest as exc:
            return ApiResponse(400, {"success": False, "error": str(exc), "names": [], "count": 0})
        except Exception:
            return self._internal_error("Failed to fetch material names", handler="names", names=[], count=0)
        return ApiResponse(200, {"success": True, "names": names, "count": len(names)})

    def compare(self, uuids: object, metrics: object = None, language: str | None = None) -> ApiResponse:
        lang = language or "de"
        try:
            result = self.queries.compare(_split_list(uuids) or [], _split_list(metrics), lang)
        except InvalidRequest as exc:
            return ApiResponse(400, {"success": False, "error": str(exc)})
        except Exception:
            return self._internal_error("Failed to compare materials", handler="compare")
        return ApiResponse(
            200,
            {"success": True, **result, "language": lang, "count": len(result["comparison"])},
        )

    def check_new_version(self) -> ApiResponse:
        try:
            check = self.coordinator.check_new_version()
        except Exception:
            return self._internal_error("Failed to check for a new KBOB version", handler="check_new_version")
        return ApiResponse(200, {"success": True, **check.to_dict()})

    def versions(self) -> ApiResponse:
        current = self.store.current().source_version
        return ApiResponse(
            200,
            {
                "success": True,
                "versions": [version.to_dict() for version in self.store.versions()],
                "currentVersion": current.to_dict() if current else None,
            },
        )

    def test_link(self, body: Mapping[str, Any] | None) -> ApiResponse:
        link = body.get("link") if isinstance(body, Mapping) else None
        if not link:
            return ApiResponse(400, {"success": False, "error": "Link is required"})
        try:
            reachable = self.validator.test_link(link)
        except InvalidLinkFormat as exc:
            return ApiResponse(400, {"success": False, "error": str(exc)})
        except Exception:
            return self._internal_error("Link test failed", handler="test_link")
        return ApiResponse(200, {"success": reachable})

    def trigger_ingestion(self) -> ApiResponse:
        try:
            outcome = self.coordinator.run_ingestion()
        except IngestionInProgress:
            return ApiResponse(409, {"success": False, "error": "Ingestion already in progress"})
        except Exception:
            return self._internal_error("Failed to ingest KBOB data", handler="trigger_ingestion")
        if not outcome.success:
            return ApiResponse(500, {"success": False, "error": "Failed to ingest KBOB data", **outcome.to_dict()})
        return ApiResponse(200, outcome.to_dict())
