"""Wire the cache components together from configuration."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from kbob.api.handlers import KbobApi
from kbob.common.config_loader import ServiceConfig
from kbob.common.errors import KbobError
from kbob.common.http import HttpClient, RetryConfig, TimeoutConfig
from kbob.common.logging import get_logger, log_event, log_failure
from kbob.pipeline.ingestion import IngestionCoordinator
from kbob.pipeline.queries import QueryService
from kbob.pipeline.scheduler import IngestionScheduler
from kbob.pipeline.snapshot_file import load_snapshot
from kbob.pipeline.snapshot_store import Snapshot, SnapshotStore
from kbob.source.fetcher import SourceFetcher
from kbob.source.link_validator import LinkValidator


@dataclass
class MaterialsService:
    config: ServiceConfig
    store: SnapshotStore
    fetcher: SourceFetcher
    validator: LinkValidator
    coordinator: IngestionCoordinator
    queries: QueryService
    scheduler: IngestionScheduler
    api: KbobApi

    def close(self) -> None:
        self.scheduler.stop()
        self.fetcher.close()


def _restore_snapshot(path: Path, logger: logging.Logger) -> Snapshot | None:
    try:
        return load_snapshot(path)
    except (OSError, ValueError, KeyError, TypeError, KbobError):
        log_failure(
            logger,
            "snapshot file unusable, starting empty",
            exc_info=True,
            component="service",
            event="SNAPSHOT_RESTORE_FAIL",
            status="warning",
            error_code="SNAPSHOT_RESTORE_FAILED",
        )
        return None


def build_service(
    config: ServiceConfig,
    *,
    fetcher: SourceFetcher | None = None,
    logger: logging.Logger | None = None,
) -> MaterialsService:
    logger = logger or get_logger("service")

    store = SnapshotStore()
    if config.ingestion.snapshot_path is not None:
        restored = _restore_snapshot(config.ingestion.snapshot_path, logger)
        if restored is not None:
            store.publish(restored)
            log_event(
                logger,
                "snapshot restored from disk",
                component="service",
                event="SNAPSHOT_RESTORED",
                status="ok",
                rows_out=len(restored),
            )

    if fetcher is None:
        http_client = HttpClient(
            timeout=TimeoutConfig(
                connect=config.http.connect_timeout_seconds,
                read=config.http.read_timeout_seconds,
            ),
            retry=RetryConfig(max_attempts=config.http.max_attempts),
            requests_per_second=config.http.requests_per_second,
        )
        fetcher = SourceFetcher(
            config.source.dataset_url,
            http_client=http_client,
            sheet_keywords=config.source.sheet_keywords,
            header_marker=config.source.header_marker,
            dataset_timeout=http_client.timeout,
            link_timeout=TimeoutConfig(
                connect=config.http.link_timeout_seconds,
                read=config.http.link_timeout_seconds,
            ),
        )

    validator = LinkValidator(fetcher)
    coordinator = IngestionCoordinator(
        fetcher,
        store,
        link_validator=validator,
        overlap_policy=config.ingestion.overlap_policy,
        snapshot_path=config.ingestion.snapshot_path,
    )
    queries = QueryService(store)
    scheduler = IngestionScheduler(coordinator, interval_seconds=config.ingestion.schedule_interval_seconds)
    api = KbobApi(
        store,
        queries,
        validator,
        coordinator,
        default_page_size=config.query.default_page_size,
    )
    return MaterialsService(
        config=config,
        store=store,
        fetcher=fetcher,
        validator=validator,
        coordinator=coordinator,
        queries=queries,
        scheduler=scheduler,
        api=api,
    )
