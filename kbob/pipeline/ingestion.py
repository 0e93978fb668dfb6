"""Single-flight ingestion: fetch, normalise, publish."""

from __future__ import annotations

import enum
import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Iterable

from kbob.common.constants import OVERLAP_POLICIES, OVERLAP_REJECT, OVERLAP_WAIT
from kbob.common.errors import ConfigError, EmptyIngestionResult, IngestionInProgress, KbobError
from kbob.common.ids import generate_run_id
from kbob.common.logging import get_logger, log_event, log_failure
from kbob.common.models import IngestionOutcome, VersionCheck
from kbob.common.time_utils import strictly_after, utc_now
from kbob.pipeline.normalise import NormaliseResult, normalise_rows
from kbob.pipeline.snapshot_file import save_snapshot
from kbob.pipeline.snapshot_store import Snapshot, SnapshotStore
from kbob.source.fetcher import SourceFetcher, source_version_from_url
from kbob.source.link_validator import LinkValidator

COMPONENT = "ingestion"


class IngestionState(str, enum.Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    NORMALISING = "normalising"
    PUBLISHING = "publishing"
    FAILED = "failed"


class _InFlightRun:
    def __init__(self) -> None:
        self.done = threading.Event()
        self.outcome: IngestionOutcome | None = None


class IngestionCoordinator:
    """Runs at most one ingestion at a time.

    With the ``wait`` overlap policy a caller that arrives during a run blocks
    until it finishes and receives the same outcome. With ``reject`` it gets
    ``IngestionInProgress``.
    """

    def __init__(
        self,
        fetcher: SourceFetcher,
        store: SnapshotStore,
        *,
        link_validator: LinkValidator | None = None,
        normaliser: Callable[[Iterable[Any]], NormaliseResult] = normalise_rows,
        overlap_policy: str = OVERLAP_WAIT,
        snapshot_path: Path | None = None,
        clock: Callable[[], datetime] = utc_now,
        logger: logging.Logger | None = None,
    ) -> None:
        if overlap_policy not in OVERLAP_POLICIES:
            raise ConfigError(f"Unknown overlap policy: {overlap_policy}")
        self.fetcher = fetcher
        self.store = store
        self.link_validator = link_validator or LinkValidator(fetcher)
        self.normaliser = normaliser
        self.overlap_policy = overlap_policy
        self.snapshot_path = snapshot_path
        self.clock = clock
        self.logger = logger or get_logger(COMPONENT)

        self._lock = threading.Lock()
        self._in_flight: _InFlightRun | None = None
        self._state = IngestionState.IDLE
        self._last_outcome: IngestionOutcome | None = None

    @property
    def state(self) -> IngestionState:
        return self._state

    @property
    def last_outcome(self) -> IngestionOutcome | None:
        return self._last_outcome

    def run_ingestion(self) -> IngestionOutcome:
        with self._lock:
            run = self._in_flight
            owner = run is None
            if owner:
                run = _InFlightRun()
                self._in_flight = run
                self._state = IngestionState.FETCHING

        if not owner:
            if self.overlap_policy == OVERLAP_REJECT:
                raise IngestionInProgress("An ingestion run is already in progress")
            run.done.wait()
            return run.outcome

        outcome: IngestionOutcome | None = None
        try:
            outcome = self._execute()
        finally:
            with self._lock:
                if outcome is not None:
                    self._last_outcome = outcome
                self._in_flight = None
                self._state = IngestionState.IDLE
            run.outcome = outcome
            run.done.set()
        return outcome

    def update_source_link(self, url: str) -> bool:
        """Point future runs at ``url`` if it is reachable."""
        if not self.link_validator.test_link(url):
            log_event(
                self.logger,
                "source link rejected as unreachable",
                component=COMPONENT,
                event="SOURCE_LINK_REJECTED",
                status="warning",
            )
            return False
        with self._lock:
            self.fetcher.dataset_url = url.strip()
        log_event(self.logger, "source link updated", component=COMPONENT, event="SOURCE_LINK_UPDATED", status="ok")
        return True

    def check_new_version(self) -> VersionCheck:
        """Compare the dated release of the configured source with the served one."""
        candidate = source_version_from_url(self.fetcher.dataset_url)
        current = self.store.current().source_version
        check = VersionCheck(
            has_new_version=candidate is not None and candidate != current,
            current=current,
            candidate=candidate,
        )
        log_event(
            self.logger,
            "new source version available" if check.has_new_version else "source version unchanged",
            component=COMPONENT,
            event="VERSION_CHECK",
            status="ok",
        )
        return check

    def _set_state(self, state: IngestionState) -> None:
        with self._lock:
            self._state = state

    def _execute(self) -> IngestionOutcome:
        run_id = generate_run_id()
        started_at = self.clock()
        source_url = self.fetcher.dataset_url
        log_event(self.logger, "ingestion start", run_id=run_id, component=COMPONENT, event="INGEST_START", status="ok")

        result: NormaliseResult | None = None
        try:
            raw_rows = self.fetcher.fetch_raw_dataset()

            self._set_state(IngestionState.NORMALISING)
            result = self.normaliser(raw_rows)
            if not result.materials:
                raise EmptyIngestionResult(
                    f"No acceptable records among {len(raw_rows)} source rows"
                )

            self._set_state(IngestionState.PUBLISHING)
            previous = self.store.current()
            snapshot = Snapshot.build(
                result.materials,
                version=previous.version + 1,
                ingested_at=strictly_after(self.clock(), previous.ingested_at),
                source_url=source_url,
                source_version=source_version_from_url(source_url),
            )
            self.store.publish(snapshot)
        except KbobError as exc:
            return self._failed(run_id, started_at, exc.error_code, result, exc_info=False)
        except Exception:
            return self._failed(run_id, started_at, "UNEXPECTED_ERROR", result, exc_info=True)

        self._persist(run_id, snapshot)
        outcome = IngestionOutcome(
            run_id=run_id,
            started_at=started_at,
            finished_at=self.clock(),
            success=True,
            record_count=len(snapshot),
            rejected_count=len(result.rejected),
            rejected_by_reason=result.rejected_by_reason,
            ingested_at=snapshot.ingested_at,
        )
        log_event(
            self.logger,
            "ingestion published",
            run_id=run_id,
            component=COMPONENT,
            event="INGEST_END",
            status="ok",
            duration_ms=outcome.duration_ms,
            rows_in=len(snapshot) + len(result.rejected),
            rows_out=len(snapshot),
            rows_rejected=len(result.rejected),
        )
        return outcome

    def _failed(
        self,
        run_id: str,
        started_at: datetime,
        error_code: str,
        result: NormaliseResult | None,
        *,
        exc_info: bool,
    ) -> IngestionOutcome:
        self._set_state(IngestionState.FAILED)
        outcome = IngestionOutcome(
            run_id=run_id,
            started_at=started_at,
            finished_at=self.clock(),
            success=False,
            rejected_count=len(result.rejected) if result else 0,
            rejected_by_reason=result.rejected_by_reason if result else {},
            failure_reason=error_code,
        )
        log_failure(
            self.logger,
            "ingestion failed, previous snapshot kept",
            exc_info=exc_info,
            run_id=run_id,
            component=COMPONENT,
            event="INGEST_FAIL",
            status="error",
            duration_ms=outcome.duration_ms,
            rows_rejected=outcome.rejected_count,
            error_code=error_code,
        )
        return outcome

    def _persist(self, run_id: str, snapshot: Snapshot) -> None:
        if self.snapshot_path is None:
            return
        try:
            save_snapshot(self.snapshot_path, snapshot)
        except OSError:
            log_failure(
                self.logger,
                "snapshot persistence failed",
                exc_info=True,
                run_id=run_id,
                component=COMPONENT,
                event="SNAPSHOT_PERSIST_FAIL",
                status="warning",
                error_code="SNAPSHOT_PERSIST_FAILED",
            )
