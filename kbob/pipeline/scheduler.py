"""Periodic trigger for ingestion runs."""

from __future__ import annotations

import logging
import threading

from kbob.common.errors import IngestionInProgress
from kbob.common.logging import get_logger, log_event
from kbob.common.models import IngestionOutcome
from kbob.pipeline.ingestion import IngestionCoordinator

COMPONENT = "scheduler"


class IngestionScheduler:
    def __init__(
        self,
        coordinator: IngestionCoordinator,
        *,
        interval_seconds: float,
        run_immediately: bool = True,
        logger: logging.Logger | None = None,
    ) -> None:
        self.coordinator = coordinator
        self.interval_seconds = interval_seconds
        self.run_immediately = run_immediately
        self.logger = logger or get_logger(COMPONENT)
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def tick(self) -> IngestionOutcome | None:
        try:
            outcome = self.coordinator.run_ingestion()
        except IngestionInProgress:
            log_event(self.logger, "scheduled run skipped", component=COMPONENT, event="TICK_SKIPPED", status="ok")
            return None
        log_event(
            self.logger,
            "scheduled run finished",
            run_id=outcome.run_id,
            component=COMPONENT,
            event="TICK_END",
            status="ok" if outcome.success else "error",
            error_code=outcome.failure_reason,
        )
        return outcome

    def run_forever(self) -> None:
        if not self.run_immediately and self._stop.wait(self.interval_seconds):
            return
        while not self._stop.is_set():
            self.tick()
            if self._stop.wait(self.interval_seconds):
                return

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self.run_forever, name="kbob-ingestion-scheduler", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
