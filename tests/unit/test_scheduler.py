from __future__ import annotations

import threading
from datetime import datetime, timezone

from kbob.common.errors import IngestionInProgress
from kbob.common.models import IngestionOutcome
from kbob.pipeline.scheduler import IngestionScheduler

T0 = datetime(2026, 10, 19, 8, 0, tzinfo=timezone.utc)


class FakeCoordinator:
    def __init__(self, *, busy: bool = False):
        self.busy = busy
        self.calls = 0
        self.called = threading.Event()

    def run_ingestion(self) -> IngestionOutcome:
        self.calls += 1
        self.called.set()
        if self.busy:
            raise IngestionInProgress("busy")
        return IngestionOutcome(run_id=f"run-{self.calls}", started_at=T0, finished_at=T0, success=True, record_count=1)


def test_tick_returns_outcome():
    coordinator = FakeCoordinator()

    outcome = IngestionScheduler(coordinator, interval_seconds=60).tick()

    assert outcome.run_id == "run-1"


def test_tick_skips_when_run_in_progress():
    coordinator = FakeCoordinator(busy=True)

    assert IngestionScheduler(coordinator, interval_seconds=60).tick() is None
    assert coordinator.calls == 1


def test_start_runs_immediately_and_stop_ends_thread():
    coordinator = FakeCoordinator()
    scheduler = IngestionScheduler(coordinator, interval_seconds=3600)

    scheduler.start()
    assert coordinator.called.wait(timeout=5)
    scheduler.stop(timeout=5)

    assert coordinator.calls == 1


def test_stop_before_first_interval_skips_deferred_run():
    coordinator = FakeCoordinator()
    scheduler = IngestionScheduler(coordinator, interval_seconds=3600, run_immediately=False)

    scheduler.start()
    scheduler.stop(timeout=5)

    assert coordinator.calls == 0
