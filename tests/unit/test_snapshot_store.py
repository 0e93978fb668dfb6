from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone

import pytest

from kbob.common.errors import ContractError
from kbob.common.models import Material, SourceVersion
from kbob.pipeline.snapshot_store import Snapshot, SnapshotStore

T0 = datetime(2026, 10, 19, 8, 0, tzinfo=timezone.utc)


def _material(uuid: str, group: str = "Beton") -> Material:
    return Material(
        id=uuid,
        uuid=uuid,
        group=group,
        name=f"name {uuid}",
        name_fr=f"nom {uuid}",
        disposal="",
        density=1.0,
        unit="kg",
        ubp_total=3.0,
        ubp_production=2.0,
        ubp_disposal=1.0,
        ghg_total=0.3,
        ghg_production=0.2,
        ghg_disposal=0.1,
    )


def test_cold_start_returns_empty_snapshot():
    store = SnapshotStore()

    snapshot = store.current()
    assert len(snapshot) == 0
    assert snapshot.ingested_at is None
    assert store.last_ingested_at() is None


def test_publish_swaps_reference_and_timestamp():
    store = SnapshotStore()
    snapshot = Snapshot.build([_material("a"), _material("b", "Holz")], version=1, ingested_at=T0)

    store.publish(snapshot)

    assert store.current() is snapshot
    assert store.last_ingested_at() == T0
    assert [m.uuid for m in snapshot.by_group["Beton"]] == ["a"]
    assert snapshot.by_uuid["b"].group == "Holz"


def test_publish_rejects_stale_version():
    store = SnapshotStore()
    store.publish(Snapshot.build([_material("a")], version=2, ingested_at=T0))

    with pytest.raises(ContractError):
        store.publish(Snapshot.build([_material("b")], version=2, ingested_at=T0 + timedelta(seconds=1)))
    assert store.current().by_uuid.keys() == {"a"}


def test_build_rejects_duplicate_uuid():
    with pytest.raises(ContractError):
        Snapshot.build([_material("a"), _material("a")], version=1, ingested_at=T0)


def test_snapshot_indexes_are_read_only():
    snapshot = Snapshot.build([_material("a")], version=1, ingested_at=T0)

    with pytest.raises(TypeError):
        snapshot.by_uuid["z"] = _material("z")


def test_concurrent_readers_only_see_whole_snapshots():
    store = SnapshotStore()
    seen: list[tuple[int, int]] = []
    stop = threading.Event()

    def reader():
        while not stop.is_set():
            snap = store.current()
            seen.append((snap.version, len(snap.materials)))

    threads = [threading.Thread(target=reader) for _ in range(4)]
    for thread in threads:
        thread.start()
    for version in range(1, 40):
        materials = [_material(f"{version}-{i}") for i in range(version)]
        store.publish(Snapshot.build(materials, version=version, ingested_at=T0 + timedelta(seconds=version)))
    stop.set()
    for thread in threads:
        thread.join()

    assert all(version == size for version, size in seen)
    assert store.current().version == 39


def test_source_version_history_records_each_change():
    v2024 = SourceVersion(version="2024/1:2024", date="2024-10-17", url="https://kbob.example/files/2024/10/17/a.xlsx")
    v2025 = SourceVersion(version="2025/1:2025", date="2025-03-01", url="https://kbob.example/files/2025/03/01/b.xlsx")
    store = SnapshotStore()

    for version, source_version in enumerate([v2024, v2024, None, v2025], start=1):
        store.publish(
            Snapshot.build([_material("a")], version=version, ingested_at=T0, source_version=source_version)
        )

    assert store.versions() == (v2024, v2025)
    assert store.current().source_version == v2025
