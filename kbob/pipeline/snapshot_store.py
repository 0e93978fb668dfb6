"""Immutable material snapshots and the store that publishes them."""

from __future__ import annotations

import threading
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Iterable, Mapping

from kbob.common.errors import ContractError
from kbob.common.models import Material, SourceVersion


@dataclass(frozen=True)
class Snapshot:
    version: int
    ingested_at: datetime | None
    materials: tuple[Material, ...]
    source_url: str | None = None
    source_version: SourceVersion | None = None
    by_uuid: Mapping[str, Material] = field(default_factory=lambda: MappingProxyType({}), compare=False, repr=False)
    by_group: Mapping[str, tuple[Material, ...]] = field(
        default_factory=lambda: MappingProxyType({}), compare=False, repr=False
    )

    @classmethod
    def build(
        cls,
        materials: Iterable[Material],
        *,
        version: int,
        ingested_at: datetime,
        source_url: str | None = None,
        source_version: SourceVersion | None = None,
    ) -> "Snapshot":
        ordered = tuple(materials)
        by_uuid: dict[str, Material] = {}
        grouped: dict[str, list[Material]] = defaultdict(list)
        for material in ordered:
            if material.uuid in by_uuid:
                raise ContractError(f"Duplicate uuid in snapshot: {material.uuid}")
            by_uuid[material.uuid] = material
            grouped[material.group].append(material)
        return cls(
            version=version,
            ingested_at=ingested_at,
            materials=ordered,
            source_url=source_url,
            source_version=source_version,
            by_uuid=MappingProxyType(by_uuid),
            by_group=MappingProxyType({group: tuple(rows) for group, rows in grouped.items()}),
        )

    @classmethod
    def empty(cls) -> "Snapshot":
        return cls(version=0, ingested_at=None, materials=())

    def __len__(self) -> int:
        return len(self.materials)


class SnapshotStore:
    """Owns the currently published snapshot.

    Readers take the reference with a single attribute read and never lock.
    Writers lock only around the version check and the swap; snapshots are
    built before ``publish`` is called. Each change of source version seen
    in published snapshots is appended to ``versions()``.
    """

    def __init__(self, initial: Snapshot | None = None) -> None:
        self._current = initial if initial is not None else Snapshot.empty()
        self._versions: tuple[SourceVersion, ...] = ()
        self._publish_lock = threading.Lock()
        self._record_version(self._current)

    def current(self) -> Snapshot:
        return self._current

    def last_ingested_at(self) -> datetime | None:
        return self._current.ingested_at

    def publish(self, snapshot: Snapshot) -> None:
        with self._publish_lock:
            previous = self._current
            if snapshot.version <= previous.version:
                raise ContractError(
                    f"Snapshot version {snapshot.version} is not newer than published version {previous.version}"
                )
            self._current = snapshot
            self._record_version(snapshot)

    def versions(self) -> tuple[SourceVersion, ...]:
        return self._versions

    def _record_version(self, snapshot: Snapshot) -> None:
        version = snapshot.source_version
        if version is None or (self._versions and self._versions[-1] == version):
            return
        self._versions = (*self._versions, version)
