"""Optional JSON persistence of the published snapshot across restarts."""

from __future__ import annotations

from pathlib import Path

from kbob.common.errors import ContractError
from kbob.common.fs import read_json, write_json
from kbob.common.models import Material, SourceVersion
from kbob.common.time_utils import parse_iso, to_iso
from kbob.pipeline.snapshot_store import Snapshot

SNAPSHOT_FORMAT = 1


def save_snapshot(path: Path, snapshot: Snapshot) -> None:
    payload = {
        "format": SNAPSHOT_FORMAT,
        "version": snapshot.version,
        "ingested_at": to_iso(snapshot.ingested_at),
        "source_url": snapshot.source_url,
        "source_version": snapshot.source_version.to_dict() if snapshot.source_version else None,
        "materials": [material.to_dict() for material in snapshot.materials],
    }
    write_json(path, payload)


def load_snapshot(path: Path) -> Snapshot | None:
    if not path.exists():
        return None
    payload = read_json(path)
    if not isinstance(payload, dict):
        raise ContractError(f"Snapshot file {path} does not hold a JSON object")
    if payload.get("format") != SNAPSHOT_FORMAT:
        raise ContractError(f"Unsupported snapshot format in {path}: {payload.get('format')!r}")
    ingested_at = parse_iso(payload.get("ingested_at"))
    if ingested_at is None:
        raise ContractError(f"Snapshot file {path} has no ingestion timestamp")
    version = int(payload["version"])
    if version < 1:
        raise ContractError(f"Snapshot file {path} has invalid version {version}")
    source_version = payload.get("source_version")
    return Snapshot.build(
        (Material.from_dict(row) for row in payload.get("materials", [])),
        version=version,
        ingested_at=ingested_at,
        source_url=payload.get("source_url"),
        source_version=SourceVersion.from_dict(source_version) if source_version else None,
    )
