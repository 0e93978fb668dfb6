"""Configuration loading and validation."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from kbob.common.errors import ConfigError
from kbob.common.fs import read_yaml
from kbob.common.schema import validate_service_config

CONFIG_FILENAME = "kbob.yml"


@dataclass(frozen=True)
class SourceConfig:
    dataset_url: str
    sheet_keywords: tuple[str, ...]
    header_marker: str


@dataclass(frozen=True)
class HttpConfig:
    connect_timeout_seconds: float
    read_timeout_seconds: float
    link_timeout_seconds: float
    max_attempts: int
    requests_per_second: float


@dataclass(frozen=True)
class IngestionConfig:
    overlap_policy: str
    schedule_interval_seconds: float
    snapshot_path: Path | None


@dataclass(frozen=True)
class QueryConfig:
    default_page_size: int


@dataclass(frozen=True)
class ServiceConfig:
    source: SourceConfig
    http: HttpConfig
    ingestion: IngestionConfig
    query: QueryConfig


def _deep_merge(base: Any, overlay: Any) -> Any:
    if isinstance(base, dict) and isinstance(overlay, dict):
        merged = dict(base)
        for key, value in overlay.items():
            if key in merged:
                merged[key] = _deep_merge(merged[key], value)
            else:
                merged[key] = value
        return merged
    return overlay


def _load_yaml_with_overlay(path: Path, overlay_path: Path | None) -> dict:
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    base = read_yaml(path)
    if overlay_path is None or not overlay_path.exists():
        return base
    overlay = read_yaml(overlay_path)
    return _deep_merge(base, overlay or {})


def build_service_config(cfg: dict) -> ServiceConfig:
    source = cfg["source"]
    http = cfg["http"]
    ingestion = cfg["ingestion"]
    query = cfg["query"]
    snapshot_path = ingestion.get("snapshot_path")
    return ServiceConfig(
        source=SourceConfig(
            dataset_url=str(source["dataset_url"]),
            sheet_keywords=tuple(str(k).lower() for k in source["sheet_keywords"]),
            header_marker=str(source["header_marker"]).lower(),
        ),
        http=HttpConfig(
            connect_timeout_seconds=float(http["connect_timeout_seconds"]),
            read_timeout_seconds=float(http["read_timeout_seconds"]),
            link_timeout_seconds=float(http["link_timeout_seconds"]),
            max_attempts=int(http["max_attempts"]),
            requests_per_second=float(http["requests_per_second"]),
        ),
        ingestion=IngestionConfig(
            overlap_policy=str(ingestion["overlap_policy"]),
            schedule_interval_seconds=float(ingestion["schedule_interval_seconds"]),
            snapshot_path=Path(snapshot_path) if snapshot_path else None,
        ),
        query=QueryConfig(
            default_page_size=int(query["default_page_size"]),
        ),
    )


def load_service_config(
    config_dir: Path,
    *,
    allow_unknown: bool = False,
    overlay_config_dir: Path | None = None,
) -> ServiceConfig:
    overlay_path = None
    if overlay_config_dir is not None:
        overlay_path = overlay_config_dir / CONFIG_FILENAME
    raw = _load_yaml_with_overlay(config_dir / CONFIG_FILENAME, overlay_path)
    return build_service_config(validate_service_config(raw, allow_unknown=allow_unknown))
