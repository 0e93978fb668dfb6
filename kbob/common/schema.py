"""Minimal strict schemas for YAML config validation."""

from __future__ import annotations

from urllib.parse import urlparse

from kbob.common.constants import OVERLAP_POLICIES
from kbob.common.errors import ConfigError

SECTION_KEYS = {
    "source": {"dataset_url", "sheet_keywords", "header_marker"},
    "http": {
        "connect_timeout_seconds",
        "read_timeout_seconds",
        "link_timeout_seconds",
        "max_attempts",
        "requests_per_second",
    },
    "ingestion": {"overlap_policy", "schedule_interval_seconds", "snapshot_path"},
    "query": {"default_page_size"},
}


def _assert_required_keys(obj: dict, required: set[str], ctx: str) -> None:
    if not isinstance(obj, dict):
        raise ConfigError(f"{ctx} must be a mapping")
    missing = required - set(obj)
    if missing:
        missing_str = ", ".join(sorted(missing))
        raise ConfigError(f"Missing keys in {ctx}: {missing_str}")


def _assert_no_unknown_keys(obj: dict, known: set[str], ctx: str, allow_unknown: bool) -> None:
    if allow_unknown:
        return
    unknown = set(obj) - known
    if unknown:
        unknown_str = ", ".join(sorted(unknown))
        raise ConfigError(f"Unknown keys in {ctx}: {unknown_str}")


def _assert_positive(value: object, ctx: str) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ConfigError(f"{ctx} must be a positive number")


def validate_service_config(cfg: dict, *, allow_unknown: bool = False) -> dict:
    _assert_required_keys(cfg, set(SECTION_KEYS), "config")
    _assert_no_unknown_keys(cfg, set(SECTION_KEYS), "config", allow_unknown)
    for section, keys in SECTION_KEYS.items():
        _assert_required_keys(cfg[section], keys, section)
        _assert_no_unknown_keys(cfg[section], keys, section, allow_unknown)

    parsed = urlparse(str(cfg["source"]["dataset_url"]))
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ConfigError("source.dataset_url must be an absolute http(s) URL")
    keywords = cfg["source"]["sheet_keywords"]
    if not isinstance(keywords, list) or not keywords:
        raise ConfigError("source.sheet_keywords must be a non-empty list")

    for key in SECTION_KEYS["http"]:
        _assert_positive(cfg["http"][key], f"http.{key}")
    if not isinstance(cfg["http"]["max_attempts"], int):
        raise ConfigError("http.max_attempts must be an integer")

    if cfg["ingestion"]["overlap_policy"] not in OVERLAP_POLICIES:
        raise ConfigError(f"ingestion.overlap_policy must be one of: {', '.join(OVERLAP_POLICIES)}")
    _assert_positive(cfg["ingestion"]["schedule_interval_seconds"], "ingestion.schedule_interval_seconds")

    for key in SECTION_KEYS["query"]:
        value = cfg["query"][key]
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise ConfigError(f"query.{key} must be a positive integer")

    return cfg
