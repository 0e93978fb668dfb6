"""Source fetcher for the published KBOB dataset."""

from __future__ import annotations

import logging
import re
from typing import Any, Iterable
from urllib.parse import urlparse

import requests

from kbob.common.errors import InvalidLinkFormat
from kbob.common.http import HttpClient, TimeoutConfig
from kbob.common.logging import get_logger
from kbob.common.models import SourceVersion
from kbob.source.workbook import parse_workbook_rows

WORKBOOK_ACCEPT = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet, */*"
_DATED_PATH_RE = re.compile(r"/files/(\d{4})/(\d{2})/(\d{2})/")


def validate_link(url: object) -> str:
    if not isinstance(url, str) or not url.strip():
        raise InvalidLinkFormat("Link must be a non-empty string")
    candidate = url.strip()
    try:
        parsed = urlparse(candidate)
    except ValueError as exc:
        raise InvalidLinkFormat(f"Malformed link: {url!r}") from exc
    if parsed.scheme not in {"http", "https"} or not parsed.hostname:
        raise InvalidLinkFormat(f"Malformed link: {url!r}")
    return candidate


def source_version_from_url(url: str) -> SourceVersion | None:
    """KBOB publishes each release under a dated ``/files/YYYY/MM/DD/`` path."""
    match = _DATED_PATH_RE.search(url or "")
    if match is None:
        return None
    year, month, day = match.groups()
    return SourceVersion(version=f"{year}/1:{year}", date=f"{year}-{month}-{day}", url=url)


class SourceFetcher:
    def __init__(
        self,
        dataset_url: str,
        *,
        http_client: HttpClient | None = None,
        sheet_keywords: Iterable[str] = ("baumaterialien", "materiaux"),
        header_marker: str = "id-nummer",
        dataset_timeout: TimeoutConfig | None = None,
        link_timeout: TimeoutConfig | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.dataset_url = validate_link(dataset_url)
        self.http_client = http_client or HttpClient()
        self.sheet_keywords = tuple(sheet_keywords)
        self.header_marker = header_marker
        self.dataset_timeout = dataset_timeout or TimeoutConfig()
        self.link_timeout = link_timeout or TimeoutConfig(connect=10.0, read=10.0)
        self.logger = logger or get_logger("fetcher")

    def close(self) -> None:
        self.http_client.close()

    def fetch_raw_dataset(self) -> list[dict[str, Any]]:
        content = self.http_client.get_bytes(
            self.dataset_url,
            headers={"Accept": WORKBOOK_ACCEPT},
            timeout=self.dataset_timeout,
        )
        return parse_workbook_rows(
            content,
            sheet_keywords=self.sheet_keywords,
            header_marker=self.header_marker,
        )

    def fetch_link(self, url: str) -> bool:
        target = validate_link(url)
        try:
            status = self.http_client.probe_status(target, timeout=self.link_timeout)
        except requests.RequestException as exc:
            self.logger.debug("link unreachable: %s (%s)", target, type(exc).__name__)
            return False
        return 200 <= status < 300
