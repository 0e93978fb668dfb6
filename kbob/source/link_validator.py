"""On-demand reachability checks for source links."""

from __future__ import annotations

from kbob.source.fetcher import SourceFetcher, validate_link


class LinkValidator:
    def __init__(self, fetcher: SourceFetcher) -> None:
        self.fetcher = fetcher

    def test_link(self, url: str) -> bool:
        """Return True only when ``url`` answered with a success status.

        Dead links, refused connections and timeouts are False. Only a
        malformed URL raises (``InvalidLinkFormat``).
        """
        return self.fetcher.fetch_link(validate_link(url))
