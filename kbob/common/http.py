"""HTTP client with timeouts, optional retries, and host-aware rate limiting."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from types import TracebackType
from urllib.parse import urlparse

import requests
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential_jitter

from kbob.common.constants import USER_AGENT
from kbob.common.errors import SourceTimeout, SourceUnavailable

RETRYABLE_STATUS_CODES = {408, 425, 429, 500, 502, 503, 504}
HEAD_UNSUPPORTED_STATUS_CODES = {405, 501}


@dataclass(frozen=True)
class TimeoutConfig:
    connect: float = 10.0
    read: float = 60.0


@dataclass(frozen=True)
class RetryConfig:
    max_attempts: int = 1
    multiplier: float = 1.0
    max_wait: float = 30.0


class HttpRequestError(SourceUnavailable):
    pass


class RetryableHttpError(HttpRequestError):
    pass


class TokenBucket:
    def __init__(self, rate_per_sec: float, capacity: float | None = None) -> None:
        self.rate_per_sec = rate_per_sec
        self.capacity = capacity if capacity is not None else max(rate_per_sec, 1.0)
        self.tokens = self.capacity
        self.updated_at = time.monotonic()
        self.lock = threading.Lock()

    def acquire(self, tokens: float = 1.0) -> None:
        while True:
            with self.lock:
                now = time.monotonic()
                elapsed = now - self.updated_at
                self.tokens = min(self.capacity, self.tokens + elapsed * self.rate_per_sec)
                self.updated_at = now
                if self.tokens >= tokens:
                    self.tokens -= tokens
                    return
                deficit = tokens - self.tokens
                wait_for = max(deficit / self.rate_per_sec, 0.01)
            time.sleep(wait_for)


class HostRateLimiter:
    def __init__(self, default_rate_per_sec: float) -> None:
        self.default_rate_per_sec = default_rate_per_sec
        self.buckets: dict[str, TokenBucket] = {}
        self.lock = threading.Lock()

    def acquire(self, host: str, tokens: float = 1.0) -> None:
        with self.lock:
            bucket = self.buckets.get(host)
            if bucket is None:
                bucket = TokenBucket(rate_per_sec=self.default_rate_per_sec)
                self.buckets[host] = bucket
        bucket.acquire(tokens=tokens)


class HttpClient:
    def __init__(
        self,
        *,
        timeout: TimeoutConfig | None = None,
        retry: RetryConfig | None = None,
        requests_per_second: float = 0.5,
    ) -> None:
        self.timeout = timeout or TimeoutConfig()
        self.retry = retry or RetryConfig()
        self.session = requests.Session()
        self.limiter = HostRateLimiter(default_rate_per_sec=requests_per_second)

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "HttpClient":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def _host(self, url: str) -> str:
        return urlparse(url).netloc

    def _headers(self, headers: dict[str, str] | None) -> dict[str, str]:
        out = {"User-Agent": USER_AGENT, "Accept": "*/*"}
        if headers:
            out.update(headers)
        return out

    def _raise_for_status_or_retry(self, response: requests.Response) -> None:
        status = response.status_code
        if status in RETRYABLE_STATUS_CODES:
            raise RetryableHttpError(f"Retryable HTTP status: {status}")
        if status >= 400:
            raise HttpRequestError(f"HTTP status: {status}")

    def _request_bytes(
        self,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        timeout: TimeoutConfig | None = None,
    ) -> bytes:
        req_timeout = timeout or self.timeout
        self.limiter.acquire(self._host(url))

        try:
            response = self.session.request(
                method="GET",
                url=url,
                headers=self._headers(headers),
                timeout=(req_timeout.connect, req_timeout.read),
            )
        except requests.Timeout as exc:
            raise SourceTimeout(f"Timed out fetching {url}") from exc
        except requests.RequestException as exc:
            raise SourceUnavailable(f"Transport error fetching {url}: {exc}") from exc

        self._raise_for_status_or_retry(response)
        return response.content

    def get_bytes(
        self,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        timeout: TimeoutConfig | None = None,
    ) -> bytes:
        @retry(
            stop=stop_after_attempt(self.retry.max_attempts),
            wait=wait_exponential_jitter(
                initial=self.retry.multiplier,
                max=self.retry.max_wait,
                jitter=1.0,
            ),
            retry=retry_if_exception_type(RetryableHttpError),
            reraise=True,
        )
        def _wrapped() -> bytes:
            return self._request_bytes(url, headers=headers, timeout=timeout)

        return _wrapped()

    def probe_status(self, url: str, *, timeout: TimeoutConfig | None = None) -> int:
        """Return the final status of ``url`` without reading its body.

        Uses ``HEAD`` and falls back to a streamed ``GET`` for servers that
        refuse ``HEAD``. Transport failures propagate as ``requests``
        exceptions; interpreting them is the caller's business.

        Link checks skip the host rate limiter and use a session of their own;
        ``timeout`` is their only bound.
        """
        req_timeout = timeout or self.timeout
        with requests.Session() as session:
            response = session.request(
                method="HEAD",
                url=url,
                headers=self._headers(None),
                timeout=(req_timeout.connect, req_timeout.read),
                allow_redirects=True,
            )
            if response.status_code not in HEAD_UNSUPPORTED_STATUS_CODES:
                return response.status_code

            response = session.request(
                method="GET",
                url=url,
                headers=self._headers(None),
                timeout=(req_timeout.connect, req_timeout.read),
                allow_redirects=True,
                stream=True,
            )
            try:
                return response.status_code
            finally:
                response.close()
