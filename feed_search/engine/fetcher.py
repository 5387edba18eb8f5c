"""HTTP retrieval of the remote feed."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

import httpx
import structlog

from ..config import FeedSourceConfig
from .errors import FetchError

SENSITIVE_QUERY_KEYS = frozenset(
    {"key", "api_key", "apikey", "token", "access_token", "secret", "password", "signature", "sig"}
)
REDACTED = "***"


def redact_url(url: str) -> str:
    """Strip credentials from ``url`` so it can be logged or returned to callers."""

    try:
        parsed = urlparse(url)
    except ValueError:
        return REDACTED
    netloc = parsed.netloc
    if "@" in netloc:
        userinfo, host = netloc.rsplit("@", 1)
        username = userinfo.split(":", 1)[0]
        netloc = f"{username}:{REDACTED}@{host}" if ":" in userinfo else f"{REDACTED}@{host}"
    query = parsed.query
    pairs = parse_qsl(query, keep_blank_values=True)
    if any(key.lower() in SENSITIVE_QUERY_KEYS for key, _ in pairs):
        query = urlencode(
            [(key, REDACTED if key.lower() in SENSITIVE_QUERY_KEYS else value) for key, value in pairs],
            safe="*",
        )
    return urlunparse(parsed._replace(netloc=netloc, query=query))


@dataclass(slots=True)
class FetchRequest:
    """Input for the fetcher."""

    url: str
    method: str = "GET"
    params: dict[str, Any] | None = None
    headers: dict[str, str] | None = None
    timeout: float | None = None


@dataclass(slots=True)
class FetchResponse:
    """Standardised response wrapper."""

    url: str
    status_code: int
    content: bytes
    headers: Dict[str, str]
    elapsed: float = 0.0
    raw: httpx.Response | None = field(repr=False, default=None)


class Fetcher:
    """Execute feed requests with bounded retries."""

    def __init__(
        self,
        config: FeedSourceConfig,
        client: httpx.Client | None = None,
        logger: structlog.BoundLogger | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config
        self.logger = logger or structlog.get_logger("feed_search.fetcher")
        self._sleep = sleep
        self._headers = dict(config.headers)
        if config.user_agent and "User-Agent" not in self._headers:
            self._headers["User-Agent"] = config.user_agent
        self._client = client or httpx.Client(follow_redirects=True, timeout=config.timeout)

    def close(self) -> None:
        self._client.close()

    def default_request(self) -> FetchRequest:
        return FetchRequest(url=self.config.url, timeout=self.config.timeout)

    def fetch(self, request: FetchRequest | None = None) -> FetchResponse:
        request = request or self.default_request()
        safe_url = redact_url(request.url)
        headers = {**self._headers, **(request.headers or {})}
        max_attempts = 1 + self.config.retry_on_fail
        last_error: FetchError | None = None
        for attempt in range(1, max_attempts + 1):
            started = time.monotonic()
            try:
                response = self._client.request(
                    method=request.method,
                    url=request.url,
                    params=request.params,
                    headers=headers,
                    timeout=request.timeout or self.config.timeout,
                )
            except httpx.HTTPError as exc:
                self.logger.warning(
                    "fetch_error",
                    url=safe_url,
                    attempt=attempt,
                    error=exc.__class__.__name__,
                )
                last_error = FetchError(
                    f"Request to {safe_url} failed: {exc.__class__.__name__}", url=safe_url
                )
                last_error.__cause__ = exc
            else:
                elapsed = time.monotonic() - started
                if self._is_success(response):
                    self.logger.info(
                        "feed_fetched",
                        url=safe_url,
                        status=response.status_code,
                        bytes=len(response.content),
                        elapsed=round(elapsed, 3),
                    )
                    return FetchResponse(
                        url=redact_url(str(response.url)),
                        status_code=response.status_code,
                        content=response.content,
                        headers=dict(response.headers),
                        elapsed=elapsed,
                        raw=response,
                    )
                self.logger.warning(
                    "fetch_bad_status",
                    url=safe_url,
                    attempt=attempt,
                    status=response.status_code,
                )
                last_error = FetchError(
                    f"Unexpected status {response.status_code} from {safe_url}",
                    url=safe_url,
                    status_code=response.status_code,
                )
                if not self._is_retryable(response.status_code):
                    break
            if attempt < max_attempts and self.config.retry_delay:
                self._sleep(self.config.retry_delay)

        assert last_error is not None
        raise last_error

    @staticmethod
    def _is_success(response: Any) -> bool:
        status_code = getattr(response, "status_code", 0)
        return 200 <= status_code < 300

    @staticmethod
    def _is_retryable(status_code: int) -> bool:
        return status_code >= 500 or status_code == 429


__all__ = ["Fetcher", "FetchRequest", "FetchResponse", "redact_url"]
