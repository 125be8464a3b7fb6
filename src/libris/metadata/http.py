# ABOUTME: HTTP client abstraction for metadata provider API calls and cover downloads.
# ABOUTME: Provides an injectable rate-limit gate, retry with backoff, and injectable transport.

import logging
import threading
import time
from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

import httpx

logger = logging.getLogger(__name__)

_RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}

DEFAULT_TIMEOUT = 5.0
USER_AGENT = "libris/0.1.0"


class MetadataFetchError(Exception):
    """Raised when an HTTP request to a metadata provider fails."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(MetadataFetchError):
    """Raised when the provider answers 404 for the requested resource."""


class RateLimitGate:
    """Blocks each caller until min_interval has passed since the previous one.

    One gate per client instance. Thread-safe so cover-audit workers sharing
    a client still respect the interval. Tests pass min_interval=0.
    """

    def __init__(
        self,
        min_interval: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._last: float | None = None
        self._lock = threading.Lock()

    @property
    def min_interval(self) -> float:
        return self._min_interval

    def wait(self) -> None:
        """Sleep if needed to maintain the minimum interval between requests."""
        if self._min_interval <= 0:
            return
        with self._lock:
            if self._last is not None:
                elapsed = self._clock() - self._last
                if elapsed < self._min_interval:
                    self._sleep(self._min_interval - elapsed)
            self._last = self._clock()


@runtime_checkable
class HttpClient(Protocol):
    """Protocol for HTTP GET operations against metadata APIs and image hosts."""

    def get(self, url: str, params: dict[str, str] | None = None) -> dict[str, Any]: ...

    def get_bytes(self, url: str) -> bytes: ...


class LibrisHttpClient:
    """HTTP client with rate limiting and retry for metadata API calls.

    Wraps httpx.Client with a RateLimitGate, a per-call timeout, and retry
    logic for transient failures (429, 5xx). Redirects are followed because
    cover CDNs answer with 302s to the archive host.
    """

    def __init__(
        self,
        *,
        gate: RateLimitGate | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        client_kwargs: dict[str, Any] = {
            "headers": {"User-Agent": USER_AGENT},
            "timeout": timeout,
            "follow_redirects": True,
        }
        if transport is not None:
            client_kwargs["transport"] = transport
        self._client = httpx.Client(**client_kwargs)
        self._gate = gate if gate is not None else RateLimitGate(0.1)
        self._max_retries = max_retries
        self._retry_delay = retry_delay

    def get(self, url: str, params: dict[str, str] | None = None) -> dict[str, Any]:
        """Send a GET request and decode the JSON body.

        Args:
            url: The URL to request.
            params: Optional query parameters.

        Returns:
            Parsed JSON response body.

        Raises:
            NotFoundError: On HTTP 404.
            MetadataFetchError: On other HTTP errors, timeouts, exhausted
                retries, or a body that is not JSON.
        """
        response = self._request(url, params)
        try:
            return response.json()
        except ValueError as exc:
            raise MetadataFetchError(f"Invalid JSON from {url}: {exc}") from exc

    def get_bytes(self, url: str) -> bytes:
        """Download a response body in full (used for cover images)."""
        return self._request(url, None).content

    def close(self) -> None:
        self._client.close()

    def _request(self, url: str, params: dict[str, str] | None) -> httpx.Response:
        attempts = 1 + self._max_retries
        last_status = 0
        for attempt in range(attempts):
            # Retries count against the interval like any other request.
            self._gate.wait()
            try:
                response = self._client.get(url, params=params)
                last_status = response.status_code
            except httpx.HTTPError as exc:
                raise MetadataFetchError(f"Request failed: {url}: {exc}") from exc

            if response.is_success:
                return response

            if response.status_code == 404:
                raise NotFoundError(f"HTTP 404 from {url}", status_code=404)

            if response.status_code not in _RETRYABLE_STATUS_CODES:
                raise MetadataFetchError(
                    f"HTTP {response.status_code} from {url}",
                    status_code=response.status_code,
                )

            if attempt < attempts - 1:
                delay = self._retry_delay * (2**attempt)
                logger.warning(
                    "HTTP %d from %s, retrying in %.1fs (attempt %d/%d)",
                    response.status_code,
                    url,
                    delay,
                    attempt + 1,
                    self._max_retries,
                )
                time.sleep(delay)

        raise MetadataFetchError(
            f"HTTP {last_status} from {url} after {attempts} attempts",
            status_code=last_status,
        )
