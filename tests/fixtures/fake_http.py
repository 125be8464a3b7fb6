# ABOUTME: In-memory HttpClient used by provider, cover, and enrichment tests.
# ABOUTME: Maps URL substrings to canned JSON, bytes, or exceptions and logs every request.

from typing import Any

from libris.metadata.http import NotFoundError


class FakeHttpClient:
    """Fake HTTP client that returns canned responses based on URL patterns.

    The first pattern (in insertion order) contained in the URL wins; for
    JSON requests the URL includes the query string (unencoded). A
    response that is an Exception is raised instead of returned. JSON
    requests with no matching pattern return {}; byte requests raise.
    """

    def __init__(
        self,
        responses: dict[str, Any] | None = None,
        images: dict[str, Any] | None = None,
    ) -> None:
        self._responses = responses or {}
        self._images = images or {}
        self.request_log: list[str] = []
        self.params_log: list[dict[str, str] | None] = []

    def get(self, url: str, params: dict[str, str] | None = None) -> dict[str, Any]:
        self.request_log.append(url)
        self.params_log.append(params)
        target = url
        if params:
            target += "?" + "&".join(f"{key}={value}" for key, value in params.items())
        for pattern, response in self._responses.items():
            if pattern in target:
                if isinstance(response, Exception):
                    raise response
                return response
        return {}

    def get_bytes(self, url: str) -> bytes:
        self.request_log.append(url)
        for pattern, data in self._images.items():
            if pattern in url:
                if isinstance(data, Exception):
                    raise data
                return data
        raise NotFoundError(f"HTTP 404 from {url}", status_code=404)
