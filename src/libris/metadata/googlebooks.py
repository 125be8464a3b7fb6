# ABOUTME: Google Books metadata provider implementation, the fallback after Open Library.
# ABOUTME: Looks up volumes by ISBN, volume id, or intitle/inauthor search with author validation.

import logging

from libris.metadata.candidate import CandidateRecord
from libris.metadata.googlebooks_parser import parse_volume, parse_volumes
from libris.metadata.http import HttpClient, NotFoundError, RateLimitGate
from libris.metadata.normalizer import clean_search_title
from libris.metadata.scoring import GOOGLE_BOOKS_AUTHOR_FLOOR, author_match_confidence

logger = logging.getLogger(__name__)

_GB_BASE = "https://www.googleapis.com/books/v1/volumes"
_SEARCH_LIMIT = 5

GOOGLE_BOOKS_MIN_INTERVAL = 0.1


def googlebooks_gate() -> RateLimitGate:
    return RateLimitGate(GOOGLE_BOOKS_MIN_INTERVAL)


class GoogleBooksProvider:
    """Metadata provider backed by the Google Books volumes API.

    An API key is optional; without one Google applies a shared quota.
    """

    def __init__(self, http_client: HttpClient, *, api_key: str | None = None) -> None:
        self._http = http_client
        self._api_key = api_key

    @property
    def name(self) -> str:
        return "googlebooks"

    @property
    def author_floor(self) -> int:
        return GOOGLE_BOOKS_AUTHOR_FLOOR

    def lookup_by_isbn(self, isbn: str) -> CandidateRecord | None:
        results = self._query(f"isbn:{isbn}", limit=1)
        return results[0] if results else None

    def lookup_by_provider_id(self, provider_id: str) -> CandidateRecord | None:
        try:
            data = self._http.get(f"{_GB_BASE}/{provider_id}", params=self._params({}))
        except NotFoundError:
            logger.debug("No Google Books volume %s", provider_id)
            return None
        return parse_volume(data)

    def lookup_by_title_author(
        self, title: str, author: str | None = None
    ) -> CandidateRecord | None:
        """Search by title and author, keeping the result whose authors match best.

        Without an author the first result wins. With one, the best-scoring
        result is returned even if it scores 0; the caller applies the floor.
        """
        query = f"intitle:{clean_search_title(title)}"
        if author:
            query += f" inauthor:{author}"
        results = self._query(query, limit=_SEARCH_LIMIT)
        if not results:
            return None
        if not author:
            return results[0]
        return max(results, key=lambda c: author_match_confidence(author, c.authors))

    def cover_candidates(
        self, title: str, author: str | None, isbn: str | None
    ) -> list[str]:
        """Thumbnail URLs of matching volumes, ISBN hits first."""
        results: list[CandidateRecord] = []
        if isbn:
            results.extend(self._query(f"isbn:{isbn}", limit=1))
        query = f"intitle:{clean_search_title(title)}"
        if author:
            query += f" inauthor:{author}"
        results.extend(self._query(query, limit=_SEARCH_LIMIT))
        return list(dict.fromkeys(c.cover_url for c in results if c.cover_url))

    def _query(self, query: str, *, limit: int) -> list[CandidateRecord]:
        params = self._params({"q": query, "maxResults": str(limit)})
        try:
            data = self._http.get(_GB_BASE, params=params)
        except NotFoundError:
            return []
        return parse_volumes(data)

    def _params(self, params: dict[str, str]) -> dict[str, str]:
        if self._api_key:
            params["key"] = self._api_key
        return params
