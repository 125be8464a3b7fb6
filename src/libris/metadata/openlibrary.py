# ABOUTME: Open Library metadata provider implementation.
# ABOUTME: Looks up books by ISBN, work id, or title/author, plus author bios for author enrichment.

import logging
import re
from dataclasses import replace
from typing import Any

from libris.metadata.candidate import CandidateRecord
from libris.metadata.http import HttpClient, MetadataFetchError, NotFoundError, RateLimitGate
from libris.metadata.normalizer import clean_search_title
from libris.metadata.openlibrary_parser import (
    AuthorDetails,
    build_cover_url,
    parse_author_keys,
    parse_author_record,
    parse_author_search,
    parse_books_api,
    parse_description,
    parse_edition,
    parse_search_results,
    parse_work,
)
from libris.metadata.scoring import OPENLIBRARY_AUTHOR_FLOOR

logger = logging.getLogger(__name__)

_OL_BASE = "https://openlibrary.org"
_SEARCH_LIMIT = 5

# Open Library asks for no more than ~100 requests a minute.
OPENLIBRARY_MIN_INTERVAL = 0.6

# Matches a colon followed by a space and remaining text (subtitle pattern).
_SUBTITLE_RE = re.compile(r"\s*:\s+.+$")


def openlibrary_gate() -> RateLimitGate:
    return RateLimitGate(OPENLIBRARY_MIN_INTERVAL)


def _strip_subtitle(title: str) -> str | None:
    """Remove subtitle from a title string (text after ": ").

    Returns the stripped title, or None if no subtitle was found or
    stripping would produce an identical or empty string.
    """
    stripped = _SUBTITLE_RE.sub("", title).strip()
    if stripped and stripped != title.strip():
        return stripped
    return None


class OpenLibraryProvider:
    """Metadata provider backed by the Open Library API.

    ISBN lookups read the edition and follow up with the works and author
    endpoints; those follow-ups are best-effort. Uses dependency-injected
    HttpClient for testability.
    """

    def __init__(self, http_client: HttpClient) -> None:
        self._http = http_client

    @property
    def name(self) -> str:
        return "openlibrary"

    @property
    def author_floor(self) -> int:
        return OPENLIBRARY_AUTHOR_FLOOR

    def lookup_by_isbn(self, isbn: str) -> CandidateRecord | None:
        """Look up an edition by ISBN and fill in work description and author names."""
        try:
            edition = self._http.get(f"{_OL_BASE}/isbn/{isbn}.json")
        except NotFoundError:
            logger.debug("No Open Library edition for ISBN %s", isbn)
            return None
        if not isinstance(edition, dict):
            logger.warning("Malformed Open Library edition for ISBN %s", isbn)
            return None

        candidate = parse_edition(edition, isbn)
        author_keys = parse_author_keys(edition)
        description = candidate.description
        cover_url = candidate.cover_url

        if candidate.external_id:
            work = self._get_optional(f"{_OL_BASE}/works/{candidate.external_id}.json")
            if work is not None:
                description = description or parse_description(work)
                cover_url = cover_url or parse_work(work).cover_url
                author_keys = author_keys or parse_author_keys(work)

        return replace(
            candidate,
            authors=self._author_names(author_keys),
            description=description,
            cover_url=cover_url,
        )

    def lookup_by_provider_id(self, provider_id: str) -> CandidateRecord | None:
        """Look up a work by its Open Library id (e.g. "OL45883W")."""
        work_id = provider_id.rsplit("/", 1)[-1]
        try:
            work = self._http.get(f"{_OL_BASE}/works/{work_id}.json")
        except NotFoundError:
            logger.debug("No Open Library work %s", work_id)
            return None
        if not isinstance(work, dict):
            logger.warning("Malformed Open Library work %s", work_id)
            return None

        candidate = parse_work(work)
        return replace(
            candidate,
            authors=self._author_names(parse_author_keys(work)),
            external_id=candidate.external_id or work_id,
        )

    def lookup_by_title_author(
        self, title: str, author: str | None = None
    ) -> CandidateRecord | None:
        """Search Open Library by title and optional author.

        Prefers the first result that has cover art. If the search finds
        nothing and the title has a subtitle, retries without it. The chosen
        result's description is filled from its work when the search doc
        has none.
        """
        results = self._search(title, author)
        if not results:
            stripped = _strip_subtitle(title)
            if stripped:
                results = self._search(stripped, author)
        if not results:
            return None

        best = next((c for c in results if c.cover_url), results[0])
        if best.description is None and best.external_id:
            work = self._get_optional(f"{_OL_BASE}/works/{best.external_id}.json")
            if work is not None:
                description = parse_description(work)
                if description:
                    return replace(best, description=description)
        return best

    def cover_candidates(
        self, title: str, author: str | None, isbn: str | None
    ) -> list[str]:
        """Every cover URL Open Library can offer for a book, best first.

        The ISBN cover URL comes first, then the Books API cover, then the
        covers of search results. Failures of individual requests are logged
        and skipped.
        """
        urls: list[str] = []
        if isbn:
            urls.append(build_cover_url("isbn", isbn))
            books = self._get_optional(
                f"{_OL_BASE}/api/books",
                {"bibkeys": f"ISBN:{isbn}", "format": "json", "jscmd": "data"},
            )
            if books is not None:
                candidate = parse_books_api(books, isbn)
                if candidate is not None and candidate.cover_url:
                    urls.append(candidate.cover_url)

        try:
            results = self._search(title, author)
        except MetadataFetchError as exc:
            logger.warning("Cover search failed for title=%s author=%s: %s", title, author, exc)
            results = []
        urls.extend(c.cover_url for c in results if c.cover_url)
        return list(dict.fromkeys(urls))

    def lookup_author(self, author_id: str) -> AuthorDetails | None:
        """Fetch an author record by id (e.g. "OL23919A")."""
        try:
            data = self._http.get(f"{_OL_BASE}/authors/{author_id}.json")
        except NotFoundError:
            return None
        return parse_author_record(data)

    def author_ids_for_work(self, work_id: str) -> list[str]:
        """Author ids listed on a work, in work order."""
        try:
            work = self._http.get(f"{_OL_BASE}/works/{work_id}.json")
        except NotFoundError:
            return []
        return parse_author_keys(work)

    def search_authors(self, name: str) -> list[tuple[str, str]]:
        """Search authors by name, returning (author id, name) pairs."""
        data = self._http.get(
            f"{_OL_BASE}/search/authors.json", params={"q": name, "limit": str(_SEARCH_LIMIT)}
        )
        return parse_author_search(data)

    def _search(self, title: str, author: str | None) -> list[CandidateRecord]:
        params: dict[str, str] = {
            "title": clean_search_title(title),
            "limit": str(_SEARCH_LIMIT),
        }
        if author:
            params["author"] = author
        try:
            data = self._http.get(f"{_OL_BASE}/search.json", params=params)
        except NotFoundError:
            return []
        return parse_search_results(data)

    def _author_names(self, author_keys: list[str]) -> list[str]:
        """Resolve author ids to names. Unreachable authors are skipped."""
        names: list[str] = []
        for key in author_keys:
            data = self._get_optional(f"{_OL_BASE}/authors/{key}.json")
            if data is None:
                continue
            record = parse_author_record(data)
            if record is not None:
                names.append(record.name)
        return names

    def _get_optional(
        self, url: str, params: dict[str, str] | None = None
    ) -> dict[str, Any] | None:
        """GET for follow-up data that the caller can live without."""
        try:
            data = self._http.get(url, params=params)
        except MetadataFetchError as exc:
            logger.warning("Follow-up request failed for %s: %s", url, exc)
            return None
        return data if isinstance(data, dict) else None
