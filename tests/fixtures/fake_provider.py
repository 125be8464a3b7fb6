# ABOUTME: Scriptable MetadataProvider for enrichment tests.
# ABOUTME: Returns canned candidates per ISBN, provider id, or title and records every call.

from libris.metadata.candidate import CandidateRecord


class FakeProvider:
    """In-memory provider; unknown keys return None.

    A value that is an Exception is raised instead of returned.
    """

    def __init__(
        self,
        name: str = "openlibrary",
        author_floor: int = 50,
        *,
        by_isbn: dict[str, object] | None = None,
        by_id: dict[str, object] | None = None,
        by_title: dict[str, object] | None = None,
        covers: list[str] | None = None,
    ) -> None:
        self._name = name
        self._floor = author_floor
        self._by_isbn = by_isbn or {}
        self._by_id = by_id or {}
        self._by_title = by_title or {}
        self._covers = covers or []
        self.calls: list[tuple[str, str]] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def author_floor(self) -> int:
        return self._floor

    def _answer(self, table: dict[str, object], key: str) -> CandidateRecord | None:
        value = table.get(key)
        if isinstance(value, Exception):
            raise value
        return value  # type: ignore[return-value]

    def lookup_by_isbn(self, isbn: str) -> CandidateRecord | None:
        self.calls.append(("isbn", isbn))
        return self._answer(self._by_isbn, isbn)

    def lookup_by_provider_id(self, provider_id: str) -> CandidateRecord | None:
        self.calls.append(("provider_id", provider_id))
        return self._answer(self._by_id, provider_id)

    def lookup_by_title_author(
        self, title: str, author: str | None = None
    ) -> CandidateRecord | None:
        self.calls.append(("search", title))
        return self._answer(self._by_title, title)

    def cover_candidates(
        self, title: str, author: str | None, isbn: str | None
    ) -> list[str]:
        self.calls.append(("covers", title))
        return list(self._covers)


def candidate(
    source: str = "openlibrary",
    *,
    title: str = "The Way of Kings",
    authors: list[str] | None = None,
    description: str | None = None,
    cover_url: str | None = None,
    external_id: str | None = None,
) -> CandidateRecord:
    return CandidateRecord(
        source=source,
        source_id=external_id or title,
        title=title,
        authors=["Brandon Sanderson"] if authors is None else authors,
        description=description,
        cover_url=cover_url,
        external_id=external_id,
    )
