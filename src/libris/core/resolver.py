# ABOUTME: Entity resolution: decides whether an imported record is a book already in the catalog.
# ABOUTME: Exact keys first (ISBN, source id), then normalized title, then fuzzy title plus author.

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from libris.db.catalog import LibraryCatalog
from libris.db.mapping import BookRecord
from libris.metadata.normalizer import normalize_title
from libris.metadata.scoring import MATCH_THRESHOLD, similarity
from libris.metadata.types import ImportRecord

logger = logging.getLogger(__name__)

METHOD_EXTERNAL_ID = "external_id"
METHOD_ISBN = "isbn"
METHOD_TITLE = "title"
METHOD_FUZZY = "fuzzy"
METHOD_NONE = "none"


@dataclass(frozen=True)
class Resolution:
    """Which catalog book (if any) an import record refers to, and how we know."""

    book: BookRecord | None
    method: str
    score: float = 0.0

    @property
    def matched(self) -> bool:
        return self.book is not None


def authors_agree(candidate_authors: list[str], existing_authors: list[str]) -> bool:
    """True if any candidate author is similar enough to any existing author."""
    return any(
        similarity(candidate, existing) >= MATCH_THRESHOLD
        for candidate in candidate_authors
        for existing in existing_authors
    )


class EntityResolver:
    """Matches import records against a snapshot of the catalog.

    The snapshot is taken once per run. Books created during the run are
    registered with add() so later records in the same run resolve to them.
    """

    def __init__(self, books: Iterable[BookRecord]) -> None:
        self._books: list[BookRecord] = []
        self._by_isbn: dict[str, BookRecord] = {}
        self._by_title: dict[str, BookRecord] = {}
        self._by_goodreads_id: dict[str, BookRecord] = {}
        for book in books:
            self.add(book)

    @classmethod
    def from_catalog(cls, catalog: LibraryCatalog) -> "EntityResolver":
        books = catalog.list_all()
        logger.debug("Resolver snapshot holds %d books", len(books))
        return cls(books)

    def __len__(self) -> int:
        return len(self._books)

    def add(self, book: BookRecord) -> None:
        """Register a book. On key collisions the earliest-added book wins."""
        self._books.append(book)
        for isbn in book.isbns:
            self._by_isbn.setdefault(isbn, book)
        self._by_title.setdefault(book.normalized_title, book)
        if book.goodreads_id:
            self._by_goodreads_id.setdefault(book.goodreads_id, book)

    def replace(self, book: BookRecord) -> None:
        """Refresh a book after it was updated, keeping its index entries current."""
        self._books = [b for b in self._books if b.id != book.id]
        for index in (self._by_isbn, self._by_title, self._by_goodreads_id):
            for key in [k for k, v in index.items() if v.id == book.id]:
                del index[key]
        self.add(book)

    def resolve_book(self, record: ImportRecord) -> Resolution:
        """Find the catalog book an import record describes.

        Strategies, first success wins: Goodreads id, ISBN-10/13 equality
        against either column, exact normalized title, and finally the best
        fuzzy title match at or above MATCH_THRESHOLD whose authors also
        agree. A fuzzy title match alone is never enough.
        """
        if record.source == "goodreads" and record.external_id:
            book = self._by_goodreads_id.get(record.external_id)
            if book is not None:
                return Resolution(book, METHOD_EXTERNAL_ID, 1.0)

        for isbn in record.isbns:
            book = self._by_isbn.get(isbn)
            if book is not None:
                return Resolution(book, METHOD_ISBN, 1.0)

        book = self._by_title.get(normalize_title(record.title))
        if book is not None:
            return Resolution(book, METHOD_TITLE, 1.0)

        if not record.authors:
            return Resolution(None, METHOD_NONE)

        best: BookRecord | None = None
        best_score = 0.0
        for book in self._books:
            score = similarity(record.title, book.title)
            if score < MATCH_THRESHOLD or score <= best_score:
                continue
            if authors_agree(record.authors, book.authors):
                best, best_score = book, score

        if best is not None:
            return Resolution(best, METHOD_FUZZY, best_score)
        return Resolution(None, METHOD_NONE)
