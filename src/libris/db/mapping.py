# ABOUTME: Converts SQLite rows into typed catalog records and import records into rows.
# ABOUTME: BookRecord, AuthorRecord, and SeriesRecord are what the rest of Libris reads.

from dataclasses import dataclass, field
from typing import Any

from libris.metadata.normalizer import normalize_title
from libris.metadata.types import EnrichmentStatus, ImportRecord


@dataclass
class BookRecord:
    """A cataloged book with the names of its linked authors, in order."""

    id: int
    title: str
    normalized_title: str
    slug: str
    isbn: str | None = None
    isbn13: str | None = None
    goodreads_id: str | None = None
    openlibrary_id: str | None = None
    google_books_id: str | None = None
    cover_url: str | None = None
    cover_source: str | None = None
    description: str | None = None
    publisher: str | None = None
    pages: int | None = None
    year_published: int | None = None
    series_id: int | None = None
    series_order: float | None = None
    enrichment_status: EnrichmentStatus = EnrichmentStatus.PENDING
    enriched_at: str | None = None
    owned_kindle: bool = False
    kindle_asin: str | None = None
    owned_audible: bool = False
    audible_asin: str | None = None
    date_added: str = ""
    date_modified: str = ""
    authors: list[str] = field(default_factory=list)

    @property
    def author(self) -> str:
        """Convenience property: joined author string for display."""
        return ", ".join(self.authors) if self.authors else ""

    @property
    def primary_author(self) -> str | None:
        return self.authors[0] if self.authors else None

    @property
    def isbns(self) -> list[str]:
        """Non-null ISBNs, ISBN-13 first."""
        return [value for value in (self.isbn13, self.isbn) if value]


@dataclass
class AuthorRecord:
    """A cataloged author. book_count is filled by listing queries only."""

    id: int
    name: str
    slug: str
    last_name: str = ""
    openlibrary_id: str | None = None
    bio: str | None = None
    photo_url: str | None = None
    birth_date: str | None = None
    death_date: str | None = None
    enriched_at: str | None = None
    book_count: int = 0


@dataclass
class SeriesRecord:
    """A book series. book_count is filled by list_series only."""

    id: int
    name: str
    slug: str
    book_count: int = 0


def import_to_row(record: ImportRecord, slug: str) -> dict[str, Any]:
    """Convert an ImportRecord to a dict suitable for INSERT into books."""
    return {
        "title": record.title,
        "normalized_title": normalize_title(record.title),
        "slug": slug,
        "isbn": record.isbn,
        "isbn13": record.isbn13,
        "goodreads_id": record.external_id if record.source == "goodreads" else None,
        "publisher": record.publisher,
        "pages": record.pages,
        "year_published": record.year_published,
        "series_order": record.series_order,
        "owned_kindle": int(record.source == "kindle"),
        "kindle_asin": record.asin if record.source == "kindle" else None,
        "owned_audible": int(record.source == "audible"),
        "audible_asin": record.asin if record.source == "audible" else None,
    }


def row_to_book(row: Any, authors: list[str] | None = None) -> BookRecord:
    """Convert a books row (dict-like) to a BookRecord."""
    return BookRecord(
        id=row["id"],
        title=row["title"],
        normalized_title=row["normalized_title"],
        slug=row["slug"],
        isbn=row["isbn"],
        isbn13=row["isbn13"],
        goodreads_id=row["goodreads_id"],
        openlibrary_id=row["openlibrary_id"],
        google_books_id=row["google_books_id"],
        cover_url=row["cover_url"],
        cover_source=row["cover_source"],
        description=row["description"],
        publisher=row["publisher"],
        pages=row["pages"],
        year_published=row["year_published"],
        series_id=row["series_id"],
        series_order=row["series_order"],
        enrichment_status=EnrichmentStatus(row["enrichment_status"]),
        enriched_at=row["enriched_at"],
        owned_kindle=bool(row["owned_kindle"]),
        kindle_asin=row["kindle_asin"],
        owned_audible=bool(row["owned_audible"]),
        audible_asin=row["audible_asin"],
        date_added=row["date_added"],
        date_modified=row["date_modified"],
        authors=authors or [],
    )


def row_to_author(row: Any) -> AuthorRecord:
    """Convert an authors row to an AuthorRecord; reads book_count when selected."""
    keys = row.keys()
    return AuthorRecord(
        id=row["id"],
        name=row["name"],
        slug=row["slug"],
        last_name=row["last_name"],
        openlibrary_id=row["openlibrary_id"],
        bio=row["bio"],
        photo_url=row["photo_url"],
        birth_date=row["birth_date"],
        death_date=row["death_date"],
        enriched_at=row["enriched_at"],
        book_count=row["book_count"] if "book_count" in keys else 0,
    )


def row_to_series(row: Any) -> SeriesRecord:
    keys = row.keys()
    return SeriesRecord(
        id=row["id"],
        name=row["name"],
        slug=row["slug"],
        book_count=row["book_count"] if "book_count" in keys else 0,
    )
