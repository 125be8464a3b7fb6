# ABOUTME: Core data structures shared by the importers, resolver, and enrichment pipeline.
# ABOUTME: ImportRecord is the interchange format between export parsing and the catalog.

from dataclasses import dataclass, field
from enum import StrEnum


class EnrichmentStatus(StrEnum):
    """Lifecycle of a book's metadata enrichment, stored as text in the catalog."""

    PENDING = "PENDING"
    PARTIAL = "PARTIAL"
    ENRICHED = "ENRICHED"
    NOT_FOUND = "NOT_FOUND"
    FAILED = "FAILED"


# Statuses a batch run picks up. ENRICHED books are only revisited when
# replacing bad covers.
RETRYABLE_STATUSES: tuple[EnrichmentStatus, ...] = (
    EnrichmentStatus.PENDING,
    EnrichmentStatus.PARTIAL,
    EnrichmentStatus.NOT_FOUND,
    EnrichmentStatus.FAILED,
)


@dataclass
class ImportRecord:
    """One book as described by an external export (Goodreads, Kindle, Audible).

    The title is already stripped of its series suffix; series_name and
    series_order carry what was parsed out of it. ISBNs are normalized.
    """

    source: str
    title: str
    authors: list[str] = field(default_factory=list)
    isbn: str | None = None
    isbn13: str | None = None
    external_id: str | None = None
    asin: str | None = None
    series_name: str | None = None
    series_order: float | None = None
    publisher: str | None = None
    pages: int | None = None
    year_published: int | None = None

    @property
    def author(self) -> str:
        """Convenience property: joined author string for display."""
        return ", ".join(self.authors) if self.authors else ""

    @property
    def isbns(self) -> list[str]:
        """Non-null ISBNs, ISBN-13 first."""
        return [value for value in (self.isbn13, self.isbn) if value]
