# ABOUTME: Import pipeline that merges export records into the Libris catalog.
# ABOUTME: Resolves each record to an existing book or creates one with its authors and series.

import logging
import sqlite3
from collections import Counter
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from libris.core.resolver import EntityResolver, Resolution
from libris.db.catalog import DuplicateBookError, LibraryCatalog
from libris.db.mapping import BookRecord
from libris.metadata.normalizer import make_unique_slug, normalize_title, slugify
from libris.metadata.types import ImportRecord

logger = logging.getLogger(__name__)

# Book columns an import may fill when the catalog has no value yet.
_FILLABLE_FIELDS = ("isbn", "isbn13", "publisher", "pages", "year_published")


@dataclass
class ImportResult:
    """Summary of an import operation.

    updated counts records that resolved to an existing book, whether or
    not any column actually changed.
    """

    created: int = 0
    updated: int = 0
    skipped: int = 0
    excluded: int = 0
    errors: int = 0
    by_method: Counter[str] = field(default_factory=Counter)
    unmatched: list[ImportRecord] = field(default_factory=list)
    error_details: list[tuple[str, str]] = field(default_factory=list)


# Progress callback: (record, resolution or None when skipped)
RecordCallback = Callable[[ImportRecord, Resolution | None], None]


def is_excluded(title: str, exclusions: Iterable[str]) -> bool:
    """True if the normalized title contains, or is contained in, an excluded title."""
    normalized = normalize_title(title)
    if not normalized:
        return False
    return any(excluded and (excluded in normalized or normalized in excluded)
               for excluded in exclusions)


class _CatalogIndex:
    """Name-to-id lookups for authors and series plus the slugs already taken.

    Authors and series are matched by normalized name so re-imports reuse
    them instead of minting "-2" slugs.
    """

    def __init__(self, catalog: LibraryCatalog) -> None:
        self._catalog = catalog
        self.book_slugs = catalog.book_slugs()
        self._author_slugs = catalog.author_slugs()
        self._series_slugs = catalog.series_slugs()
        self._authors: dict[str, int] = {}
        for author in catalog.list_authors():
            self._authors.setdefault(normalize_title(author.name), author.id)
        self._series: dict[str, int] = {}
        for series in catalog.list_series():
            self._series.setdefault(normalize_title(series.name), series.id)

    def author_id(self, name: str) -> int:
        key = normalize_title(name)
        if key not in self._authors:
            slug = make_unique_slug(slugify(name), self._author_slugs)
            self._authors[key] = self._catalog.add_author(name, slug)
        return self._authors[key]

    def series_id(self, name: str) -> int:
        key = normalize_title(name)
        if key not in self._series:
            slug = make_unique_slug(slugify(name), self._series_slugs)
            self._series[key] = self._catalog.add_series(name, slug)
        return self._series[key]


def _updates_for(
    book: BookRecord, record: ImportRecord, index: _CatalogIndex
) -> dict[str, Any]:
    """Columns to set on a matched book: only nulls are filled."""
    updates: dict[str, Any] = {}
    for name in _FILLABLE_FIELDS:
        value = getattr(record, name)
        if value is not None and getattr(book, name) is None:
            updates[name] = value

    if record.source == "goodreads" and record.external_id and book.goodreads_id is None:
        updates["goodreads_id"] = record.external_id
    if record.source == "kindle":
        if not book.owned_kindle:
            updates["owned_kindle"] = True
        if record.asin and book.kindle_asin is None:
            updates["kindle_asin"] = record.asin
    if record.source == "audible":
        if not book.owned_audible:
            updates["owned_audible"] = True
        if record.asin and book.audible_asin is None:
            updates["audible_asin"] = record.asin

    if record.series_name and book.series_id is None:
        updates["series_id"] = index.series_id(record.series_name)
        updates["series_order"] = record.series_order
    return updates


def _placeholder_book(record: ImportRecord, book_id: int) -> BookRecord:
    """Stand-in for a book a dry run would have created."""
    return BookRecord(
        id=book_id,
        title=record.title,
        normalized_title=normalize_title(record.title),
        slug=slugify(record.title),
        isbn=record.isbn,
        isbn13=record.isbn13,
        goodreads_id=record.external_id if record.source == "goodreads" else None,
        authors=list(record.authors),
    )


def import_records(
    records: Iterable[ImportRecord],
    catalog: LibraryCatalog,
    *,
    create_missing: bool = True,
    exclusions: Iterable[str] = (),
    dry_run: bool = False,
    on_record: RecordCallback | None = None,
) -> ImportResult:
    """Merge export records into the catalog.

    Each record is resolved against a catalog snapshot. Matches have their
    empty columns filled and ownership flags set; unmatched records become
    new books (with authors and series) when create_missing is set, and are
    reported as unmatched otherwise. Books created during the run join the
    snapshot, so a record repeated later in the same export is a match.

    Args:
        records: Parsed export records.
        catalog: The catalog to merge into.
        create_missing: Create books for records that match nothing.
        exclusions: Normalized titles to skip.
        dry_run: Resolve and count without writing.
        on_record: Optional progress callback.

    Returns:
        ImportResult with created, updated, skipped, excluded, and error counts.
    """
    exclusions = list(exclusions)
    resolver = EntityResolver.from_catalog(catalog)
    index = _CatalogIndex(catalog)
    result = ImportResult()
    placeholder_ids = 0

    for record in records:
        if is_excluded(record.title, exclusions):
            result.excluded += 1
            if on_record is not None:
                on_record(record, None)
            continue

        resolution = resolver.resolve_book(record)
        result.by_method[resolution.method] += 1
        try:
            if resolution.book is not None:
                book = resolution.book
                if not dry_run:
                    _apply_match(catalog, index, resolver, book, record)
                result.updated += 1
            elif not create_missing:
                result.skipped += 1
                result.unmatched.append(record)
            elif not record.authors:
                logger.warning("Skipping %r: no author", record.title)
                result.skipped += 1
            elif dry_run:
                placeholder_ids -= 1
                resolver.add(_placeholder_book(record, placeholder_ids))
                result.created += 1
            else:
                resolver.add(_create_book(catalog, index, record))
                result.created += 1
        except (sqlite3.Error, DuplicateBookError, ValueError) as exc:
            logger.warning("Failed to import %r: %s", record.title, exc)
            result.errors += 1
            result.error_details.append((record.title, str(exc)))
            # A rolled-back transaction may have cached ids that no longer exist.
            index = _CatalogIndex(catalog)

        if on_record is not None:
            on_record(record, resolution)

    return result


def _apply_match(
    catalog: LibraryCatalog,
    index: _CatalogIndex,
    resolver: EntityResolver,
    book: BookRecord,
    record: ImportRecord,
) -> None:
    with catalog.transaction():
        updates = _updates_for(book, record, index)
        if updates:
            catalog.update_book(book.id, **updates)
        if not book.authors:
            for name in record.authors:
                catalog.link_author(book.id, index.author_id(name))
    refreshed = catalog.get_by_id(book.id)
    if refreshed is not None:
        resolver.replace(refreshed)


def _create_book(
    catalog: LibraryCatalog, index: _CatalogIndex, record: ImportRecord
) -> BookRecord:
    with catalog.transaction():
        series_id = index.series_id(record.series_name) if record.series_name else None
        slug = make_unique_slug(slugify(record.title) or "untitled", index.book_slugs)
        book_id = catalog.add_book(record, slug, series_id=series_id)
        for name in record.authors:
            catalog.link_author(book_id, index.author_id(name))
    book = catalog.get_by_id(book_id)
    if book is None:
        raise ValueError(f"Book {record.title!r} vanished after insert")
    logger.info("Created %r (%s)", book.title, book.slug)
    return book
