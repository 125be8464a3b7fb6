# ABOUTME: Integration tests for the import pipeline with real exports and a real catalog.
# ABOUTME: Validates Goodreads seeding, stable re-imports, and Kindle/Audible ownership merges.

from pathlib import Path

from libris.core.exports import load_export, parse_goodreads_entry
from libris.core.importer import import_records
from libris.core.resolver import METHOD_ISBN, METHOD_NONE, METHOD_TITLE
from libris.db.catalog import LibraryCatalog


def _import(catalog: LibraryCatalog, path: Path, source: str, **kwargs):
    return import_records(load_export(path, source), catalog, **kwargs)


class TestGoodreadsImport:
    """Goodreads exports seed the catalog."""

    def test_seeds_books_authors_and_series(
        self, catalog: LibraryCatalog, goodreads_export: Path
    ) -> None:
        result = _import(catalog, goodreads_export, "goodreads")

        assert result.created == 4
        assert result.errors == 0
        assert sorted(a.name for a in catalog.list_authors()) == [
            "Brandon Sanderson",
            "Erin Morgenstern",
            "Frank Herbert",
        ]
        (series,) = catalog.list_series()
        assert series.name == "The Stormlight Archive"
        assert [b.title for b in catalog.list_by_series(series.id)] == [
            "The Way of Kings",
            "Words of Radiance",
        ]
        twok = catalog.get_by_goodreads_id("7235533")
        assert twok.isbn13 == "9780765326355"
        assert twok.slug == "the-way-of-kings"

    def test_reimport_changes_nothing(
        self, catalog: LibraryCatalog, goodreads_export: Path
    ) -> None:
        _import(catalog, goodreads_export, "goodreads")
        before = [(b.id, b.slug) for b in catalog.list_all()]
        again = _import(catalog, goodreads_export, "goodreads")

        assert (again.created, again.updated) == (0, 4)
        assert [(b.id, b.slug) for b in catalog.list_all()] == before
        assert len(catalog.list_authors()) == 3
        assert len(catalog.list_series()) == 1


class TestOwnershipImports:
    """Kindle and Audible exports mark owned copies of cataloged books."""

    def test_kindle_matches_and_reports_unmatched(
        self, catalog: LibraryCatalog, goodreads_export: Path, kindle_export: Path
    ) -> None:
        _import(catalog, goodreads_export, "goodreads")
        result = _import(catalog, kindle_export, "kindle", create_missing=False)

        assert result.updated == 2
        assert result.by_method[METHOD_TITLE] == 2
        assert result.by_method[METHOD_NONE] == 1
        assert [r.title for r in result.unmatched] == ["Kindred"]
        circus = catalog.get_by_isbn("9780385534635")
        assert circus.owned_kindle is True
        assert circus.kindle_asin == "B00DA6YEKS"
        assert catalog.count_books() == 4

    def test_audible_sets_ownership_and_keeps_series(
        self, catalog: LibraryCatalog, goodreads_export: Path, audible_export: Path
    ) -> None:
        _import(catalog, goodreads_export, "goodreads")
        twok_before = catalog.get_by_goodreads_id("7235533")
        _import(catalog, audible_export, "audible")

        twok = catalog.get_by_goodreads_id("7235533")
        assert twok.owned_audible is True
        assert twok.audible_asin == "B003ZWFO7E"
        assert twok.series_id == twok_before.series_id
        assert len(catalog.list_series()) == 1

    def test_audible_into_empty_catalog_creates_series(
        self, catalog: LibraryCatalog, audible_export: Path
    ) -> None:
        result = _import(catalog, audible_export, "audible", create_missing=True)
        assert result.created == 1
        (book,) = catalog.list_all()
        assert book.owned_audible is True
        assert book.series_order == 1.0
        assert catalog.get_series(book.series_id).name == "The Stormlight Archive"


class TestSingleRecordScenario:
    """A single Stormlight entry against an empty catalog, imported twice."""

    def test_create_then_noop_update(self, catalog: LibraryCatalog) -> None:
        entry = {
            "title": "The Way of Kings (The Stormlight Archive, #1)",
            "author": "Brandon Sanderson",
            "isbn": "9780765326355",
        }
        first = import_records([parse_goodreads_entry(entry)], catalog)
        assert first.created == 1
        (book,) = catalog.list_all()
        assert book.title == "The Way of Kings"
        assert book.authors == ["Brandon Sanderson"]
        assert book.series_order == 1.0
        assert catalog.get_series(book.series_id).name == "The Stormlight Archive"

        second = import_records([parse_goodreads_entry(entry)], catalog)
        assert (second.created, second.updated) == (0, 1)
        assert second.by_method[METHOD_ISBN] == 1
        assert catalog.count_books() == 1
