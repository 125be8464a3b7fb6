# ABOUTME: Integration tests for catalog lifecycle: create, insert, close, reopen, query.
# ABOUTME: Validates that data and the schema version persist across connections.

from pathlib import Path

from libris.db.catalog import LibraryCatalog
from libris.db.connection import open_catalog
from libris.db.schema import MIGRATIONS
from tests.fixtures.catalog_data import add_book


class TestCatalogLifecycle:
    """Integration tests for full DB lifecycle."""

    def test_create_insert_reopen_query(self, tmp_path: Path) -> None:
        db_path = tmp_path / "nested" / "library.db"

        conn = open_catalog(db_path)
        book_id = add_book(LibraryCatalog(conn), "Kindred", ["Octavia E. Butler"])
        conn.close()

        conn = open_catalog(db_path)
        book = LibraryCatalog(conn).get_by_id(book_id)
        conn.close()
        assert book.title == "Kindred"
        assert book.authors == ["Octavia E. Butler"]

    def test_schema_version_is_latest_after_reopen(self, tmp_path: Path) -> None:
        db_path = tmp_path / "library.db"
        open_catalog(db_path).close()

        conn = open_catalog(db_path)
        versions = [row[0] for row in conn.execute("SELECT version FROM schema_version")]
        conn.close()
        assert max(versions) == MIGRATIONS[-1][0]
        assert len(versions) == len(set(versions))
