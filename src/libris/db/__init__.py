# ABOUTME: Public API for the Libris catalog database layer.
# ABOUTME: Exports connection management, catalog operations, and record types.

from libris.db.catalog import DuplicateBookError, LibraryCatalog
from libris.db.connection import DEFAULT_DATA_DIR, DEFAULT_DB_PATH, open_catalog
from libris.db.mapping import AuthorRecord, BookRecord, SeriesRecord

__all__ = [
    "DEFAULT_DATA_DIR",
    "DEFAULT_DB_PATH",
    "AuthorRecord",
    "BookRecord",
    "DuplicateBookError",
    "LibraryCatalog",
    "SeriesRecord",
    "open_catalog",
]
