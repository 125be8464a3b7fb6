# ABOUTME: Shared pytest fixtures for Libris tests.
# ABOUTME: Provides a throwaway catalog database and sample Goodreads, Kindle, and Audible exports.

import json
from collections.abc import Iterator
from pathlib import Path

import pytest

from libris.db.catalog import LibraryCatalog
from libris.db.connection import open_catalog


@pytest.fixture
def fixtures_dir() -> Path:
    """Path to the test fixtures directory."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "library.db"


@pytest.fixture
def catalog(db_path: Path) -> Iterator[LibraryCatalog]:
    """A fresh, fully migrated catalog that is closed after the test."""
    conn = open_catalog(db_path)
    yield LibraryCatalog(conn)
    conn.close()


def _write_export(path: Path, books: list[dict]) -> Path:
    path.write_text(json.dumps({"books": books}), encoding="utf-8")
    return path


@pytest.fixture
def goodreads_export(tmp_path: Path) -> Path:
    """Two Stormlight books and two standalones, as a Goodreads export."""
    return _write_export(
        tmp_path / "goodreads.json",
        [
            {
                "bookId": "7235533",
                "title": "The Way of Kings (The Stormlight Archive, #1)",
                "author": "Sanderson, Brandon",
                "isbn": '="0765326353"',
                "isbn13": '="9780765326355"',
                "publisher": "Tor Books",
                "pages": "1007",
                "yearPublished": "2010",
            },
            {
                "bookId": "17332218",
                "title": "Words of Radiance (The Stormlight Archive, #2)",
                "author": "Brandon Sanderson",
                "isbn": "",
                "isbn13": "9780765326362",
                "pages": "1087",
            },
            {
                "bookId": "29588376",
                "title": "The Night Circus",
                "author": "Erin Morgenstern",
                "isbn13": "9780385534635",
            },
            {
                "bookId": "234225",
                "title": "Dune",
                "author": "Frank Herbert",
                "originalPublicationYear": 1965,
            },
        ],
    )


@pytest.fixture
def kindle_export(tmp_path: Path) -> Path:
    """A Kindle export with one title that matches the Goodreads sample by fuzzy title."""
    return _write_export(
        tmp_path / "kindle.json",
        [
            {"asin": "B003P2WO5E", "title": "The Way of Kings", "author": "Brandon Sanderson"},
            {"asin": "B00DA6YEKS", "title": "The Night Circus", "author": "Morgenstern, Erin"},
            {"asin": "B000FA5M3K", "title": "Kindred", "author": "Octavia E. Butler"},
        ],
    )


@pytest.fixture
def audible_export(tmp_path: Path) -> Path:
    return _write_export(
        tmp_path / "audible.json",
        [
            {
                "asin": "B003ZWFO7E",
                "title": "The Way of Kings",
                "author": "Brandon Sanderson",
                "series": "The Stormlight Archive",
                "seriesOrder": "1",
            },
        ],
    )
