# ABOUTME: CRUD operations for the Libris catalog: books, authors, series, and their links.
# ABOUTME: Commits per operation unless inside transaction(), which groups writes atomically.

import sqlite3
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from enum import Enum
from typing import Any

from libris.db.mapping import (
    AuthorRecord,
    BookRecord,
    SeriesRecord,
    import_to_row,
    row_to_author,
    row_to_book,
    row_to_series,
)
from libris.metadata.normalizer import last_name, normalize_title
from libris.metadata.types import EnrichmentStatus, ImportRecord

_NOW = "strftime('%Y-%m-%dT%H:%M:%S', 'now')"


class DuplicateBookError(Exception):
    """Raised when a book's slug or Goodreads id is already in the catalog."""


def _sql_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    return value


def _placeholders(count: int) -> str:
    return ", ".join("?" for _ in range(count))


class LibraryCatalog:
    """Wraps a sqlite3 connection and provides typed CRUD for the catalog tables."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._in_transaction = False

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Group writes so they commit together or not at all.

        Nested calls join the outer transaction.
        """
        if self._in_transaction:
            yield
            return
        self._in_transaction = True
        try:
            yield
        except BaseException:
            self._conn.rollback()
            raise
        else:
            self._conn.commit()
        finally:
            self._in_transaction = False

    def _commit(self) -> None:
        if not self._in_transaction:
            self._conn.commit()

    # --- Book operations ---

    def add_book(
        self,
        record: ImportRecord,
        slug: str,
        *,
        series_id: int | None = None,
    ) -> int:
        """Add a book to the catalog.

        Args:
            record: The imported book data.
            slug: A slug not yet used by any book.
            series_id: Series the book belongs to, if any.

        Returns:
            The row ID of the inserted book.

        Raises:
            DuplicateBookError: If the slug or Goodreads id already exists.
        """
        row = import_to_row(record, slug)
        row["series_id"] = series_id
        columns = ", ".join(row.keys())

        try:
            cursor = self._conn.execute(
                f"INSERT INTO books ({columns}) VALUES ({_placeholders(len(row))})",
                list(row.values()),
            )
            self._commit()
        except sqlite3.IntegrityError as exc:
            if "UNIQUE constraint failed: books." in str(exc):
                raise DuplicateBookError(f"Book {record.title!r} already exists: {exc}") from exc
            raise

        return cursor.lastrowid  # type: ignore[return-value]

    def get_by_id(self, book_id: int) -> BookRecord | None:
        """Retrieve a book by its row ID."""
        return self._fetch_one_book("SELECT * FROM books WHERE id = ?", (book_id,))

    def get_by_slug(self, slug: str) -> BookRecord | None:
        return self._fetch_one_book("SELECT * FROM books WHERE slug = ?", (slug,))

    def get_by_goodreads_id(self, goodreads_id: str) -> BookRecord | None:
        return self._fetch_one_book(
            "SELECT * FROM books WHERE goodreads_id = ?", (goodreads_id,)
        )

    def get_by_isbn(self, isbn: str) -> BookRecord | None:
        """Retrieve a book whose ISBN-10 or ISBN-13 equals isbn."""
        return self._fetch_one_book(
            "SELECT * FROM books WHERE isbn = ? OR isbn13 = ? ORDER BY id LIMIT 1",
            (isbn, isbn),
        )

    def list_all(self) -> list[BookRecord]:
        """Return all books in the catalog, ordered by id."""
        return self._fetch_books("SELECT * FROM books ORDER BY id", ())

    def list_page(self, offset: int, limit: int) -> list[BookRecord]:
        """Return a page of all books ordered by id."""
        return self._fetch_books(
            "SELECT * FROM books ORDER BY id LIMIT ? OFFSET ?", (limit, offset)
        )

    def count_books(self) -> int:
        return self._conn.execute("SELECT COUNT(*) FROM books").fetchone()[0]

    def count_by_status(self, statuses: Iterable[EnrichmentStatus]) -> int:
        values = [status.value for status in statuses]
        cursor = self._conn.execute(
            f"SELECT COUNT(*) FROM books WHERE enrichment_status IN ({_placeholders(len(values))})",
            values,
        )
        return cursor.fetchone()[0]

    def list_by_status(
        self,
        statuses: Iterable[EnrichmentStatus],
        *,
        offset: int = 0,
        limit: int = -1,
    ) -> list[BookRecord]:
        """Books in any of the given enrichment statuses, ordered by id."""
        values = [status.value for status in statuses]
        return self._fetch_books(
            f"SELECT * FROM books WHERE enrichment_status IN ({_placeholders(len(values))}) "
            "ORDER BY id LIMIT ? OFFSET ?",
            (*values, limit, offset),
        )

    def list_with_covers(self) -> list[BookRecord]:
        return self._fetch_books(
            "SELECT * FROM books WHERE cover_url IS NOT NULL ORDER BY id", ()
        )

    def list_by_series(self, series_id: int) -> list[BookRecord]:
        """Return books in a given series, ordered by series_order."""
        return self._fetch_books(
            "SELECT * FROM books WHERE series_id = ? ORDER BY series_order, id",
            (series_id,),
        )

    def book_slugs(self) -> set[str]:
        return {row[0] for row in self._conn.execute("SELECT slug FROM books")}

    def update_book(self, book_id: int, **fields: Any) -> None:
        """Update one or more fields on a cataloged book.

        Accepts keyword arguments matching books table columns. Setting
        title also refreshes normalized_title.

        Raises:
            ValueError: If the book_id does not exist.
        """
        if not fields:
            return

        if "title" in fields:
            fields["normalized_title"] = normalize_title(fields["title"])

        set_clause = ", ".join(f"{k} = ?" for k in fields)
        set_clause += f", date_modified = {_NOW}"
        values = [*(_sql_value(v) for v in fields.values()), book_id]

        cursor = self._conn.execute(f"UPDATE books SET {set_clause} WHERE id = ?", values)
        self._commit()

        if cursor.rowcount == 0:
            raise ValueError(f"Book with id {book_id} not found")

    # --- Author operations ---

    def add_author(self, name: str, slug: str) -> int:
        cursor = self._conn.execute(
            "INSERT INTO authors (name, slug, last_name) VALUES (?, ?, ?)",
            (name, slug, last_name(name)),
        )
        self._commit()
        return cursor.lastrowid  # type: ignore[return-value]

    def get_author(self, author_id: int) -> AuthorRecord | None:
        row = self._conn.execute(
            "SELECT * FROM authors WHERE id = ?", (author_id,)
        ).fetchone()
        return row_to_author(row) if row else None

    def get_author_by_slug(self, slug: str) -> AuthorRecord | None:
        row = self._conn.execute("SELECT * FROM authors WHERE slug = ?", (slug,)).fetchone()
        return row_to_author(row) if row else None

    def list_authors(self) -> list[AuthorRecord]:
        """All authors with their linked-book counts, ordered by id."""
        cursor = self._conn.execute(
            "SELECT a.*, COUNT(ba.book_id) AS book_count FROM authors a "
            "LEFT JOIN book_authors ba ON ba.author_id = a.id "
            "GROUP BY a.id ORDER BY a.id"
        )
        return [row_to_author(row) for row in cursor.fetchall()]

    def author_slugs(self) -> set[str]:
        return {row[0] for row in self._conn.execute("SELECT slug FROM authors")}

    def authors_for_book(self, book_id: int) -> list[AuthorRecord]:
        cursor = self._conn.execute(
            "SELECT a.* FROM authors a JOIN book_authors ba ON ba.author_id = a.id "
            "WHERE ba.book_id = ? ORDER BY ba.position, a.id",
            (book_id,),
        )
        return [row_to_author(row) for row in cursor.fetchall()]

    def books_for_author(self, author_id: int) -> list[BookRecord]:
        return self._fetch_books(
            "SELECT b.* FROM books b JOIN book_authors ba ON ba.book_id = b.id "
            "WHERE ba.author_id = ? ORDER BY b.id",
            (author_id,),
        )

    def update_author(self, author_id: int, **fields: Any) -> None:
        """Update one or more fields on an author.

        Raises:
            ValueError: If the author_id does not exist.
        """
        if not fields:
            return
        if "name" in fields:
            fields["last_name"] = last_name(fields["name"])

        set_clause = ", ".join(f"{k} = ?" for k in fields)
        cursor = self._conn.execute(
            f"UPDATE authors SET {set_clause} WHERE id = ?",
            [*fields.values(), author_id],
        )
        self._commit()

        if cursor.rowcount == 0:
            raise ValueError(f"Author with id {author_id} not found")

    def delete_author(self, author_id: int) -> None:
        """Delete an author and, by cascade, its book links.

        Raises:
            ValueError: If the author_id does not exist.
        """
        cursor = self._conn.execute("DELETE FROM authors WHERE id = ?", (author_id,))
        self._commit()

        if cursor.rowcount == 0:
            raise ValueError(f"Author with id {author_id} not found")

    def link_author(self, book_id: int, author_id: int) -> bool:
        """Link an author to a book after its existing authors. Idempotent.

        Returns True if a new link was created.
        """
        cursor = self._conn.execute(
            "INSERT OR IGNORE INTO book_authors (book_id, author_id, position) "
            "SELECT ?, ?, COUNT(*) FROM book_authors WHERE book_id = ?",
            (book_id, author_id, book_id),
        )
        self._commit()
        return cursor.rowcount > 0

    def reassign_author_links(self, from_author_id: int, to_author_id: int) -> tuple[int, int]:
        """Move every book link from one author to another.

        A link the target author already has is dropped rather than
        duplicated.

        Returns:
            (links reassigned, duplicate links removed)
        """
        cursor = self._conn.execute(
            "DELETE FROM book_authors WHERE author_id = ? AND EXISTS ("
            "  SELECT 1 FROM book_authors other"
            "  WHERE other.author_id = ? AND other.book_id = book_authors.book_id"
            "  AND other.role = book_authors.role)",
            (from_author_id, to_author_id),
        )
        removed = cursor.rowcount
        cursor = self._conn.execute(
            "UPDATE book_authors SET author_id = ? WHERE author_id = ?",
            (to_author_id, from_author_id),
        )
        reassigned = cursor.rowcount
        self._commit()
        return reassigned, removed

    # --- Series operations ---

    def add_series(self, name: str, slug: str) -> int:
        cursor = self._conn.execute(
            "INSERT INTO series (name, slug) VALUES (?, ?)", (name, slug)
        )
        self._commit()
        return cursor.lastrowid  # type: ignore[return-value]

    def get_series(self, series_id: int) -> SeriesRecord | None:
        row = self._conn.execute("SELECT * FROM series WHERE id = ?", (series_id,)).fetchone()
        return row_to_series(row) if row else None

    def list_series(self) -> list[SeriesRecord]:
        """All series with their book counts, ordered by id."""
        cursor = self._conn.execute(
            "SELECT s.*, COUNT(b.id) AS book_count FROM series s "
            "LEFT JOIN books b ON b.series_id = s.id "
            "GROUP BY s.id ORDER BY s.id"
        )
        return [row_to_series(row) for row in cursor.fetchall()]

    def move_series_books(self, from_series_id: int, to_series_id: int) -> int:
        """Point every book of one series at another. Returns the number moved."""
        cursor = self._conn.execute(
            "UPDATE books SET series_id = ? WHERE series_id = ?",
            (to_series_id, from_series_id),
        )
        self._commit()
        return cursor.rowcount

    def delete_series(self, series_id: int) -> None:
        """Delete a series; books still in it lose their series_id.

        Raises:
            ValueError: If the series_id does not exist.
        """
        cursor = self._conn.execute("DELETE FROM series WHERE id = ?", (series_id,))
        self._commit()

        if cursor.rowcount == 0:
            raise ValueError(f"Series with id {series_id} not found")

    def series_slugs(self) -> set[str]:
        return {row[0] for row in self._conn.execute("SELECT slug FROM series")}

    # --- Row loading ---

    def _fetch_one_book(self, sql: str, params: tuple[Any, ...]) -> BookRecord | None:
        books = self._fetch_books(sql, params)
        return books[0] if books else None

    def _fetch_books(self, sql: str, params: tuple[Any, ...]) -> list[BookRecord]:
        """Run a books query and attach each book's author names in link order."""
        rows = self._conn.execute(sql, params).fetchall()
        if not rows:
            return []
        names = self._author_names_by_book([row["id"] for row in rows])
        return [row_to_book(row, names.get(row["id"], [])) for row in rows]

    def _author_names_by_book(self, book_ids: list[int]) -> dict[int, list[str]]:
        names: dict[int, list[str]] = {}
        # SQLite caps bound parameters; chunk large lookups.
        for start in range(0, len(book_ids), 500):
            chunk = book_ids[start : start + 500]
            cursor = self._conn.execute(
                "SELECT ba.book_id, a.name FROM book_authors ba "
                "JOIN authors a ON a.id = ba.author_id "
                f"WHERE ba.book_id IN ({_placeholders(len(chunk))}) "
                "ORDER BY ba.book_id, ba.position, a.id",
                chunk,
            )
            for book_id, name in cursor.fetchall():
                names.setdefault(book_id, []).append(name)
        return names
