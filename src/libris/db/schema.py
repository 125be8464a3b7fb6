# ABOUTME: SQL DDL statements for the Libris catalog database schema.
# ABOUTME: Defines books, authors, series, and the book-author association, plus migrations.

SCHEMA_V1 = """
CREATE TABLE series (
    id    INTEGER PRIMARY KEY AUTOINCREMENT,
    name  TEXT NOT NULL,
    slug  TEXT NOT NULL UNIQUE
);

CREATE TABLE authors (
    id    INTEGER PRIMARY KEY AUTOINCREMENT,
    name  TEXT NOT NULL,
    slug  TEXT NOT NULL UNIQUE
);

-- Core book catalog table
CREATE TABLE books (
    id               INTEGER PRIMARY KEY AUTOINCREMENT,
    title            TEXT NOT NULL,
    normalized_title TEXT NOT NULL,
    slug             TEXT NOT NULL UNIQUE,
    isbn             TEXT,
    isbn13           TEXT,
    goodreads_id     TEXT UNIQUE,
    cover_url        TEXT,
    description      TEXT,
    publisher        TEXT,
    pages            INTEGER,
    year_published   INTEGER,
    series_id        INTEGER REFERENCES series(id) ON DELETE SET NULL,
    series_order     REAL,
    owned_kindle     INTEGER NOT NULL DEFAULT 0,
    kindle_asin      TEXT,
    owned_audible    INTEGER NOT NULL DEFAULT 0,
    audible_asin     TEXT,
    date_added       TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%S', 'now')),
    date_modified    TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%S', 'now'))
);

CREATE INDEX idx_books_isbn ON books(isbn) WHERE isbn IS NOT NULL;
CREATE INDEX idx_books_isbn13 ON books(isbn13) WHERE isbn13 IS NOT NULL;
CREATE INDEX idx_books_normalized_title ON books(normalized_title);
CREATE INDEX idx_books_series ON books(series_id) WHERE series_id IS NOT NULL;

CREATE TABLE book_authors (
    book_id   INTEGER NOT NULL REFERENCES books(id) ON DELETE CASCADE,
    author_id INTEGER NOT NULL REFERENCES authors(id) ON DELETE CASCADE,
    role      TEXT NOT NULL DEFAULT 'author',
    position  INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (book_id, author_id, role)
);

CREATE INDEX idx_book_authors_author ON book_authors(author_id);

-- Schema versioning for future migrations
CREATE TABLE schema_version (
    version    INTEGER NOT NULL,
    applied_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%S', 'now'))
);

INSERT INTO schema_version (version) VALUES (1);
"""

# Provider ids, provenance, and enrichment bookkeeping on books.
MIGRATION_V2 = """
ALTER TABLE books ADD COLUMN openlibrary_id TEXT;
ALTER TABLE books ADD COLUMN google_books_id TEXT;
ALTER TABLE books ADD COLUMN cover_source TEXT;
ALTER TABLE books ADD COLUMN enrichment_status TEXT NOT NULL DEFAULT 'PENDING';
ALTER TABLE books ADD COLUMN enriched_at TEXT;

CREATE INDEX idx_books_enrichment_status ON books(enrichment_status);

INSERT INTO schema_version (version) VALUES (2);
"""

# Author enrichment fields.
MIGRATION_V3 = """
ALTER TABLE authors ADD COLUMN last_name TEXT NOT NULL DEFAULT '';
ALTER TABLE authors ADD COLUMN openlibrary_id TEXT;
ALTER TABLE authors ADD COLUMN bio TEXT;
ALTER TABLE authors ADD COLUMN photo_url TEXT;
ALTER TABLE authors ADD COLUMN birth_date TEXT;
ALTER TABLE authors ADD COLUMN death_date TEXT;
ALTER TABLE authors ADD COLUMN enriched_at TEXT;

CREATE INDEX idx_authors_last_name ON authors(last_name);

INSERT INTO schema_version (version) VALUES (3);
"""

MIGRATIONS: list[tuple[int, str]] = [
    (2, MIGRATION_V2),
    (3, MIGRATION_V3),
]
