# ABOUTME: Opens the Libris catalog database, creating and migrating it as needed.
# ABOUTME: Every connection gets WAL mode, enforced foreign keys, and sqlite3.Row rows.

import logging
import sqlite3
from pathlib import Path

from libris.db.schema import MIGRATIONS, SCHEMA_V1

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path.home() / ".libris"
DEFAULT_DB_PATH = DEFAULT_DATA_DIR / "library.db"


def schema_version(conn: sqlite3.Connection) -> int:
    """Highest applied schema version; 0 for a database with no schema yet."""
    has_table = conn.execute(
        "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = 'schema_version'"
    ).fetchone()
    if has_table is None:
        return 0
    row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
    return row[0] or 0


def migrate(conn: sqlite3.Connection) -> list[int]:
    """Bring the schema up to date and return the versions applied.

    A new database gets the v1 DDL first; numbered migrations above the
    current version then run in order.
    """
    applied: list[int] = []
    current = schema_version(conn)
    if current == 0:
        conn.executescript(SCHEMA_V1)
        current = 1
        applied.append(1)
    for version, sql in MIGRATIONS:
        if version > current:
            logger.info("Migrating catalog schema to v%d", version)
            conn.executescript(sql)
            applied.append(version)
    return applied


def open_catalog(path: Path | None = None) -> sqlite3.Connection:
    """Open or create the catalog database at path (default ~/.libris/library.db).

    Parent directories are created as needed and the schema is migrated
    before the connection is returned.
    """
    db_path = path or DEFAULT_DB_PATH
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(str(db_path))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    migrate(conn)
    return conn
