"""SQLite connection and schema for the derived note index."""

from __future__ import annotations

import sqlite3
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path

_SCHEMA = """
    CREATE TABLE IF NOT EXISTS notes (
        name TEXT PRIMARY KEY,
        file_name TEXT NOT NULL UNIQUE
    );

    CREATE TABLE IF NOT EXISTS links (
        from_name TEXT NOT NULL REFERENCES notes(name) ON DELETE CASCADE ON UPDATE CASCADE,
        to_name TEXT NOT NULL REFERENCES notes(name) ON DELETE CASCADE ON UPDATE CASCADE,
        PRIMARY KEY (from_name, to_name)
    );

    CREATE INDEX IF NOT EXISTS links_to ON links(to_name);
"""


def get_conn(db_path: Path) -> sqlite3.Connection:
    """Open the index with WAL mode and foreign key enforcement.

    The connection may be used from worker threads; callers serialize access.
    A 0-byte file is reported instead of surfacing an opaque I/O error.
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    if db_path.exists() and db_path.stat().st_size == 0:
        msg = (
            f"SQLite DB is empty (0 bytes): {db_path}\n"
            f"Fix: rm {db_path}* && notewalk reindex"
        )
        raise sqlite3.OperationalError(msg)
    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    try:
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")
    except sqlite3.OperationalError as exc:
        conn.close()
        raise sqlite3.OperationalError(
            f"Failed to open DB {db_path} — may be corrupt.\n"
            f"Fix: rm {db_path}* && notewalk reindex\n"
            f"Original error: {exc}"
        ) from exc
    ensure_schema(conn)
    return conn


def ensure_schema(conn: sqlite3.Connection) -> None:
    conn.executescript(_SCHEMA)
