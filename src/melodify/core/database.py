"""
SQLite key/value storage for Melodify

The collection is persisted as opaque JSON blobs keyed by name; nothing
here knows about playlists or tracks.
"""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from loguru import logger

from .config import get_data_dir

SCHEMA_VERSION = 1

_database_path: Optional[Path] = None


def get_database_path() -> Path:
    """Get the path to the SQLite database file."""
    if _database_path is not None:
        return _database_path
    return get_data_dir() / "melodify.db"


def set_database_path(path: Optional[Path]) -> None:
    """Point all connections at a different database file (None restores the default)."""
    global _database_path
    _database_path = path


@contextmanager
def get_db_connection() -> Iterator[sqlite3.Connection]:
    """Get a database connection with proper cleanup."""
    db_path = get_database_path()
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path, timeout=30.0)
    conn.row_factory = sqlite3.Row

    try:
        yield conn
    finally:
        conn.close()


def init_database() -> None:
    """Create the key/value table if needed."""
    with get_db_connection() as conn:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY
            )
        """)
        conn.execute(
            "INSERT OR IGNORE INTO schema_version (version) VALUES (?)",
            (SCHEMA_VERSION,),
        )
        conn.commit()
    logger.debug(f"Database ready: {get_database_path()}")


def read_value(key: str) -> Optional[str]:
    """Return the stored value for key, or None when absent."""
    with get_db_connection() as conn:
        cursor = conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,))
        row = cursor.fetchone()
        return row["value"] if row else None


def write_value(key: str, value: str) -> None:
    """Insert or replace the value stored under key."""
    with get_db_connection() as conn:
        conn.execute(
            """
            INSERT OR REPLACE INTO kv_store (key, value, updated_at)
            VALUES (?, ?, CURRENT_TIMESTAMP)
            """,
            (key, value),
        )
        conn.commit()


def delete_value(key: str) -> None:
    """Remove key from the store (no-op when absent)."""
    with get_db_connection() as conn:
        conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
        conn.commit()
