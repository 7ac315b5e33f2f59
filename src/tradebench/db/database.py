"""SQLite connection and schema management for offline storage.

Offline mode keeps every record as a JSON value under a fixed key, the way
a browser's local storage would. This module owns the single table.
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

import structlog

logger = structlog.get_logger(__name__)

# Default database location
DEFAULT_DB_PATH = Path("data/state/tradebench.db")


def init_db(db_path: Path | None = None) -> Path:
    """Initialize database with schema.

    Creates the database file and the key/value table if they don't exist.

    Args:
        db_path: Path to database file. Defaults to data/state/tradebench.db

    Returns:
        The resolved database path.
    """
    db_path = db_path or DEFAULT_DB_PATH

    with get_db(db_path) as conn:
        _create_schema(conn)

    logger.info("database.initialized", path=str(db_path))
    return db_path


@contextmanager
def get_db(db_path: Path | None = None) -> Generator[sqlite3.Connection, None, None]:
    """Get database connection as context manager.

    Commits on success, rolls back on any exception.

    Example:
        with get_db(path) as conn:
            row = conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
    """
    db_path = db_path or DEFAULT_DB_PATH

    # Ensure directory exists
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row

    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def _create_schema(conn: sqlite3.Connection) -> None:
    """Create database schema. Uses IF NOT EXISTS for idempotency."""
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS kv_store (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL,
            updated_at TEXT NOT NULL DEFAULT (datetime('now'))
        );
        """
    )
