"""Key/value storage for offline mode.

Values are JSON-encoded and stored under fixed key names (see KEYS and the
key helpers). Each call is one SQLite transaction; ``update_item`` runs a
read-modify-write inside a single transaction so per-key updates are atomic.
"""

from __future__ import annotations

import json
import sqlite3
from pathlib import Path
from typing import Any, Callable

import structlog

from tradebench.db.database import DEFAULT_DB_PATH, get_db, init_db
from tradebench.errors import BackendError

logger = structlog.get_logger(__name__)

KEYS = {
    "users": "tradebench_users",
    "profiles": "tradebench_profiles",
    "session": "tradebench_session",
    "selected_year": "tradebench_selected_year",
}


def progress_key(user_id: str, year: int) -> str:
    """Key holding one (user, year) progress document."""
    return f"tradebench_user_progress_{user_id}_y{year}"


def bookmarks_key(user_id: str) -> str:
    return f"tradebench_bookmarks_{user_id}"


def quiz_sessions_key(user_id: str) -> str:
    return f"tradebench_quiz_sessions_{user_id}"


def user_key_prefixes(user_id: str) -> list[str]:
    """Key prefixes owned by a user (removed together on account deletion)."""
    return [
        f"tradebench_user_progress_{user_id}_y",
        bookmarks_key(user_id),
        quiz_sessions_key(user_id),
    ]


class LocalStorage:
    """JSON key/value store backed by a SQLite file."""

    def __init__(self, db_path: Path | None = None):
        self.db_path = init_db(db_path or DEFAULT_DB_PATH)

    def get_item(self, key: str, default: Any = None) -> Any:
        """Return the decoded value for key, or default if absent."""
        try:
            with get_db(self.db_path) as conn:
                row = conn.execute(
                    "SELECT value FROM kv_store WHERE key = ?", (key,)
                ).fetchone()
        except sqlite3.Error as e:
            raise BackendError(f"Local storage read failed: {e}") from e

        if row is None:
            return default
        return _decode(key, row["value"])

    def set_item(self, key: str, value: Any) -> None:
        """Store value under key, replacing any previous value."""
        try:
            with get_db(self.db_path) as conn:
                _write(conn, key, value)
        except sqlite3.Error as e:
            raise BackendError(f"Local storage write failed: {e}") from e

        logger.debug("local_storage.set", key=key)

    def update_item(self, key: str, fn: Callable[[Any], Any], default: Any = None) -> Any:
        """Atomically replace the value under key with fn(current).

        fn receives the current value (or default) and returns the new one.
        Exceptions raised by fn abort the transaction and propagate.

        Returns:
            The value written.
        """
        try:
            with get_db(self.db_path) as conn:
                # Take the write lock before reading
                conn.execute("BEGIN IMMEDIATE")
                row = conn.execute(
                    "SELECT value FROM kv_store WHERE key = ?", (key,)
                ).fetchone()
                current = default if row is None else _decode(key, row["value"])
                new_value = fn(current)
                _write(conn, key, new_value)
        except sqlite3.Error as e:
            raise BackendError(f"Local storage write failed: {e}") from e

        logger.debug("local_storage.updated", key=key)
        return new_value

    def remove_item(self, key: str) -> bool:
        """Delete key. Returns True if it existed."""
        try:
            with get_db(self.db_path) as conn:
                cursor = conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
        except sqlite3.Error as e:
            raise BackendError(f"Local storage delete failed: {e}") from e

        return cursor.rowcount > 0

    def remove_prefix(self, prefix: str) -> int:
        """Delete every key starting with prefix. Returns the count removed."""
        try:
            with get_db(self.db_path) as conn:
                cursor = conn.execute(
                    "DELETE FROM kv_store WHERE substr(key, 1, ?) = ?",
                    (len(prefix), prefix),
                )
        except sqlite3.Error as e:
            raise BackendError(f"Local storage delete failed: {e}") from e

        return cursor.rowcount

    def keys(self, prefix: str = "") -> list[str]:
        """List keys, optionally restricted to a prefix."""
        try:
            with get_db(self.db_path) as conn:
                rows = conn.execute(
                    "SELECT key FROM kv_store WHERE substr(key, 1, ?) = ? ORDER BY key",
                    (len(prefix), prefix),
                ).fetchall()
        except sqlite3.Error as e:
            raise BackendError(f"Local storage read failed: {e}") from e

        return [row["key"] for row in rows]

    def clear(self) -> None:
        """Remove everything."""
        try:
            with get_db(self.db_path) as conn:
                conn.execute("DELETE FROM kv_store")
        except sqlite3.Error as e:
            raise BackendError(f"Local storage clear failed: {e}") from e


def _write(conn: sqlite3.Connection, key: str, value: Any) -> None:
    conn.execute(
        """
        INSERT INTO kv_store (key, value, updated_at)
        VALUES (?, ?, datetime('now'))
        ON CONFLICT(key) DO UPDATE SET
            value = excluded.value,
            updated_at = excluded.updated_at
        """,
        (key, json.dumps(value, ensure_ascii=False)),
    )


def _decode(key: str, raw: str) -> Any:
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise BackendError(f"Corrupt value in local storage for {key}: {e}") from e
