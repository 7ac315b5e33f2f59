"""Offline persistence.

Provides:
- SQLite connection management and schema initialization
- LocalStorage: JSON key/value store used by the offline client
"""

from tradebench.db.database import get_db, init_db
from tradebench.db.local_storage import LocalStorage

__all__ = ["get_db", "init_db", "LocalStorage"]
