"""Opens the listings database.

The API keeps one connection for its lifetime; each CLI command opens its own
and closes it when done.  A sync and the API may share the same file, so
connections use WAL and wait on a locked database instead of failing.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Optional

from carlisting.config import settings

_BUSY_TIMEOUT_MS = 5000


def get_connection(db_path: Optional[Path] = None) -> sqlite3.Connection:
    """Return a connection to *db_path* (``settings.db_path`` by default).

    Rows come back as :class:`sqlite3.Row`.  Foreign keys are enforced so
    deleting a listing removes its meta, terms and images.  ``":memory:"``
    gives a private throwaway database for tests.
    """
    path = db_path or settings.db_path
    if str(path) != ":memory:":
        settings.ensure_workspace()

    conn = sqlite3.connect(str(path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    conn.execute("PRAGMA journal_mode = WAL")
    conn.execute(f"PRAGMA busy_timeout = {_BUSY_TIMEOUT_MS}")
    return conn
