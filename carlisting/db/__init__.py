"""Database layer package.

Public re-exports so callers can write::

    from carlisting.db import get_connection, init_db
"""

from carlisting.db.connection import get_connection
from carlisting.db.migrations import init_db

__all__ = ["get_connection", "init_db"]
