"""TTL key/value store carrying batch state between independent calls.

State is kept in the ``session_cache`` table so every process that opens the
same database file sees the same sessions.
"""

from __future__ import annotations

import json
import sqlite3
import time
from typing import Any, Callable, Optional, Protocol


class SessionCache(Protocol):
    def get(self, key: str) -> Optional[Any]:
        """Return the stored value, or ``None`` if missing or expired."""

    def set(self, key: str, value: Any, ttl: float) -> None:
        """Store a JSON-serialisable *value* for *ttl* seconds."""

    def delete(self, key: str) -> None:
        """Remove *key*; a no-op when absent."""


class SqliteSessionCache:
    """:class:`SessionCache` backed by the ``session_cache`` table."""

    def __init__(
        self,
        conn: sqlite3.Connection,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.conn = conn
        self._clock = clock

    def get(self, key: str) -> Optional[Any]:
        row = self.conn.execute(
            "SELECT payload, expires_at FROM session_cache WHERE cache_key = ?", (key,)
        ).fetchone()
        if row is None:
            return None
        if row["expires_at"] <= self._clock():
            self.delete(key)
            return None
        return json.loads(row["payload"])

    def set(self, key: str, value: Any, ttl: float) -> None:
        with self.conn:
            self.conn.execute(
                """
                INSERT INTO session_cache (cache_key, payload, expires_at) VALUES (?, ?, ?)
                ON CONFLICT(cache_key) DO UPDATE
                    SET payload = excluded.payload, expires_at = excluded.expires_at
                """,
                (key, json.dumps(value), self._clock() + ttl),
            )

    def delete(self, key: str) -> None:
        with self.conn:
            self.conn.execute("DELETE FROM session_cache WHERE cache_key = ?", (key,))

    def purge_expired(self) -> int:
        """Drop every expired entry and return how many were removed."""
        with self.conn:
            cur = self.conn.execute(
                "DELETE FROM session_cache WHERE expires_at <= ?", (self._clock(),)
            )
        return cur.rowcount
