"""CRUD operations for the ``listings`` table and its child tables.

Writes do not commit: callers group them in ``with conn:`` so one listing is
stored all-or-nothing.
"""

from __future__ import annotations

import json
import sqlite3
import uuid
from time import time
from typing import Iterable, Optional, Sequence

from carlisting.db.models import Listing, ListingImage


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _row_to_listing(conn: sqlite3.Connection, row: sqlite3.Row) -> Listing:
    listing_id = row["id"]
    meta = {
        r["meta_key"]: r["meta_value"]
        for r in conn.execute(
            "SELECT meta_key, meta_value FROM listing_meta WHERE listing_id = ?",
            (listing_id,),
        )
    }
    terms: dict[str, list[str]] = {}
    for r in conn.execute(
        "SELECT taxonomy, term FROM listing_terms WHERE listing_id = ? "
        "ORDER BY taxonomy, position",
        (listing_id,),
    ):
        terms.setdefault(r["taxonomy"], []).append(r["term"])
    images = [
        ListingImage(position=r["position"], source_url=r["source_url"], file_path=r["file_path"])
        for r in conn.execute(
            "SELECT position, source_url, file_path FROM listing_images "
            "WHERE listing_id = ? ORDER BY position",
            (listing_id,),
        )
    ]
    return Listing(
        id=listing_id,
        uid=row["uid"],
        title=row["title"],
        price=row["price"],
        carfax_url=row["carfax_url"],
        additional=json.loads(row["additional"] or "{}"),
        thumbnail=row["thumbnail"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        meta=meta,
        terms=terms,
        images=images,
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def find_listing_id(conn: sqlite3.Connection, uid: str) -> Optional[str]:
    """Return the id of the listing whose ``uid`` is *uid*, or ``None``."""
    row = conn.execute("SELECT id FROM listings WHERE uid = ?", (uid,)).fetchone()
    return row["id"] if row else None


def get_listing(conn: sqlite3.Connection, listing_id: str) -> Optional[Listing]:
    """Fetch a single listing (with meta, terms and images).  ``None`` if absent."""
    row = conn.execute("SELECT * FROM listings WHERE id = ?", (listing_id,)).fetchone()
    return _row_to_listing(conn, row) if row else None


def list_listings(conn: sqlite3.Connection) -> list[Listing]:
    """Return all listings, most recently updated first."""
    rows = conn.execute(
        "SELECT * FROM listings ORDER BY updated_at DESC, title"
    ).fetchall()
    return [_row_to_listing(conn, r) for r in rows]


def list_listing_ids(conn: sqlite3.Connection) -> list[str]:
    return [r["id"] for r in conn.execute("SELECT id FROM listings")]


def upsert_listing(
    conn: sqlite3.Connection,
    uid: str,
    title: str,
    price: str,
    carfax_url: str,
    additional: dict[str, str],
) -> str:
    """Insert or update the listing keyed by *uid* and return its id.

    The id is generated once on insert; later upserts of the same *uid* keep it.
    """
    now = int(time())
    existing = find_listing_id(conn, uid)
    additional_json = json.dumps(additional, ensure_ascii=False)
    if existing is None:
        listing_id = str(uuid.uuid4())
        conn.execute(
            """
            INSERT INTO listings
                (id, uid, title, price, carfax_url, additional, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (listing_id, uid, title, price, carfax_url, additional_json, now, now),
        )
        return listing_id
    conn.execute(
        """
        UPDATE listings
        SET title = ?, price = ?, carfax_url = ?, additional = ?, updated_at = ?
        WHERE id = ?
        """,
        (title, price, carfax_url, additional_json, now, existing),
    )
    return existing


def set_meta(conn: sqlite3.Connection, listing_id: str, key: str, value: str) -> None:
    conn.execute(
        """
        INSERT INTO listing_meta (listing_id, meta_key, meta_value) VALUES (?, ?, ?)
        ON CONFLICT(listing_id, meta_key) DO UPDATE SET meta_value = excluded.meta_value
        """,
        (listing_id, key, value),
    )


def set_terms(
    conn: sqlite3.Connection,
    listing_id: str,
    taxonomy: str,
    terms: Iterable[str],
) -> None:
    """Replace the terms of *taxonomy* on a listing (order kept, repeats ignored)."""
    conn.execute(
        "DELETE FROM listing_terms WHERE listing_id = ? AND taxonomy = ?",
        (listing_id, taxonomy),
    )
    for position, term in enumerate(t for t in terms if t):
        conn.execute(
            "INSERT OR IGNORE INTO listing_terms (listing_id, taxonomy, term, position) "
            "VALUES (?, ?, ?, ?)",
            (listing_id, taxonomy, term, position),
        )


def replace_images(
    conn: sqlite3.Connection,
    listing_id: str,
    images: Sequence[ListingImage],
) -> list[ListingImage]:
    """Replace a listing's gallery; the first image becomes the thumbnail.

    Returns the images that were attached before, so callers can remove files.
    """
    previous = [
        ListingImage(position=r["position"], source_url=r["source_url"], file_path=r["file_path"])
        for r in conn.execute(
            "SELECT position, source_url, file_path FROM listing_images WHERE listing_id = ?",
            (listing_id,),
        )
    ]
    thumbnail = None
    if images:
        thumbnail = images[0].file_path or images[0].source_url
    conn.execute("DELETE FROM listing_images WHERE listing_id = ?", (listing_id,))
    conn.executemany(
        "INSERT INTO listing_images (listing_id, position, source_url, file_path) "
        "VALUES (?, ?, ?, ?)",
        [(listing_id, img.position, img.source_url, img.file_path) for img in images],
    )
    conn.execute("UPDATE listings SET thumbnail = ? WHERE id = ?", (thumbnail, listing_id))
    return previous


def delete_listings(conn: sqlite3.Connection, listing_ids: Sequence[str]) -> list[ListingImage]:
    """Delete listings (children cascade) and return their former images."""
    removed: list[ListingImage] = []
    for listing_id in listing_ids:
        removed.extend(
            ListingImage(position=r["position"], source_url=r["source_url"], file_path=r["file_path"])
            for r in conn.execute(
                "SELECT position, source_url, file_path FROM listing_images "
                "WHERE listing_id = ?",
                (listing_id,),
            )
        )
        conn.execute("DELETE FROM listings WHERE id = ?", (listing_id,))
    return removed
