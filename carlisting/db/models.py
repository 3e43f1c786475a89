"""Dataclass models representing DB rows.

These are plain Python objects – not ORM models.  The DB layer serialises /
deserialises to and from these types.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class ListingImage:
    position: int
    source_url: str
    file_path: str | None = None


@dataclass
class Listing:
    id: str
    uid: str
    title: str
    price: str
    carfax_url: str
    additional: dict[str, str]
    thumbnail: str | None
    created_at: int
    updated_at: int
    meta: dict[str, str] = field(default_factory=dict)
    terms: dict[str, list[str]] = field(default_factory=dict)
    images: list[ListingImage] = field(default_factory=list)
