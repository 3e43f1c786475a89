"""Read-only endpoints over stored listings.

Routes
------
GET /listings               List every stored listing
GET /listings/{listing_id}  Fetch one listing with meta, terms and images
"""

from __future__ import annotations

from dataclasses import asdict
from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from carlisting.db.listings import get_listing, list_listings
from carlisting.db.models import Listing

router = APIRouter()


class ImageResponse(BaseModel):
    position: int
    source_url: str
    file_path: Optional[str]


class ListingResponse(BaseModel):
    id: str
    uid: str
    title: str
    price: str
    carfax_url: str
    additional: dict[str, str]
    thumbnail: Optional[str]
    created_at: int
    updated_at: int
    meta: dict[str, str]
    terms: dict[str, list[str]]
    images: list[ImageResponse]


def _listing_response(listing: Listing) -> dict[str, Any]:
    return asdict(listing)


@router.get("", response_model=list[ListingResponse])
def list_all(request: Request) -> list[dict[str, Any]]:
    """Return all stored listings, most recently updated first."""
    conn = request.app.state.db
    return [_listing_response(item) for item in list_listings(conn)]


@router.get("/{listing_id}", response_model=ListingResponse)
def get_one(listing_id: str, request: Request) -> dict[str, Any]:
    """Fetch a single listing by its storage id."""
    conn = request.app.state.db
    listing = get_listing(conn, listing_id)
    if listing is None:
        raise HTTPException(status_code=404, detail=f"Listing not found: {listing_id!r}")
    return _listing_response(listing)
