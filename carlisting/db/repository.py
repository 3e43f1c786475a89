"""Listing repository: the storage boundary used by the batch runner.

The runner only depends on :class:`ListingRepository`; the SQLite
implementation maps a :class:`~carlisting.scraper.models.Record` onto the
``listings`` table plus meta / taxonomy terms / images, mirroring how the
listing store expects car fields.
"""

from __future__ import annotations

import logging
import sqlite3
from abc import ABC, abstractmethod
from typing import Collection, Mapping, Optional

from carlisting.db import listings as listings_db
from carlisting.db.models import Listing, ListingImage
from carlisting.errors import RepositoryError
from carlisting.media import ImageStore
from carlisting.scraper.models import DetailValue, FieldKind, Record, TargetField

logger = logging.getLogger(__name__)

META_PRICE = "vehica_currency_6656_2316"
META_CARFAX = "vehica_carfax"
TAXONOMY_FEATURES = "vehica_6670"
TAXONOMY_STATUS = "vehica_6654"
TAXONOMY_COLOR = "vehica_6666"
COLOR_ATTRIBUTE = "Färg"


# ---------------------------------------------------------------------------
# Abstract base
# ---------------------------------------------------------------------------

class ListingRepository(ABC):
    """Storage operations keyed by a listing's external identifier."""

    @abstractmethod
    def find_duplicate(self, identifier: str) -> Optional[str]:
        """Return the storage id already holding *identifier*, or ``None``."""

    @abstractmethod
    def create_or_update(self, record: Record) -> str:
        """Upsert *record* and return its storage id.  Raises :class:`RepositoryError`."""

    @abstractmethod
    def update_details(
        self, storage_id: str, detail_fields: Mapping[TargetField, DetailValue]
    ) -> None:
        """Store mapped detail fields on an existing listing."""

    @abstractmethod
    def delete_not_in(self, storage_ids: Collection[str]) -> int:
        """Delete every listing whose id is not in *storage_ids*; return the count."""


# ---------------------------------------------------------------------------
# SQLite implementation
# ---------------------------------------------------------------------------

class SqliteListingRepository(ListingRepository):
    def __init__(
        self,
        conn: sqlite3.Connection,
        image_store: ImageStore | None = None,
        status_term: str = "Begagnad",
    ) -> None:
        self.conn = conn
        self.image_store = image_store
        self.status_term = status_term

    def find_duplicate(self, identifier: str) -> Optional[str]:
        try:
            return listings_db.find_listing_id(self.conn, identifier)
        except sqlite3.Error as exc:
            raise RepositoryError(f"Duplicate lookup failed for {identifier!r}: {exc}") from exc

    def create_or_update(self, record: Record) -> str:
        try:
            with self.conn:
                listing_id = listings_db.upsert_listing(
                    self.conn,
                    uid=record.identifier,
                    title=record.title,
                    price=record.price,
                    carfax_url=record.external_reference_url,
                    additional=record.additional_attributes,
                )
                listings_db.set_meta(self.conn, listing_id, META_PRICE, record.price)
                listings_db.set_meta(
                    self.conn, listing_id, META_CARFAX, record.external_reference_url
                )
                self._write_details(listing_id, record.detail_fields)
                listings_db.set_terms(self.conn, listing_id, TAXONOMY_FEATURES, record.features)
                listings_db.set_terms(self.conn, listing_id, TAXONOMY_STATUS, [self.status_term])
                color = record.additional_attributes.get(COLOR_ATTRIBUTE, "")
                if color:
                    listings_db.set_terms(self.conn, listing_id, TAXONOMY_COLOR, [color])
        except sqlite3.Error as exc:
            logger.error("Error creating listing %s: %s", record.identifier, exc)
            raise RepositoryError(f"Could not store {record.identifier!r}: {exc}") from exc

        self._replace_gallery(listing_id, record)
        return listing_id

    def update_details(
        self, storage_id: str, detail_fields: Mapping[TargetField, DetailValue]
    ) -> None:
        try:
            with self.conn:
                self._write_details(storage_id, detail_fields)
        except sqlite3.Error as exc:
            raise RepositoryError(f"Could not update details of {storage_id}: {exc}") from exc

    def delete_not_in(self, storage_ids: Collection[str]) -> int:
        keep = set(storage_ids)
        if not keep:
            logger.info("No outdated listings to remove (empty keep-set).")
            return 0
        try:
            with self.conn:
                outdated = [i for i in listings_db.list_listing_ids(self.conn) if i not in keep]
                removed_images = listings_db.delete_listings(self.conn, outdated)
        except sqlite3.Error as exc:
            raise RepositoryError(f"Could not remove outdated listings: {exc}") from exc
        ImageStore.remove(removed_images)
        for listing_id in outdated:
            logger.debug("Removed listing %s", listing_id)
        logger.info("Removed %d outdated listing(s).", len(outdated))
        return len(outdated)

    # ------------------------------------------------------------------
    # Read helpers for the HTTP / CLI layers
    # ------------------------------------------------------------------
    def get_listing(self, storage_id: str) -> Optional[Listing]:
        return listings_db.get_listing(self.conn, storage_id)

    def list_listings(self) -> list[Listing]:
        return listings_db.list_listings(self.conn)

    def _replace_gallery(self, listing_id: str, record: Record) -> None:
        if self.image_store is not None:
            images = self.image_store.download(record.images, listing_id, record.title)
        else:
            images = [
                ListingImage(position=i, source_url=url) for i, url in enumerate(record.images)
            ]
        try:
            with self.conn:
                previous = listings_db.replace_images(self.conn, listing_id, images)
        except sqlite3.Error as exc:
            raise RepositoryError(f"Could not store images of {listing_id}: {exc}") from exc
        current_files = {img.file_path for img in images}
        ImageStore.remove(p for p in previous if p.file_path not in current_files)

    def _write_details(
        self, storage_id: str, detail_fields: Mapping[TargetField, DetailValue]
    ) -> None:
        for target, detail in detail_fields.items():
            if detail.kind is FieldKind.TAXONOMY:
                listings_db.set_terms(self.conn, storage_id, target.value, [detail.value])
            else:
                listings_db.set_meta(self.conn, storage_id, target.value, detail.value)
