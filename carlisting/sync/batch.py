"""Batch runner: one resumable slice of a full listing sync.

A sync is driven as a series of independent ``run_batch`` calls sharing a
session token::

    discover links (once per session, cached)
        → slice [offset : offset + limit]
        → per item: skip-existing? → fetch → parse → upsert
        → persist processed ids
        → on the last batch: drop session state, return the reconciliation set

The runner keeps no state of its own between calls; everything that must
survive lives in the :class:`~carlisting.sync.session_cache.SessionCache`.
"""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, field
from enum import Enum
from time import time
from typing import Any, Callable, List, Optional
from urllib.parse import urljoin, urlparse

from carlisting.config import DEFAULT_BASE_URL, Settings, settings
from carlisting.db.repository import ListingRepository
from carlisting.errors import (
    BatchCancelled,
    ConfigurationError,
    FetchCancelled,
    FetchError,
    RepositoryError,
)
from carlisting.scraper.discovery import discover_links
from carlisting.scraper.field_map import FIELD_MAP, FieldMap
from carlisting.scraper.models import Document, Record
from carlisting.scraper.parser import parse_detail_page
from carlisting.scraper.retry import RetryingFetcher
from carlisting.sync.session_cache import SessionCache

logger = logging.getLogger(__name__)

SESSION_TTL_SECONDS = 30 * 60


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ScrapeConfig:
    """Everything a batch reads from configuration, resolved once per call."""

    base_url: str
    store_path: str
    pagination_selector: str
    item_selector: str
    retry_count: int = 2
    retry_delay: float = 1.0

    @property
    def root_url(self) -> str:
        return self.base_url.rstrip("/") + self.store_path

    def detail_url(self, identifier: str) -> str:
        """Absolute URL of a detail page.  Raises :class:`FetchError` if unbuildable."""
        try:
            return urljoin(self.base_url, identifier)
        except ValueError as exc:
            raise FetchError(identifier, f"invalid detail URL: {exc}") from exc

    @classmethod
    def from_settings(cls, source: Settings | None = None) -> "ScrapeConfig":
        """Build and validate a config from :class:`Settings`.

        An unusable base URL falls back to the default source site.

        Raises:
            ConfigurationError: Blank selectors or negative retry values.
        """
        source = source or settings
        base_url = source.base_url.strip()
        parsed = urlparse(base_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            logger.warning("Invalid base URL %r, using %s", base_url, DEFAULT_BASE_URL)
            base_url = DEFAULT_BASE_URL

        pagination = source.selector_pagination.strip()
        items = source.selector_item_links.strip()
        if not pagination or not items:
            raise ConfigurationError("Both listing selectors must be configured.")
        if source.retry_count < 0 or source.retry_delay < 0:
            raise ConfigurationError("Retry count and delay must not be negative.")

        return cls(
            base_url=base_url,
            store_path=source.store_path,
            pagination_selector=pagination,
            item_selector=items,
            retry_count=source.retry_count,
            retry_delay=source.retry_delay,
        )


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

class ItemStatus(str, Enum):
    SUCCESS = "success"
    SKIPPED_EXISTING = "skipped_existing"
    ERROR = "error"


@dataclass
class ItemResult:
    identifier: str
    status: ItemStatus
    storage_id: Optional[str] = None
    reason: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"identifier": self.identifier, "status": self.status.value}
        if self.storage_id is not None:
            data["storage_id"] = self.storage_id
        if self.reason is not None:
            data["reason"] = self.reason
        return data


@dataclass
class BatchResult:
    results: List[ItemResult]
    has_more: bool
    next_offset: int
    total: int
    session_id: str
    # Only set on the final batch (has_more is False).
    all_ids: Optional[List[str]] = None

    @property
    def errors(self) -> List[ItemResult]:
        return [r for r in self.results if r.status is ItemStatus.ERROR]

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "results": [r.to_dict() for r in self.results],
            "has_more": self.has_more,
            "next_offset": self.next_offset,
            "total": self.total,
            "session_id": self.session_id,
        }
        if self.all_ids is not None:
            data["all_ids"] = list(self.all_ids)
        return data


@dataclass
class BatchOptions:
    skip_existing: bool = False


@dataclass
class _SessionKeys:
    token: str
    links: str = field(init=False)
    processed: str = field(init=False)
    retained: str = field(init=False)

    def __post_init__(self) -> None:
        self.links = f"links:{self.token}"
        self.processed = f"ids:{self.token}"
        self.retained = f"retained:{self.token}"


def new_session_token(prefix: str = "sync") -> str:
    """Mint a session token: time-prefixed and random, unique across runs."""
    return f"{prefix}_{int(time() * 1000):x}_{uuid.uuid4().hex}"


def _dedupe(ids: List[str]) -> List[str]:
    return list(dict.fromkeys(i for i in ids if i))


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------

class BatchRunner:
    """Process one slice of the listing per call.

    Args:
        repository: Storage boundary for duplicate lookup and upserts.
        cache: Cross-call session state.
        fetcher: Retrying page fetcher (listing and detail pages).
        parser: ``(document, identifier, field_map) -> Record``.
        field_map: Label table handed to *parser*.
    """

    def __init__(
        self,
        repository: ListingRepository,
        cache: SessionCache,
        fetcher: RetryingFetcher[Document] | None = None,
        parser: Callable[[Document, str, FieldMap], Record] = parse_detail_page,
        field_map: FieldMap = FIELD_MAP,
    ) -> None:
        self.repository = repository
        self.cache = cache
        self.fetcher = fetcher or RetryingFetcher()
        self.parser = parser
        self.field_map = field_map

    def run_batch(
        self,
        offset: int,
        limit: int,
        options: BatchOptions | None = None,
        session_token: str | None = None,
        config: ScrapeConfig | None = None,
        cancel: threading.Event | None = None,
        deadline: float | None = None,
    ) -> BatchResult:
        """Run one batch of the sync identified by *session_token*.

        Item-level failures are reported in ``results`` and never raised.

        Raises:
            ValueError: ``offset < 0`` or ``limit <= 0``.
            ConfigurationError: The configuration could not be resolved.
            DiscoveryError: The listing root page was unreachable; no session
                state was written.
            BatchCancelled: *cancel* fired or *deadline* passed.  Ids processed
                before the abort are kept in the session.
        """
        if offset < 0:
            raise ValueError(f"offset must be >= 0, got {offset}")
        if limit <= 0:
            raise ValueError(f"limit must be > 0, got {limit}")

        config = config or ScrapeConfig.from_settings()
        options = options or BatchOptions()
        if not session_token:
            session_token = new_session_token()
            logger.info("Generated new session id: %s", session_token)
        keys = _SessionKeys(session_token)

        links = self._load_links(keys, config, cancel, deadline)
        total = len(links)
        batch = links[offset:offset + limit]
        logger.info(
            "Processing batch: offset=%d, limit=%d, batch count=%d, total=%d",
            offset, limit, len(batch), total,
        )

        processed: List[str] = list(self.cache.get(keys.processed) or [])
        retained: List[str] = list(self.cache.get(keys.retained) or [])
        results: List[ItemResult] = []

        try:
            for identifier in batch:
                results.append(
                    self._process_item(
                        identifier, options, config, processed, retained, cancel, deadline
                    )
                )
        except FetchCancelled as exc:
            self.cache.set(keys.processed, processed, SESSION_TTL_SECONDS)
            self.cache.set(keys.retained, retained, SESSION_TTL_SECONDS)
            logger.warning("Batch cancelled at offset %d: %s", offset, exc)
            raise BatchCancelled(f"Batch cancelled: {exc}") from exc

        self.cache.set(keys.processed, processed, SESSION_TTL_SECONDS)
        self.cache.set(keys.retained, retained, SESSION_TTL_SECONDS)

        next_offset = offset + limit
        has_more = next_offset < total
        logger.info("Batch complete. has_more=%s, next_offset=%d", has_more, next_offset)

        result = BatchResult(
            results=results,
            has_more=has_more,
            next_offset=next_offset,
            total=total,
            session_id=session_token,
        )
        if not has_more:
            for key in (keys.links, keys.processed, keys.retained):
                self.cache.delete(key)
            result.all_ids = _dedupe(processed + retained)
            logger.info(
                "Final batch for session %s: %d id(s) to keep", session_token, len(result.all_ids)
            )
        return result

    # ------------------------------------------------------------------
    # Internal steps
    # ------------------------------------------------------------------
    def _load_links(
        self,
        keys: _SessionKeys,
        config: ScrapeConfig,
        cancel: threading.Event | None,
        deadline: float | None,
    ) -> List[str]:
        cached = self.cache.get(keys.links)
        if cached is not None:
            logger.info("Loaded cached links for session %s (count: %d)", keys.token, len(cached))
            return list(cached)

        logger.info("No cached links for session, scraping listing: %s", config.root_url)
        try:
            links = discover_links(
                self.fetcher,
                config.root_url,
                config.pagination_selector,
                config.item_selector,
                config.retry_count,
                config.retry_delay,
                cancel=cancel,
                deadline=deadline,
            )
        except FetchCancelled as exc:
            raise BatchCancelled(f"Discovery cancelled: {exc}") from exc
        self.cache.set(keys.links, links, SESSION_TTL_SECONDS)
        return links

    def _process_item(
        self,
        identifier: str,
        options: BatchOptions,
        config: ScrapeConfig,
        processed: List[str],
        retained: List[str],
        cancel: threading.Event | None,
        deadline: float | None,
    ) -> ItemResult:
        logger.debug("Processing %s", identifier)
        try:
            if options.skip_existing:
                existing = self.repository.find_duplicate(identifier)
                if existing is not None:
                    logger.debug("Skipped existing listing %s (id %s)", identifier, existing)
                    processed.append(existing)
                    return ItemResult(identifier, ItemStatus.SKIPPED_EXISTING, storage_id=existing)

            try:
                document = self.fetcher.fetch(
                    config.detail_url(identifier),
                    config.retry_count,
                    config.retry_delay,
                    cancel=cancel,
                    deadline=deadline,
                )
            except FetchCancelled:
                raise
            except FetchError as exc:
                # Still listed upstream; keep its stored copy out of the purge.
                existing = self.repository.find_duplicate(identifier)
                if existing is not None:
                    retained.append(existing)
                return ItemResult(identifier, ItemStatus.ERROR, reason=str(exc))

            record = self.parser(document, identifier, self.field_map)
            storage_id = self.repository.create_or_update(record)
        except RepositoryError as exc:
            logger.error("Failed to store %s: %s", identifier, exc)
            return ItemResult(identifier, ItemStatus.ERROR, reason=str(exc))

        logger.debug("Stored %s (%s) as %s", identifier, record.title, storage_id)
        processed.append(storage_id)
        return ItemResult(identifier, ItemStatus.SUCCESS, storage_id=storage_id)
