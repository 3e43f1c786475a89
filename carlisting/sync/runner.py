"""Full-sync orchestration on top of :class:`~carlisting.sync.batch.BatchRunner`.

``run_full_sync`` is what a scheduled job calls: it drives batches until the
listing is exhausted, then purges listings that are no longer published.
``reconcile`` is also used on its own by the HTTP layer after a final batch.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from dataclasses import dataclass, field
from typing import Any, Collection, Optional

from carlisting.config import Settings, settings
from carlisting.db.repository import ListingRepository, SqliteListingRepository
from carlisting.media import ImageStore
from carlisting.scraper.fetcher import fetch_bytes
from carlisting.scraper.retry import RetryingFetcher
from carlisting.sync.batch import (
    BatchOptions,
    BatchRunner,
    ItemResult,
    ScrapeConfig,
    new_session_token,
)
from carlisting.sync.session_cache import SqliteSessionCache

logger = logging.getLogger(__name__)

MIN_BATCH_SIZE = 1
MAX_BATCH_SIZE = 100


def clamp_batch_size(size: int) -> int:
    return max(MIN_BATCH_SIZE, min(MAX_BATCH_SIZE, size))


def build_runner(conn: sqlite3.Connection, source: Settings | None = None) -> BatchRunner:
    """Wire a :class:`BatchRunner` against an open, initialised connection."""
    source = source or settings
    image_store = None
    if source.download_images:
        image_store = ImageStore(
            source.media_dir,
            base_url=source.base_url,
            fetcher=RetryingFetcher(
                fetch=fetch_bytes, retries=source.retry_count, delay=source.retry_delay
            ),
        )
    repository = SqliteListingRepository(
        conn, image_store=image_store, status_term=source.listing_status_term
    )
    return BatchRunner(
        repository,
        SqliteSessionCache(conn),
        fetcher=RetryingFetcher(retries=source.retry_count, delay=source.retry_delay),
    )


def reconcile(repository: ListingRepository, reconciliation_set: Collection[str]) -> int:
    """Delete every stored listing not in *reconciliation_set*.

    An empty set is treated as "nothing known" and removes nothing.
    """
    if not reconciliation_set:
        logger.info("No outdated listings to remove.")
        return 0
    removed = repository.delete_not_in(reconciliation_set)
    logger.info("%d outdated listing(s) have been removed.", removed)
    return removed


@dataclass
class SyncReport:
    session_id: str
    batches: int = 0
    total: int = 0
    processed: int = 0
    errors: list[ItemResult] = field(default_factory=list)
    removed: int = 0
    halted_on: Optional[ItemResult] = None

    @property
    def completed(self) -> bool:
        return self.halted_on is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "batches": self.batches,
            "total": self.total,
            "processed": self.processed,
            "errors": [e.to_dict() for e in self.errors],
            "removed": self.removed,
            "halted_on": self.halted_on.to_dict() if self.halted_on else None,
        }


def run_full_sync(
    runner: BatchRunner,
    limit: int,
    skip_existing: bool = True,
    halt_on_error: bool = False,
    config: ScrapeConfig | None = None,
    cancel: threading.Event | None = None,
) -> SyncReport:
    """Drive batches from offset 0 until the listing is exhausted, then reconcile.

    Args:
        runner: The batch runner; its repository is used for reconciliation.
        limit: Batch size (clamped to ``1..100``).
        skip_existing: Do not refetch listings that are already stored.
        halt_on_error: Stop at the first batch that reports an item error and
            skip reconciliation (interactive policy).  When ``False`` item
            errors are collected and the run continues (scheduled policy).
        config: Resolved once here and reused for every batch.
        cancel: Aborts the run between fetch attempts.

    Raises:
        DiscoveryError, ConfigurationError, BatchCancelled: From ``run_batch``.
    """
    limit = clamp_batch_size(limit)
    config = config or ScrapeConfig.from_settings()
    options = BatchOptions(skip_existing=skip_existing)
    report = SyncReport(session_id=new_session_token("cron"))
    logger.info("Start full sync (session %s, batch size %d)", report.session_id, limit)

    offset = 0
    while True:
        result = runner.run_batch(
            offset, limit, options, report.session_id, config=config, cancel=cancel
        )
        report.batches += 1
        report.total = result.total
        report.processed += len(result.results)
        report.errors.extend(result.errors)

        if halt_on_error and result.errors:
            report.halted_on = result.errors[0]
            logger.error("Halting sync on failed item: %s", report.halted_on.to_dict())
            return report

        if not result.has_more:
            report.removed = reconcile(runner.repository, result.all_ids or [])
            break
        offset = result.next_offset

    logger.info(
        "Full sync finished: %d item(s), %d error(s), %d removed",
        report.processed, len(report.errors), report.removed,
    )
    return report
