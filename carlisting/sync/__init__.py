"""Sync package: batch runner, session cache and full-run orchestration."""

from carlisting.sync.batch import (
    BatchOptions,
    BatchResult,
    BatchRunner,
    ItemResult,
    ItemStatus,
    ScrapeConfig,
)
from carlisting.sync.runner import build_runner, reconcile, run_full_sync
from carlisting.sync.session_cache import SessionCache, SqliteSessionCache

__all__ = [
    "BatchOptions",
    "BatchResult",
    "BatchRunner",
    "build_runner",
    "ItemResult",
    "ItemStatus",
    "reconcile",
    "run_full_sync",
    "ScrapeConfig",
    "SessionCache",
    "SqliteSessionCache",
]
