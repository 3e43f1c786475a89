"""Sync endpoints: batch-by-batch and full-run listing imports.

Routes
------
POST /sync/batch   Body: {"offset": 0, "limit": 5, "session_id": "..."}  → one batch
POST /sync/run     Body: {"limit": 5, "skip_existing": true}             → full sync

A batch that contains a failed item answers 409 with that item and nothing is
purged; the caller stops and starts over from offset 0 with a new session.  A
clean final batch purges listings that are no longer published and reports how many
were removed.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from carlisting.config import settings
from carlisting.errors import (
    BatchCancelled,
    ConfigurationError,
    DiscoveryError,
    RepositoryError,
)
from carlisting.sync.batch import BatchOptions
from carlisting.sync.runner import build_runner, clamp_batch_size, reconcile, run_full_sync

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------

class BatchRequest(BaseModel):
    offset: int = Field(0, ge=0)
    limit: Optional[int] = Field(None, gt=0)
    skip_existing: bool = True
    session_id: Optional[str] = None


class RunRequest(BaseModel):
    limit: Optional[int] = Field(None, gt=0)
    skip_existing: bool = True
    halt_on_error: bool = False


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _error(status_code: int, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


def _batch_size(requested: Optional[int]) -> int:
    return clamp_batch_size(requested or settings.batch_size)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post("/batch")
def sync_batch(body: BatchRequest, request: Request) -> Any:
    """Process one batch of the listing and return cursors for the next call."""
    runner = build_runner(request.app.state.db)
    try:
        result = runner.run_batch(
            body.offset,
            _batch_size(body.limit),
            BatchOptions(skip_existing=body.skip_existing),
            body.session_id,
        )
    except DiscoveryError as exc:
        logger.error("Error during batch update: %s", exc)
        return _error(502, str(exc))
    except (ConfigurationError, ValueError) as exc:
        return _error(422, str(exc))
    except BatchCancelled as exc:
        return _error(503, str(exc))

    if result.errors:
        failed = result.errors[0]
        logger.error("Error in batch item: %s", failed.to_dict())
        return _error(
            409,
            "A listing in the batch failed to import or update.",
            item=failed.to_dict(),
            session_id=result.session_id,
        )

    payload = result.to_dict()
    if result.all_ids is not None:
        try:
            payload["removed"] = reconcile(runner.repository, result.all_ids)
        except RepositoryError as exc:
            return _error(500, str(exc))
    return payload


@router.post("/run")
def sync_run(body: RunRequest, request: Request) -> Any:
    """Run a complete sync in this request and return its report."""
    runner = build_runner(request.app.state.db)
    try:
        report = run_full_sync(
            runner,
            _batch_size(body.limit),
            skip_existing=body.skip_existing,
            halt_on_error=body.halt_on_error,
        )
    except DiscoveryError as exc:
        return _error(502, str(exc))
    except ConfigurationError as exc:
        return _error(422, str(exc))
    except (BatchCancelled, RepositoryError) as exc:
        return _error(500, str(exc))

    if not report.completed:
        return _error(409, "Sync halted on a failed listing.", report=report.to_dict())
    return report.to_dict()
