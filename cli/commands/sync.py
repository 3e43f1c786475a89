"""Sync commands: run single batches or a complete listing import."""

from __future__ import annotations

import json
from typing import Optional

import typer

from carlisting.config import settings
from carlisting.db import get_connection, init_db
from carlisting.errors import CarListingError
from carlisting.sync.batch import BatchOptions
from carlisting.sync.runner import build_runner, clamp_batch_size, reconcile, run_full_sync

sync_app = typer.Typer(help="Import listings from the source site.", no_args_is_help=True)


@sync_app.command("batch")
def sync_batch(
    offset: int = typer.Option(0, min=0, help="Index of the first link to process."),
    limit: Optional[int] = typer.Option(None, min=1, help="Batch size (defaults to BATCH_SIZE)."),
    session_id: Optional[str] = typer.Option(None, "--session-id", help="Continue this session."),
    skip_existing: bool = typer.Option(True, "--skip-existing/--no-skip-existing"),
    purge: bool = typer.Option(True, "--purge/--no-purge", help="Remove outdated listings after the last batch."),
) -> None:
    """Process one batch and print the batch result as JSON."""
    conn = get_connection()
    init_db(conn)
    try:
        runner = build_runner(conn)
        result = runner.run_batch(
            offset,
            clamp_batch_size(limit or settings.batch_size),
            BatchOptions(skip_existing=skip_existing),
            session_id,
        )
        payload = result.to_dict()
        if purge and result.all_ids is not None:
            payload["removed"] = reconcile(runner.repository, result.all_ids)
    except (CarListingError, ValueError) as e:
        typer.echo(json.dumps({"error": str(e)}))
        raise typer.Exit(code=1)
    finally:
        conn.close()

    typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))
    if result.errors:
        raise typer.Exit(code=2)


@sync_app.command("run")
def sync_run(
    limit: Optional[int] = typer.Option(None, min=1, help="Batch size (defaults to BATCH_SIZE)."),
    skip_existing: bool = typer.Option(True, "--skip-existing/--no-skip-existing"),
    halt_on_error: bool = typer.Option(False, "--halt-on-error", help="Stop at the first failed listing."),
) -> None:
    """Import the whole listing, then remove listings no longer published."""
    conn = get_connection()
    init_db(conn)
    try:
        report = run_full_sync(
            build_runner(conn),
            limit or settings.batch_size,
            skip_existing=skip_existing,
            halt_on_error=halt_on_error,
        )
    except CarListingError as e:
        typer.echo(f"[sync run] Error: {e}")
        raise typer.Exit(code=1)
    finally:
        conn.close()

    typer.echo(
        f"[sync run] {report.processed}/{report.total} listing(s) in {report.batches} batch(es), "
        f"{len(report.errors)} error(s), {report.removed} removed."
    )
    for item in report.errors:
        typer.echo(f"  ✗ {item.identifier}: {item.reason or 'failed'}")
    if not report.completed:
        typer.echo(f"[sync run] Halted on {report.halted_on.identifier!r}; nothing was removed.")
        raise typer.Exit(code=2)
