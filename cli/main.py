"""carlisting CLI: entry-point for all backend operations.

Usage:
    python cli/main.py --help

Command groups:
    db        → database setup
    scrape    → discovery / single-page parsing without storing anything
    sync      → batch and full imports
    listings  → inspect the local store
"""

from __future__ import annotations

import sys
from pathlib import Path

# Ensure the project root is on sys.path so that `from carlisting.xxx import ...`
# works when the CLI is invoked as `python cli/main.py` from any directory.
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

import json

import typer

from carlisting.config import settings
from carlisting.db import get_connection, init_db
from carlisting.errors import CarListingError
from carlisting.logging_setup import setup_logging
from cli.commands.listings import listings_app
from cli.commands.sync import sync_app

app = typer.Typer(
    name="carlisting",
    help="carlisting backend CLI.",
    no_args_is_help=True,
)
app.add_typer(sync_app, name="sync")
app.add_typer(listings_app, name="listings")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level."),
) -> None:
    """Configure logging before any command runs."""
    setup_logging("DEBUG" if verbose else settings.effective_log_level, settings.log_file)


# ---------------------------------------------------------------------------
# DB commands
# ---------------------------------------------------------------------------
db_app = typer.Typer(help="Database operations.", no_args_is_help=True)
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init() -> None:
    """Initialise the SQLite database (create tables if they do not exist)."""
    conn = get_connection()
    init_db(conn)
    conn.close()
    typer.echo(f"[db init] Database ready at {settings.db_path}")


@db_app.command("purge-sessions")
def db_purge_sessions() -> None:
    """Remove expired sync sessions."""
    from carlisting.sync.session_cache import SqliteSessionCache

    conn = get_connection()
    init_db(conn)
    try:
        removed = SqliteSessionCache(conn).purge_expired()
    finally:
        conn.close()
    typer.echo(f"[db purge-sessions] Removed {removed} expired entr{'y' if removed == 1 else 'ies'}.")


# ---------------------------------------------------------------------------
# Scrape commands (nothing is stored)
# ---------------------------------------------------------------------------
scrape_app = typer.Typer(help="Inspect the source site without storing.", no_args_is_help=True)
app.add_typer(scrape_app, name="scrape")


@scrape_app.command("discover")
def scrape_discover() -> None:
    """Walk the listing and print every detail link."""
    from carlisting.scraper.discovery import discover_links
    from carlisting.scraper.retry import RetryingFetcher
    from carlisting.sync.batch import ScrapeConfig

    try:
        config = ScrapeConfig.from_settings()
        typer.echo(f"[scrape discover] Fetching {config.root_url!r} …")
        links = discover_links(
            RetryingFetcher(),
            config.root_url,
            config.pagination_selector,
            config.item_selector,
            config.retry_count,
            config.retry_delay,
        )
    except CarListingError as e:
        typer.echo(f"[scrape discover] Error: {e}")
        raise typer.Exit(code=1)

    for link in links:
        typer.echo(f"  {link}")
    typer.echo(f"[scrape discover] {len(links)} link(s).")


@scrape_app.command("parse")
def scrape_parse(
    path: str = typer.Argument(..., help="Detail page path (or absolute URL)."),
) -> None:
    """Fetch one detail page and print the parsed record as JSON."""
    from dataclasses import asdict

    from carlisting.scraper.parser import parse_detail_page
    from carlisting.scraper.retry import RetryingFetcher
    from carlisting.sync.batch import ScrapeConfig

    try:
        config = ScrapeConfig.from_settings()
        document = RetryingFetcher().fetch(
            config.detail_url(path), config.retry_count, config.retry_delay
        )
    except CarListingError as e:
        typer.echo(f"[scrape parse] Error: {e}")
        raise typer.Exit(code=1)

    record = parse_detail_page(document, path)
    data = asdict(record)
    data["detail_fields"] = {
        target.value: {"kind": detail.kind.value, "value": detail.value}
        for target, detail in record.detail_fields.items()
    }
    typer.echo(json.dumps(data, indent=2, ensure_ascii=False))


# ---------------------------------------------------------------------------
# Entry-point
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    app()
