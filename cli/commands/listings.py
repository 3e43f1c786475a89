"""Listing commands for inspecting the local store."""

import typer

from carlisting.db import get_connection, init_db
from carlisting.db.listings import get_listing, list_listings

listings_app = typer.Typer(help="Inspect stored listings.", no_args_is_help=True)


@listings_app.command("list")
def listings_list() -> None:
    """List all stored listings."""
    conn = get_connection()
    init_db(conn)
    try:
        items = list_listings(conn)
    finally:
        conn.close()

    if not items:
        typer.echo("No listings found.")
        return
    for item in items:
        typer.echo(f" - {item.title or '(untitled)'}  {item.price or '-'}  {item.uid}  ({item.id[:8]}...)")


@listings_app.command("show")
def listings_show(listing_id: str = typer.Argument(..., help="Storage id of the listing.")) -> None:
    """Show one listing with its fields, terms and images."""
    conn = get_connection()
    init_db(conn)
    try:
        item = get_listing(conn, listing_id)
    finally:
        conn.close()

    if item is None:
        typer.echo(f"❌ Listing not found: {listing_id}")
        raise typer.Exit(code=1)

    typer.echo(f"{item.title}  [{item.id}]")
    typer.echo(f"  uid    : {item.uid}")
    typer.echo(f"  price  : {item.price}")
    for key, value in sorted(item.meta.items()):
        typer.echo(f"  {key}: {value}")
    for taxonomy, terms in sorted(item.terms.items()):
        typer.echo(f"  {taxonomy}: {', '.join(terms)}")
    typer.echo(f"  images : {len(item.images)}")
