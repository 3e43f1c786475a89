"""Tests for the Typer CLI (sync, listings and db command groups)."""

from __future__ import annotations

import json

import httpx
import pytest
import respx
from conftest import BASE_URL, ROOT_URL, FakeSite, build_detail_page, build_listing_page
from typer.testing import CliRunner

from carlisting.db import get_connection, init_db
from carlisting.db.listings import list_listings
from carlisting.db.repository import SqliteListingRepository
from carlisting.sync.batch import BatchRunner
from carlisting.sync.session_cache import SqliteSessionCache
from cli.main import app

cli = CliRunner()


@pytest.fixture
def workspace(tmp_path, monkeypatch, fetcher):
    """Point the CLI at a fresh workspace and the fake site."""
    monkeypatch.setattr("carlisting.config.settings.workspace_dir", tmp_path)
    monkeypatch.setattr("carlisting.config.settings.base_url", BASE_URL)
    monkeypatch.setattr("carlisting.config.settings.store_path", "/dealer")
    monkeypatch.setattr("carlisting.config.settings.batch_size", 2)
    monkeypatch.setattr("cli.main.setup_logging", lambda *a, **k: None)
    monkeypatch.setattr(
        "cli.commands.sync.build_runner",
        lambda conn: BatchRunner(
            SqliteListingRepository(conn), SqliteSessionCache(conn), fetcher=fetcher
        ),
    )
    return tmp_path


def _stored_uids() -> list[str]:
    conn = get_connection()
    init_db(conn)
    try:
        return sorted(item.uid for item in list_listings(conn))
    finally:
        conn.close()


class TestDbCommands:
    def test_init(self, workspace):
        result = cli.invoke(app, ["db", "init"])
        assert result.exit_code == 0
        assert (workspace / "listings.db").exists()

    def test_purge_sessions(self, workspace):
        result = cli.invoke(app, ["db", "purge-sessions"])
        assert result.exit_code == 0
        assert "Removed 0 expired entries" in result.stdout


class TestSyncBatch:
    def test_batches_print_json(self, workspace, site: FakeSite):
        site.add_listing(["/bil/1", "/bil/2", "/bil/3"])

        first = cli.invoke(app, ["sync", "batch"])
        assert first.exit_code == 0
        body = json.loads(first.stdout)
        assert body["has_more"] is True

        second = cli.invoke(
            app,
            ["sync", "batch", "--offset", str(body["next_offset"]), "--session-id", body["session_id"]],
        )
        assert second.exit_code == 0
        final = json.loads(second.stdout)
        assert final["has_more"] is False
        assert final["removed"] == 0
        assert _stored_uids() == ["/bil/1", "/bil/2", "/bil/3"]

    def test_item_error_exits_with_2(self, workspace, site: FakeSite):
        site.add_listing(["/bil/1", "/bil/2"])
        site.remove(f"{BASE_URL}/bil/2")

        result = cli.invoke(app, ["sync", "batch", "--limit", "5"])

        assert result.exit_code == 2
        assert json.loads(result.stdout)["results"][1]["status"] == "error"

    def test_discovery_failure_exits_with_1(self, workspace):
        result = cli.invoke(app, ["sync", "batch"])
        assert result.exit_code == 1
        assert "error" in json.loads(result.stdout)


class TestSyncRun:
    def test_full_run(self, workspace, site: FakeSite):
        site.add_listing(["/bil/1", "/bil/2", "/bil/3"])

        result = cli.invoke(app, ["sync", "run"])

        assert result.exit_code == 0
        assert "3/3 listing(s) in 2 batch(es)" in result.stdout
        assert _stored_uids() == ["/bil/1", "/bil/2", "/bil/3"]

    def test_halt_on_error(self, workspace, site: FakeSite):
        site.add_listing(["/bil/1", "/bil/2"])
        site.remove(f"{BASE_URL}/bil/1")

        result = cli.invoke(app, ["sync", "run", "--halt-on-error"])

        assert result.exit_code == 2
        assert "Halted on '/bil/1'" in result.stdout


class TestListingsCommands:
    def test_empty(self, workspace):
        result = cli.invoke(app, ["listings", "list"])
        assert result.exit_code == 0
        assert "No listings found." in result.stdout

    def test_list_and_show(self, workspace, site: FakeSite):
        site.add_listing(["/bil/1"])
        cli.invoke(app, ["sync", "run"])

        listed = cli.invoke(app, ["listings", "list"])
        assert "Car /bil/1" in listed.stdout

        conn = get_connection()
        listing_id = list_listings(conn)[0].id
        conn.close()
        shown = cli.invoke(app, ["listings", "show", listing_id])
        assert shown.exit_code == 0
        assert "uid    : /bil/1" in shown.stdout
        assert "vehica_6654: Begagnad" in shown.stdout

    def test_show_missing(self, workspace):
        result = cli.invoke(app, ["listings", "show", "nope"])
        assert result.exit_code == 1


class TestScrapeCommands:
    def test_discover_lists_links(self, workspace):
        with respx.mock:
            respx.get(ROOT_URL).mock(
                return_value=httpx.Response(200, text=build_listing_page(["/bil/1", "/bil/2"]))
            )
            result = cli.invoke(app, ["scrape", "discover"])

        assert result.exit_code == 0
        assert "/bil/2" in result.stdout
        assert "2 link(s)." in result.stdout

    def test_parse_prints_record(self, workspace):
        with respx.mock:
            respx.get(f"{BASE_URL}/bil/1").mock(
                return_value=httpx.Response(200, text=build_detail_page())
            )
            result = cli.invoke(app, ["scrape", "parse", "/bil/1"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["identifier"] == "/bil/1"
        assert data["price"] == "125000"
        assert data["detail_fields"]["vehica_6664"] == {"kind": "number", "value": "12345"}
