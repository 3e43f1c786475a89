"""Shared fixtures: in-memory DB, a fake source site and HTML page builders.

No test touches the network: page fetches go through :class:`FakeSite`, which
serves canned HTML by absolute URL and raises ``FetchError`` for anything else.
"""

from __future__ import annotations

import sqlite3
from typing import Callable, Generator, Iterable, Mapping, Optional

import pytest

from carlisting.db.connection import get_connection
from carlisting.db.migrations import init_db
from carlisting.db.repository import SqliteListingRepository
from carlisting.errors import FetchError
from carlisting.scraper.fetcher import parse_document
from carlisting.scraper.models import Document
from carlisting.scraper.retry import RetryingFetcher
from carlisting.sync.batch import BatchRunner, ScrapeConfig
from carlisting.sync.session_cache import SqliteSessionCache

BASE_URL = "https://cars.example"
ROOT_URL = f"{BASE_URL}/dealer"


# ---------------------------------------------------------------------------
# HTML builders
# ---------------------------------------------------------------------------

def build_listing_page(links: Iterable[str], pages: int = 0) -> str:
    """A listing page with *links* and *pages* pagination anchors."""
    items = "".join(
        f'<li><div class="uk-width-1-1"><h3 class="car-list-header">'
        f'<a href="{href}">car</a></h3></div></li>'
        for href in links
    )
    pagination = "".join(
        f'<a class="pagination-page" href="?Page={n}">{n}</a>' for n in range(1, pages + 1)
    )
    return (
        "<html><body>"
        f'<ul class="result-list">{items}</ul>'
        f'<div class="pagination-container">{pagination}</div>'
        "</body></html>"
    )


def build_detail_page(
    title: str = "Volvo V70 D4",
    price: str = "125&nbsp;000 kr",
    details: Optional[Mapping[str, str]] = None,
    additional: Iterable[str] = ("Färg", "Röd", "Säten", "5"),
    images: Iterable[str] = ("/img/1.jpg", "/img/2.jpg"),
    features: Iterable[str] = ("Klimatanläggning", "  Dragkrok "),
    carfax: str = "https://carfax.example/report/1",
) -> str:
    """A detail page shaped like the source site's car pages."""
    if details is None:
        details = {"Märke": "Volvo", "Miltal": "12 345 mil", "Regnr": " ABC 123 "}
    detail_rows = "".join(
        f"<div><dt>{label}</dt><dd>{value}</dd></div>" for label, value in details.items()
    )
    additional_cells = "".join(f"<div>{cell}</div>" for cell in additional)
    slides = "".join(f'<li data-src="{src}"></li>' for src in images)
    equipment = "".join(f"<li>{item}</li>" for item in features)
    carfax_block = (
        '<div id="extended-carfax-details"><div class="extended-carfax-details-headline">'
        f'<a href="{carfax}">Carfax</a></div></div>'
        if carfax
        else ""
    )
    return f"""\
<html><body>
<div id="vehicle-details">
  <h1 class="vehicle-detail-title">{title}</h1>
  <div class="vehicle-detail-price"><span class="car-price-details">{price}</span></div>
</div>
<div class="vehicle-detail-headline"><div class="object-info-box"><dl>{detail_rows}</dl></div></div>
{carfax_block}
<div class="vehicle-detail-additional-detail"><div class="additional-vehicle-data">
  <ul><li>{additional_cells}</li></ul>
</div></div>
<div class="main-slideshow-container"><ul class="uk-slideshow">{slides}</ul></div>
<div class="vehicle-detail-equipment-detail"><div class="equipment-box"><ul>{equipment}</ul></div></div>
</body></html>
"""


# ---------------------------------------------------------------------------
# Fake source site
# ---------------------------------------------------------------------------

class FakeSite:
    """Serve canned pages by absolute URL; unknown URLs fail like a 404."""

    def __init__(self) -> None:
        self.pages: dict[str, str] = {}
        self.calls: list[str] = []
        self.hooks: dict[str, Callable[[], None]] = {}

    def add(self, url: str, html: str) -> None:
        self.pages[url] = html

    def add_listing(self, links: list[str]) -> None:
        self.add(ROOT_URL, build_listing_page(links))
        for href in links:
            self.add(BASE_URL + href, build_detail_page(title=f"Car {href}"))

    def remove(self, url: str) -> None:
        self.pages.pop(url, None)

    def count(self, url: str) -> int:
        return self.calls.count(url)

    def __call__(self, url: str) -> Document:
        self.calls.append(url)
        if url in self.hooks:
            self.hooks[url]()
        html = self.pages.get(url)
        if html is None:
            raise FetchError(url, "HTTP 404")
        return parse_document(html)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def conn() -> Generator[sqlite3.Connection, None, None]:
    """In-memory connection with the schema initialised."""
    connection = get_connection(db_path=":memory:")  # type: ignore[arg-type]
    init_db(connection)
    yield connection
    connection.close()


@pytest.fixture()
def site() -> FakeSite:
    return FakeSite()


@pytest.fixture()
def config() -> ScrapeConfig:
    return ScrapeConfig(
        base_url=BASE_URL,
        store_path="/dealer",
        pagination_selector="div.pagination-container a.pagination-page",
        item_selector="ul.result-list li .uk-width-1-1 .car-list-header a",
        retry_count=2,
        retry_delay=1.0,
    )


@pytest.fixture()
def sleeps() -> list[float]:
    return []


@pytest.fixture()
def fetcher(site: FakeSite, sleeps: list[float]) -> RetryingFetcher[Document]:
    return RetryingFetcher(fetch=site, sleep=sleeps.append)


@pytest.fixture()
def repository(conn: sqlite3.Connection) -> SqliteListingRepository:
    return SqliteListingRepository(conn)


@pytest.fixture()
def cache(conn: sqlite3.Connection) -> SqliteSessionCache:
    return SqliteSessionCache(conn)


@pytest.fixture()
def runner(
    repository: SqliteListingRepository,
    cache: SqliteSessionCache,
    fetcher: RetryingFetcher[Document],
) -> BatchRunner:
    return BatchRunner(repository, cache, fetcher=fetcher)
