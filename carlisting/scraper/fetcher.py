"""Single-attempt HTTP fetcher.  Retrying lives in :mod:`carlisting.scraper.retry`."""

from __future__ import annotations

import logging

import httpx
from bs4 import BeautifulSoup

from carlisting.config import settings
from carlisting.errors import FetchError
from carlisting.scraper.models import Document, RawPage

logger = logging.getLogger(__name__)

_DEFAULT_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/122.0.0.0 Safari/537.36"
    ),
    "Accept-Language": "sv-SE,sv;q=0.9,en;q=0.8",
}


def fetch_url(url: str, timeout: float | None = None) -> RawPage:
    """Fetch *url* once and return a :class:`RawPage`.

    Raises:
        FetchError: On a transport error, a non-2xx status code, or an empty
            response body.  No retry is attempted here.
    """
    try:
        with httpx.Client(
            headers=_DEFAULT_HEADERS,
            timeout=timeout if timeout is not None else settings.request_timeout,
            follow_redirects=True,
        ) as client:
            response = client.get(url)
            response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        raise FetchError(url, f"HTTP {exc.response.status_code}") from exc
    except httpx.HTTPError as exc:
        raise FetchError(url, f"request failed: {exc!r:.120}") from exc
    except httpx.InvalidURL as exc:
        raise FetchError(url, f"invalid URL: {exc}") from exc

    if not response.content.strip():
        raise FetchError(url, "empty response body")

    return RawPage(
        url=url,
        html=response.text,
        status_code=response.status_code,
        content=response.content,
    )


def parse_document(html: str) -> Document:
    """Parse *html* into a navigable tree."""
    return BeautifulSoup(html, "html.parser")


def fetch_document(url: str) -> Document:
    """Fetch *url* and return it parsed.  Raises :class:`FetchError`."""
    raw = fetch_url(url)
    logger.debug("Fetched %s (HTTP %d, %d bytes)", url, raw.status_code, len(raw.content))
    return parse_document(raw.html)


def fetch_bytes(url: str) -> bytes:
    """Fetch *url* and return the raw body (used for images)."""
    return fetch_url(url).content
