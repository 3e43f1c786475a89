"""Listing discovery: walk the dealer listing and its pagination for detail links."""

from __future__ import annotations

import logging
import threading
from typing import List

from carlisting.errors import DiscoveryError, FetchCancelled, FetchError
from carlisting.scraper.models import Document
from carlisting.scraper.retry import RetryingFetcher

logger = logging.getLogger(__name__)


def page_url(root_url: str, page: int) -> str:
    """URL of listing page *page* (1-based); page 1 is the root itself."""
    return root_url if page == 1 else f"{root_url}?Page={page}"


def _item_links(document: Document, item_selector: str) -> List[str]:
    links: List[str] = []
    for anchor in document.select(item_selector):
        href = anchor.get("href")
        if isinstance(href, str) and href.strip():
            links.append(href.strip())
    return links


def discover_links(
    fetcher: RetryingFetcher[Document],
    root_url: str,
    pagination_selector: str,
    item_selector: str,
    retries: int,
    delay: float,
    cancel: threading.Event | None = None,
    deadline: float | None = None,
) -> List[str]:
    """Return every detail-page link of the listing, in page and document order.

    The page count is the number of *pagination_selector* matches on the
    first page (at least 1).  Duplicates are kept.

    Raises:
        DiscoveryError: The root page could not be fetched after retries.
        FetchCancelled: *cancel* fired or *deadline* passed.
    """
    try:
        first = fetcher.fetch(root_url, retries, delay, cancel=cancel, deadline=deadline)
    except FetchCancelled:
        raise
    except FetchError as exc:
        raise DiscoveryError(f"Could not fetch listing page {root_url}: {exc}") from exc

    page_count = max(1, len(first.select(pagination_selector)))
    logger.info("Found %d listing page(s) at %s", page_count, root_url)

    links = _item_links(first, item_selector)
    logger.debug("Found %d item link(s) on page 1", len(links))

    for page in range(2, page_count + 1):
        url = page_url(root_url, page)
        try:
            document = fetcher.fetch(url, retries, delay, cancel=cancel, deadline=deadline)
        except FetchCancelled:
            raise
        except FetchError as exc:
            # A lost secondary page only loses its items.
            logger.warning("Skipping listing page %d (%s): %s", page, url, exc)
            continue
        page_links = _item_links(document, item_selector)
        logger.debug("Found %d item link(s) on page %d", len(page_links), page)
        links.extend(page_links)

    logger.info("Discovered %d item link(s) in total", len(links))
    return links
