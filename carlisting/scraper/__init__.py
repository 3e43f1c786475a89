"""Scraper package: fetch, retry, discovery and detail-page parsing."""

from carlisting.scraper.discovery import discover_links
from carlisting.scraper.fetcher import fetch_bytes, fetch_document, fetch_url
from carlisting.scraper.field_map import FIELD_MAP
from carlisting.scraper.models import Record, RawPage
from carlisting.scraper.parser import parse_detail_page
from carlisting.scraper.retry import RetryingFetcher

__all__ = [
    "discover_links",
    "fetch_bytes",
    "fetch_document",
    "fetch_url",
    "FIELD_MAP",
    "parse_detail_page",
    "Record",
    "RawPage",
    "RetryingFetcher",
]
