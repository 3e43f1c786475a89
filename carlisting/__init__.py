"""carlisting: batched, resumable scraper for a dealer's car listings."""

__version__ = "0.3.0"
