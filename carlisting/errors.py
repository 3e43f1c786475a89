"""Exception hierarchy shared by the scraper, sync and storage layers."""

from __future__ import annotations


class CarListingError(Exception):
    """Base class for every error raised by carlisting."""


class ConfigurationError(CarListingError):
    """The resolved configuration cannot be used for a scrape."""


class FetchError(CarListingError):
    """A URL could not be fetched (after all attempts, when retried)."""

    def __init__(self, url: str, message: str, attempts: int = 1) -> None:
        super().__init__(f"{message} ({url})")
        self.url = url
        self.attempts = attempts


class FetchCancelled(FetchError):
    """Fetching stopped because the caller cancelled or the deadline passed."""


class DiscoveryError(CarListingError):
    """The listing root page could not be fetched; nothing was discovered."""


class BatchCancelled(CarListingError):
    """A batch was aborted part-way by cancellation or deadline."""


class RepositoryError(CarListingError):
    """A storage operation on a listing failed."""
