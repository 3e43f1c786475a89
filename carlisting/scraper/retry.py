"""Fixed-delay retry around a single-attempt fetch function.

The same policy covers listing pages, detail pages and images: the first
attempt plus up to ``retries`` more, with ``delay`` seconds between failed
attempts and no wait after the last one.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Generic, TypeVar

from carlisting.errors import FetchCancelled, FetchError
from carlisting.scraper.fetcher import fetch_document

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryingFetcher(Generic[T]):
    """Wrap a ``fetch(url) -> T`` callable that raises :class:`FetchError`."""

    def __init__(
        self,
        fetch: Callable[[str], T] = fetch_document,  # type: ignore[assignment]
        retries: int = 2,
        delay: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._fetch = fetch
        self.retries = retries
        self.delay = delay
        self._sleep = sleep
        self._clock = clock

    def fetch(
        self,
        url: str,
        retries: int | None = None,
        delay: float | None = None,
        cancel: threading.Event | None = None,
        deadline: float | None = None,
    ) -> T:
        """Return the first successful result for *url*.

        Args:
            url: Absolute URL to fetch.
            retries: Attempts beyond the first; defaults to ``self.retries``.
            delay: Seconds to wait between failed attempts.
            cancel: Checked before every attempt and interrupts the wait.
            deadline: ``clock()`` value after which no new attempt starts.

        Raises:
            FetchCancelled: *cancel* was set or *deadline* passed.
            FetchError: Every attempt failed.
        """
        retries = self.retries if retries is None else retries
        delay = self.delay if delay is None else delay
        max_attempts = retries + 1
        last_error: FetchError | None = None

        for attempt in range(1, max_attempts + 1):
            self._check_cancelled(url, attempt, cancel, deadline)
            try:
                return self._fetch(url)
            except FetchCancelled:
                raise
            except FetchError as exc:
                last_error = exc
                logger.warning(
                    "Could not fetch %s (attempt %d/%d): %s",
                    url, attempt, max_attempts, exc,
                )
            if attempt < max_attempts and delay > 0:
                self._wait(delay, cancel)

        logger.error("Permanent failure fetching %s after %d attempts", url, max_attempts)
        raise FetchError(
            url, f"gave up after {max_attempts} attempts: {last_error}", attempts=max_attempts
        ) from last_error

    def _check_cancelled(
        self,
        url: str,
        attempt: int,
        cancel: threading.Event | None,
        deadline: float | None,
    ) -> None:
        if cancel is not None and cancel.is_set():
            raise FetchCancelled(url, "cancelled", attempts=attempt - 1)
        if deadline is not None and self._clock() >= deadline:
            raise FetchCancelled(url, "deadline exceeded", attempts=attempt - 1)

    def _wait(self, delay: float, cancel: threading.Event | None) -> None:
        if cancel is None:
            self._sleep(delay)
        else:
            cancel.wait(delay)
