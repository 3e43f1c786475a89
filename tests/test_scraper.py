"""Tests for the single-attempt fetcher and the retry wrapper.

Mocking strategy:
- ``respx`` patches ``httpx`` at the transport layer so no real network calls
  are made during ``fetch_url`` tests.
- ``RetryingFetcher`` gets a scripted fetch function plus a recording ``sleep``
  and a fake clock, so retry counts and waits are asserted without delays.
"""

from __future__ import annotations

import threading
from unittest.mock import MagicMock

import httpx
import pytest
import respx

from carlisting.errors import FetchCancelled, FetchError
from carlisting.scraper.fetcher import fetch_bytes, fetch_document, fetch_url
from carlisting.scraper.models import RawPage
from carlisting.scraper.retry import RetryingFetcher

_HTML = "<html><head><title>Bil</title></head><body><h1 class='t'>Volvo</h1></body></html>"


# ---------------------------------------------------------------------------
# fetch_url / fetch_document
# ---------------------------------------------------------------------------

class TestFetchUrl:
    def test_successful_fetch_returns_raw_page(self) -> None:
        with respx.mock:
            respx.get("https://cars.example/bil/1").mock(
                return_value=httpx.Response(200, text=_HTML)
            )
            raw = fetch_url("https://cars.example/bil/1")

        assert isinstance(raw, RawPage)
        assert raw.status_code == 200
        assert "Volvo" in raw.html

    def test_http_error_raises_fetch_error(self) -> None:
        with respx.mock:
            respx.get("https://cars.example/missing").mock(
                return_value=httpx.Response(404, text="Not Found")
            )
            with pytest.raises(FetchError, match="HTTP 404"):
                fetch_url("https://cars.example/missing")

    def test_transport_error_raises_fetch_error(self) -> None:
        with respx.mock:
            respx.get("https://cars.example/down").mock(
                side_effect=httpx.ConnectError("connection refused")
            )
            with pytest.raises(FetchError):
                fetch_url("https://cars.example/down")

    def test_invalid_url_raises_fetch_error(self) -> None:
        with respx.mock:
            respx.get("https://cars.example/bad").mock(
                side_effect=httpx.InvalidURL("Invalid non-printable ASCII character in URL")
            )
            with pytest.raises(FetchError, match="invalid URL"):
                fetch_url("https://cars.example/bad")

    def test_empty_body_is_a_failure(self) -> None:
        with respx.mock:
            respx.get("https://cars.example/empty").mock(
                return_value=httpx.Response(200, text="   ")
            )
            with pytest.raises(FetchError, match="empty"):
                fetch_url("https://cars.example/empty")

    def test_fetch_document_parses_html(self) -> None:
        with respx.mock:
            respx.get("https://cars.example/bil/1").mock(
                return_value=httpx.Response(200, text=_HTML)
            )
            document = fetch_document("https://cars.example/bil/1")

        assert document.select_one("h1.t").get_text() == "Volvo"

    def test_fetch_bytes_returns_body(self) -> None:
        with respx.mock:
            respx.get("https://cars.example/img/1.jpg").mock(
                return_value=httpx.Response(200, content=b"\xff\xd8\xff")
            )
            assert fetch_bytes("https://cars.example/img/1.jpg") == b"\xff\xd8\xff"


# ---------------------------------------------------------------------------
# RetryingFetcher
# ---------------------------------------------------------------------------

def _failing(times: int, result: str = "doc") -> MagicMock:
    """A fetch function that fails *times* times, then returns *result*."""
    errors = [FetchError("https://x", "HTTP 503") for _ in range(times)]
    return MagicMock(side_effect=[*errors, result])


class TestRetryingFetcher:
    def test_returns_first_success_without_sleeping(self) -> None:
        fetch = MagicMock(return_value="doc")
        sleep = MagicMock()
        fetcher = RetryingFetcher(fetch=fetch, retries=2, delay=1, sleep=sleep)

        assert fetcher.fetch("https://x") == "doc"
        fetch.assert_called_once_with("https://x")
        sleep.assert_not_called()

    def test_retries_then_succeeds(self) -> None:
        fetch = _failing(2)
        sleep = MagicMock()
        fetcher = RetryingFetcher(fetch=fetch, retries=2, delay=1.5, sleep=sleep)

        assert fetcher.fetch("https://x") == "doc"
        assert fetch.call_count == 3
        assert sleep.call_count == 2

    def test_exhausted_attempts_equal_retries_plus_one(self) -> None:
        fetch = MagicMock(side_effect=FetchError("https://x", "HTTP 500"))
        sleeps: list[float] = []
        fetcher = RetryingFetcher(fetch=fetch, sleep=sleeps.append)

        with pytest.raises(FetchError) as excinfo:
            fetcher.fetch("https://x", retries=3, delay=2)

        assert fetch.call_count == 4
        assert excinfo.value.attempts == 4
        # Waits only between attempts: retries * delay in total.
        assert sleeps == [2, 2, 2]

    def test_zero_retries_means_single_attempt(self) -> None:
        fetch = MagicMock(side_effect=FetchError("https://x", "HTTP 500"))
        sleep = MagicMock()
        fetcher = RetryingFetcher(fetch=fetch, sleep=sleep)

        with pytest.raises(FetchError):
            fetcher.fetch("https://x", retries=0, delay=5)

        fetch.assert_called_once()
        sleep.assert_not_called()

    def test_zero_delay_does_not_sleep(self) -> None:
        fetch = _failing(1)
        sleep = MagicMock()
        fetcher = RetryingFetcher(fetch=fetch, sleep=sleep)

        assert fetcher.fetch("https://x", retries=1, delay=0) == "doc"
        sleep.assert_not_called()

    def test_per_call_values_override_defaults(self) -> None:
        fetch = MagicMock(side_effect=FetchError("https://x", "HTTP 500"))
        fetcher = RetryingFetcher(fetch=fetch, retries=5, delay=9, sleep=MagicMock())

        with pytest.raises(FetchError):
            fetcher.fetch("https://x", retries=1, delay=0)
        assert fetch.call_count == 2


class TestCancellation:
    def test_cancel_set_before_start_skips_fetch(self) -> None:
        fetch = MagicMock(return_value="doc")
        cancel = threading.Event()
        cancel.set()
        fetcher = RetryingFetcher(fetch=fetch, sleep=MagicMock())

        with pytest.raises(FetchCancelled):
            fetcher.fetch("https://x", cancel=cancel)
        fetch.assert_not_called()

    def test_cancel_between_attempts_stops_retrying(self) -> None:
        cancel = threading.Event()

        def fetch(url: str) -> str:
            cancel.set()
            raise FetchError(url, "HTTP 503")

        fetcher = RetryingFetcher(fetch=fetch, retries=3, delay=0.01)
        with pytest.raises(FetchCancelled) as excinfo:
            fetcher.fetch("https://x", cancel=cancel)
        assert excinfo.value.attempts == 1

    def test_deadline_in_the_past_raises(self) -> None:
        fetch = MagicMock(return_value="doc")
        fetcher = RetryingFetcher(fetch=fetch, clock=lambda: 100.0)

        with pytest.raises(FetchCancelled, match="deadline"):
            fetcher.fetch("https://x", deadline=99.0)
        fetch.assert_not_called()

    def test_deadline_reached_after_first_failure(self) -> None:
        now = [0.0]

        def sleep(seconds: float) -> None:
            now[0] += seconds

        fetch = MagicMock(side_effect=FetchError("https://x", "HTTP 503"))
        fetcher = RetryingFetcher(fetch=fetch, sleep=sleep, clock=lambda: now[0])

        with pytest.raises(FetchCancelled):
            fetcher.fetch("https://x", retries=5, delay=10, deadline=15.0)
        assert fetch.call_count == 2

    def test_cancelled_is_a_fetch_error(self) -> None:
        assert issubclass(FetchCancelled, FetchError)
