"""Unit tests for EventTimeService."""
import asyncio
import threading
from unittest.mock import Mock

import pytest
import requests
from bs4 import BeautifulSoup

from processor.models import EventSegment, ParsedEvents, ScrapingConfig
from scraper.event_time_service import EventTimeService
from scraper.page_fetcher import PageFetchError
from conftest import local

URL = "https://gallery.example.org/events/night-screening"

SCREENING_PAGE = "<html><body><p>Screening June 24, 2025 at 7pm</p></body></html>"
SCREENING = EventSegment(
    "Screening", local(2025, 6, 24, 19, 0), local(2025, 6, 24, 21, 0)
)


@pytest.fixture
def fetcher():
    """Create a mock page fetcher serving the screening page."""
    fetcher = Mock()
    fetcher.fetch.side_effect = lambda url, user_agent, timeout_ms: BeautifulSoup(
        SCREENING_PAGE, 'html.parser'
    )
    return fetcher


@pytest.fixture
def service(fetcher, extractor):
    service = EventTimeService(
        config=ScrapingConfig(user_agent="TestBot/1.0", timeout_ms=2500),
        fetcher=fetcher,
        extractor=extractor
    )
    yield service
    service.close()


class TestEventTimeService:
    """Test cases for EventTimeService class."""

    def test_text_result_skips_fetch(self, service, fetcher):
        """Test that a non-empty text result is returned without fetching."""
        result = asyncio.run(service.extract_with_fallback("June 24 | 5-9pm", URL))

        assert len(result.receptions) == 1
        fetcher.fetch.assert_not_called()

    def test_fallback_fetches_page(self, service, fetcher):
        """Test the web fallback when the text has no dates."""
        result = asyncio.run(service.extract_with_fallback("Come see the show!", URL))

        assert result.receptions == [SCREENING]
        fetcher.fetch.assert_called_once_with(URL, "TestBot/1.0", 2500)

    def test_second_call_hits_cache(self, service, fetcher):
        """Test that a cached result is served without another fetch."""
        first = asyncio.run(service.extract_with_fallback("", URL))
        second = asyncio.run(service.extract_with_fallback("", URL + "/"))

        assert first == second
        assert fetcher.fetch.call_count == 1
        assert URL in service.cache

    def test_clear_cache_forces_refetch(self, service, fetcher):
        """Test that clearing the cache makes the next call fetch again."""
        asyncio.run(service.extract_with_fallback("", URL))
        service.clear_cache()
        asyncio.run(service.extract_with_fallback("", URL))

        assert fetcher.fetch.call_count == 2

    def test_cache_disabled(self, fetcher, extractor):
        """Test that nothing is cached when caching is off."""
        service = EventTimeService(
            config=ScrapingConfig(cache_enabled=False),
            fetcher=fetcher,
            extractor=extractor
        )

        asyncio.run(service.extract_with_fallback("", URL))
        asyncio.run(service.extract_with_fallback("", URL))

        assert fetcher.fetch.call_count == 2
        assert len(service.cache) == 0
        service.close()

    def test_scraping_disabled_by_caller(self, service, fetcher):
        """Test the caller's opt-out of the web fallback."""
        result = asyncio.run(
            service.extract_with_fallback("", URL, scraping_enabled=False)
        )

        assert result == ParsedEvents.empty()
        fetcher.fetch.assert_not_called()

    def test_scraping_disabled_by_config(self, service, fetcher):
        """Test that configure() can switch the web fallback off."""
        service.configure(ScrapingConfig(enabled=False))

        result = asyncio.run(service.extract_with_fallback("", URL))

        assert result.is_empty()
        fetcher.fetch.assert_not_called()

    def test_no_url(self, service, fetcher):
        """Test that an empty result without a link is returned as is."""
        result = asyncio.run(service.extract_with_fallback("Come see the show!", None))

        assert result.is_empty()
        fetcher.fetch.assert_not_called()

    @pytest.mark.parametrize("error", [
        requests.ConnectionError("Connection refused"),
        PageFetchError("Unsupported content type"),
    ])
    def test_fetch_failure_returns_empty(self, service, fetcher, error):
        """Test that fetch errors degrade to the empty result."""
        fetcher.fetch.side_effect = error

        result = asyncio.run(service.extract_with_fallback("", URL))

        assert result.is_empty()
        assert len(service.cache) == 0

    def test_empty_page_result_is_not_cached(self, service, fetcher):
        """Test that pages without dates are fetched again next time."""
        fetcher.fetch.side_effect = lambda *args: BeautifulSoup(
            "<p>Come see the show!</p>", 'html.parser'
        )

        asyncio.run(service.extract_with_fallback("", URL))
        asyncio.run(service.extract_with_fallback("", URL))

        assert fetcher.fetch.call_count == 2
        assert len(service.cache) == 0

    def test_concurrent_calls_share_one_fetch(self, service, fetcher):
        """Test single-flight coalescing of concurrent fetches."""
        async def run_both():
            return await asyncio.gather(
                service.extract_with_fallback("", URL),
                service.extract_with_fallback("", URL)
            )

        first, second = asyncio.run(run_both())

        assert first == second
        assert first.receptions == [SCREENING]
        assert fetcher.fetch.call_count == 1
        assert service._inflight == {}

    def test_concurrent_calls_without_single_flight(self, fetcher, extractor):
        """Test that each concurrent call fetches when coalescing is off."""
        service = EventTimeService(
            config=ScrapingConfig(single_flight=False),
            fetcher=fetcher,
            extractor=extractor
        )

        async def run_both():
            return await asyncio.gather(
                service.extract_with_fallback("", URL),
                service.extract_with_fallback("", URL)
            )

        asyncio.run(run_both())

        assert fetcher.fetch.call_count == 2
        service.close()

    def test_cancelled_caller_does_not_cancel_shared_fetch(self, service, fetcher):
        """Test that the remaining caller gets the page after another cancels."""
        started = threading.Event()
        release = threading.Event()

        def slow_fetch(url, user_agent, timeout_ms):
            started.set()
            release.wait(5)
            return BeautifulSoup(SCREENING_PAGE, 'html.parser')

        fetcher.fetch.side_effect = slow_fetch

        async def cancel_one():
            first = asyncio.ensure_future(service.extract_with_fallback("", URL))
            second = asyncio.ensure_future(service.extract_with_fallback("", URL))
            while not started.is_set():
                await asyncio.sleep(0.01)
            first.cancel()
            await asyncio.sleep(0)
            release.set()
            result = await second
            return first, result

        first, result = asyncio.run(cancel_one())

        assert first.cancelled()
        assert result.receptions == [SCREENING]
        assert fetcher.fetch.call_count == 1
        assert URL in service.cache
        assert service._inflight == {}

    def test_fallback_year_applies_to_fetched_page(self, service, fetcher):
        """Test that the caller's fallback year dates a page without years."""
        fetcher.fetch.side_effect = lambda *args: BeautifulSoup(
            "<p>Screening June 24 at 7pm</p>", 'html.parser'
        )

        result = asyncio.run(
            service.extract_with_fallback("", URL, fallback_year=2023)
        )

        assert result.receptions == [
            EventSegment("Screening", local(2023, 6, 24, 19, 0), local(2023, 6, 24, 21, 0))
        ]

    def test_extract_text_only(self, service):
        """Test the synchronous text-only entry point."""
        result = service.extract("February 15 | 3pm", fallback_year=2026)

        assert result.receptions[0].start == local(2026, 2, 15, 15, 0)

    def test_default_collaborators(self):
        """Test that a bare service wires its own collaborators."""
        service = EventTimeService()

        assert service.config == ScrapingConfig()
        assert service.fetcher.retry_attempts == 1
        assert service.collector.resolver is service.extractor.resolver
        assert len(service.cache) == 0
