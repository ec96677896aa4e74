"""Scrape orchestrator tiering text extraction against a page fetch."""
import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Optional

from processor.event_time_extractor import EventTimeExtractor
from processor.models import ParsedEvents, ScrapingConfig
from scraper.page_fetcher import PageFetcher
from scraper.time_text_collector import TimeTextCollector
from storage.result_cache import ResultCache, normalize_url

logger = logging.getLogger(__name__)


class EventTimeService:
    """Service owning the scraping configuration and the result cache."""

    def __init__(
        self,
        config: Optional[ScrapingConfig] = None,
        fetcher=None,
        collector: Optional[TimeTextCollector] = None,
        extractor: Optional[EventTimeExtractor] = None,
        cache: Optional[ResultCache] = None
    ):
        """
        Initialize the service.

        Args:
            config: Scraping configuration (default: ScrapingConfig())
            fetcher: Page fetcher collaborator with a
                fetch(url, user_agent, timeout_ms) method
                (default: PageFetcher)
            collector: Web document time-text collector
            extractor: Text extraction pipeline
            cache: Result cache (default: a new empty cache)
        """
        self.config = config or ScrapingConfig()
        self.extractor = extractor or EventTimeExtractor()
        self.collector = collector or TimeTextCollector(self.extractor.resolver)
        self._owns_fetcher = fetcher is None
        self.fetcher = fetcher or PageFetcher(retry_attempts=self.config.retry_attempts)
        self.cache = cache if cache is not None else ResultCache()
        self._executor: Optional[ThreadPoolExecutor] = None
        self._inflight: Dict[str, asyncio.Future] = {}

    def configure(self, config: ScrapingConfig) -> None:
        """Replace the scraping configuration."""
        logger.info(f"Applying scraping configuration: {config}")
        self.config = config
        if self._owns_fetcher:
            self.fetcher = PageFetcher(retry_attempts=config.retry_attempts)
        self._shutdown_executor()

    def clear_cache(self) -> None:
        self.cache.clear()

    def close(self) -> None:
        self._shutdown_executor()

    def extract(self, text: str, fallback_year: Optional[int] = None) -> ParsedEvents:
        """Extract events from text alone."""
        return self.extractor.extract(text, fallback_year)

    async def extract_with_fallback(
        self,
        text: str,
        url: Optional[str],
        scraping_enabled: bool = True,
        fallback_year: Optional[int] = None
    ) -> ParsedEvents:
        """
        Extract events from text, falling back to the linked page.

        Args:
            text: Feed item text
            url: Link of the feed item
            scraping_enabled: Caller's permission to fetch the page
            fallback_year: Year for dates that omit one, applied to the
                text and to the fetched page

        Returns:
            ParsedEvents from the text, the cache or the fetched page;
            the empty sentinel when all of them come up empty or fail
        """
        result = self.extract(text, fallback_year)
        if not result.is_empty():
            return result
        if not (scraping_enabled and self.config.enabled) or not url:
            return result

        if self.config.cache_enabled:
            cached = self.cache.get(url)
            if cached is not None:
                logger.info(f"Cache hit for {url}")
                return cached

        if self.config.single_flight:
            return await self._coalesced_scrape(url, fallback_year)
        return await self._scrape(url, fallback_year)

    async def _coalesced_scrape(
        self,
        url: str,
        fallback_year: Optional[int] = None
    ) -> ParsedEvents:
        key = normalize_url(url)
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._scrape(url, fallback_year))
            self._inflight[key] = task
            task.add_done_callback(lambda _: self._inflight.pop(key, None))
        else:
            logger.debug(f"Joining in-flight fetch of {url}")
        # A cancelled caller must not cancel the fetch other callers share.
        return await asyncio.shield(task)

    async def _scrape(
        self,
        url: str,
        fallback_year: Optional[int] = None
    ) -> ParsedEvents:
        loop = asyncio.get_running_loop()
        try:
            soup = await loop.run_in_executor(
                self._get_executor(),
                self.fetcher.fetch,
                url,
                self.config.user_agent,
                self.config.timeout_ms
            )
            text = self.collector.combined_text(soup, url)
        except Exception as e:
            logger.warning(
                f"Web fallback failed for {url}: {e}",
                extra={'error_type': type(e).__name__}
            )
            return ParsedEvents.empty()

        result = self.extractor.extract(text, fallback_year)
        if self.config.cache_enabled and self.cache.put(url, result):
            logger.info(f"Cached web fallback result for {url}")
        return result

    def _get_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=max(1, self.config.max_concurrent_requests),
                thread_name_prefix='page-fetch'
            )
        return self._executor

    def _shutdown_executor(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None
