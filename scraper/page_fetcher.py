"""Page fetcher returning parsed HTML documents."""
import logging
import time

import requests
from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)


class PageFetchError(Exception):
    """Raised when a response cannot be turned into a document."""


class PageFetcher:
    """Fetcher for event pages used by the web fallback."""

    def __init__(self, retry_attempts: int = 1, backoff_seconds: float = 1):
        """
        Initialize the page fetcher.

        Args:
            retry_attempts: Extra attempts after the first failure (default: 1)
            backoff_seconds: Base delay of the exponential backoff (default: 1)
        """
        self.retry_attempts = retry_attempts
        self.backoff_seconds = backoff_seconds

    def fetch(self, url: str, user_agent: str, timeout_ms: int) -> BeautifulSoup:
        """
        Fetch a page and parse it with retry logic.

        Args:
            url: Page URL
            user_agent: User-Agent header value
            timeout_ms: HTTP request timeout in milliseconds

        Returns:
            Parsed BeautifulSoup document

        Raises:
            requests.RequestException: If all retry attempts fail
            PageFetchError: If the response is not an HTML document
        """
        max_attempts = self.retry_attempts + 1

        for attempt in range(max_attempts):
            try:
                logger.info(f"Fetching {url} (attempt {attempt + 1}/{max_attempts})")
                response = requests.get(
                    url,
                    headers={'User-Agent': user_agent},
                    timeout=timeout_ms / 1000
                )
                response.raise_for_status()
                return self._parse(url, response)

            except requests.RequestException as e:
                if attempt < max_attempts - 1:
                    delay = self.backoff_seconds * (2 ** attempt)
                    logger.warning(
                        f"Request failed (attempt {attempt + 1}/{max_attempts}): {e}. "
                        f"Retrying in {delay} seconds..."
                    )
                    time.sleep(delay)
                else:
                    logger.error(
                        f"All {max_attempts} attempts failed for {url}. Last error: {e}"
                    )
                    raise

    def _parse(self, url: str, response: requests.Response) -> BeautifulSoup:
        content_type = response.headers.get('Content-Type', '')
        if content_type and 'html' not in content_type and 'xml' not in content_type:
            raise PageFetchError(f"Unsupported content type for {url}: {content_type}")
        if not response.text.strip():
            raise PageFetchError(f"Empty document for {url}")
        return BeautifulSoup(response.text, 'html.parser')
