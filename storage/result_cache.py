"""URL-keyed cache of web fallback extraction results."""
import logging
from typing import Dict, Optional
from urllib.parse import urlsplit, urlunsplit

from processor.models import ParsedEvents

logger = logging.getLogger(__name__)


def normalize_url(url: str) -> str:
    """
    Normalize a URL into a cache key.

    Adds a missing https scheme, lowercases scheme and host, drops the
    fragment and any trailing slash of the path.

    Args:
        url: URL as supplied by the feed

    Returns:
        Normalized URL string
    """
    url = url.strip()
    if not url.lower().startswith(('http://', 'https://')):
        url = f"https://{url}"
    parts = urlsplit(url)
    path = parts.path.rstrip('/')
    return urlunsplit(
        (parts.scheme.lower(), parts.netloc.lower(), path, parts.query, '')
    )


class ResultCache:
    """In-memory cache holding only non-empty results."""

    def __init__(self):
        self._entries: Dict[str, ParsedEvents] = {}

    def get(self, url: str) -> Optional[ParsedEvents]:
        return self._entries.get(normalize_url(url))

    def put(self, url: str, result: ParsedEvents) -> bool:
        """
        Store a result unless it is empty.

        Returns:
            True if the result was stored
        """
        if result.is_empty():
            return False
        key = normalize_url(url)
        self._entries[key] = result
        logger.debug(f"Cached result for {key}")
        return True

    def clear(self) -> None:
        logger.info(f"Clearing {len(self._entries)} cached results")
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, url: str) -> bool:
        return normalize_url(url) in self._entries
