"""Collector of date/time-bearing text snippets from event pages."""
import json
import logging
import re
from typing import Dict, Iterator, List, Optional
from urllib.parse import urlparse

from bs4 import BeautifulSoup
from bs4.element import Tag

from processor.date_resolver import DateTimeResolver

logger = logging.getLogger(__name__)

STRUCTURED_DATE_KEYS = ('startDate', 'endDate', 'doorTime')

DATE_TIME_SELECTORS = [
    '.date', '.dates', '.time', '.times', '.datetime',
    '.event-date', '.event-dates', '.event-time', '.event-details',
    '.exhibition-dates', '.when', '.schedule', '.hours',
    '[class*="date"]', '[class*="time"]',
]

TIME_CONTEXT_KEYWORDS = (
    'screening', 'opening', 'reception', 'exhibition', 'on view', 'doors',
    'program', 'deadline', 'performance', 'concert', 'talk', 'workshop',
    'book launch', 'closing',
)

# Hostname -> selectors holding event dates on that site.
DOMAIN_SELECTORS: Dict[str, List[str]] = {
    'ps122gallery.org': ['.exhibition-info', '.entry-content p'],
    'e-flux.com': ['.article-header__date', '.announcement-details'],
    'artforum.com': ['.event-meta', '.listing__dates'],
}

SKIPPED_TAGS = ['script', 'style', 'noscript', 'nav', 'footer']

DATE_OR_TIME = re.compile(
    r'\b(?:jan|feb|mar|apr|may|jun|jul|aug|sep|sept|oct|nov|dec)[a-z]*\.?\s+\d{1,2}\b'
    r'|\b\d{1,2}(?::\d{2})?\s*[ap]\.?m\b'
    r'|\b\d{4}-\d{2}-\d{2}\b',
    re.IGNORECASE
)
_WHITESPACE = re.compile(r'\s+')


def has_date_or_time(text: str) -> bool:
    return bool(text) and DATE_OR_TIME.search(text) is not None


def has_time_context(text: str) -> bool:
    lowered = text.lower()
    return any(keyword in lowered for keyword in TIME_CONTEXT_KEYWORDS)


class TimeTextCollector:
    """Builds the text corpus of a fetched page for the extractor."""

    def __init__(
        self,
        resolver: Optional[DateTimeResolver] = None,
        domain_selectors: Optional[Dict[str, List[str]]] = None
    ):
        """
        Initialize the collector.

        Args:
            resolver: Resolver used to render machine-readable dates
            domain_selectors: Hostname -> CSS selectors overrides
                (default: DOMAIN_SELECTORS)
        """
        self.resolver = resolver or DateTimeResolver()
        self.domain_selectors = (
            domain_selectors if domain_selectors is not None else DOMAIN_SELECTORS
        )

    def collect(self, soup: BeautifulSoup, url: str) -> List[str]:
        """
        Gather candidate snippets from a parsed page.

        Args:
            soup: Parsed HTML document
            url: Source URL of the document

        Returns:
            Deduplicated snippets in discovery order
        """
        snippets: List[str] = []
        sources = [
            ('structured data', self._structured_data(soup)),
            ('microdata', self._microdata(soup)),
            ('selectors', self._selector_matches(soup)),
            ('time elements', self._time_elements(soup)),
            ('context leaves', self._context_leaves(soup)),
            ('date leaves', self._date_leaves(soup)),
            ('domain selectors', self._domain_matches(soup, url)),
        ]
        for source, found in sources:
            found = list(found)
            logger.debug(f"{source}: {len(found)} snippets")
            snippets.extend(found)

        unique = list(dict.fromkeys(s for s in map(self._clean, snippets) if s))
        logger.info(f"Collected {len(unique)} time snippets from {url}")
        return unique

    def combined_text(self, soup: BeautifulSoup, url: str) -> str:
        """Return the collected snippets as one newline-separated text."""
        return "\n".join(self.collect(soup, url))

    def _structured_data(self, soup: BeautifulSoup) -> Iterator[str]:
        for script in soup.find_all('script', type='application/ld+json'):
            content = script.string or script.get_text()
            if not content or not any(key in content for key in STRUCTURED_DATE_KEYS):
                continue
            try:
                data = json.loads(content)
            except (json.JSONDecodeError, TypeError) as e:
                logger.debug(f"Skipping malformed JSON-LD block: {e}")
                continue
            for item in self._walk(data):
                snippet = self._structured_snippet(item)
                if snippet:
                    yield snippet

    def _walk(self, data) -> Iterator[dict]:
        if isinstance(data, list):
            for value in data:
                yield from self._walk(value)
        elif isinstance(data, dict):
            if any(key in data for key in STRUCTURED_DATE_KEYS):
                yield data
            for value in data.values():
                if isinstance(value, (dict, list)):
                    yield from self._walk(value)

    def _structured_snippet(self, item: dict) -> Optional[str]:
        """Render a structured event as a phrase the cascade understands."""
        start = self._resolve_machine(item.get('startDate'))
        end = self._resolve_machine(item.get('endDate'))
        if start is None:
            return None
        start_dt, start_timed = start
        if end is None:
            return self.resolver.format(start_dt, with_time=start_timed)

        end_dt, end_timed = end
        if start_timed and end_timed and start_dt.date() == end_dt.date():
            end_clock = self.resolver.format(end_dt).rsplit(' ', 1)[1]
            return f"{self.resolver.format(start_dt)}-{end_clock}"
        return (
            f"{self.resolver.format(start_dt, with_time=False)} - "
            f"{self.resolver.format(end_dt, with_time=False)}"
        )

    def _resolve_machine(self, value):
        if not isinstance(value, str) or not value.strip():
            return None
        value = value.strip()
        resolved = self.resolver.resolve(value)
        if resolved is None:
            return None
        return resolved, ':' in value

    def _render_machine(self, value: Optional[str]) -> Optional[str]:
        resolved = self._resolve_machine(value)
        if resolved is None:
            return None
        moment, timed = resolved
        return self.resolver.format(moment, with_time=timed)

    def _microdata(self, soup: BeautifulSoup) -> Iterator[str]:
        selector = ', '.join(f'[itemprop="{key}"]' for key in STRUCTURED_DATE_KEYS)
        for element in soup.select(selector):
            machine = element.get('content') or element.get('datetime')
            rendered = self._render_machine(machine)
            if rendered:
                yield rendered
            else:
                yield element.get_text(' ', strip=True)

    def _selector_matches(self, soup: BeautifulSoup) -> Iterator[str]:
        for element in soup.select(', '.join(DATE_TIME_SELECTORS)):
            if self._skipped(element):
                continue
            text = element.get_text(' ', strip=True)
            if has_date_or_time(text):
                yield text

    def _time_elements(self, soup: BeautifulSoup) -> Iterator[str]:
        for element in soup.find_all('time'):
            rendered = self._render_machine(element.get('datetime'))
            if rendered:
                yield rendered
            yield element.get_text(' ', strip=True)

    def _leaves(self, soup: BeautifulSoup) -> Iterator[str]:
        """
        Yield the text of leaf elements.

        An element with child tags counts as a leaf when its own direct
        text holds a date or time, as in "<p><b>Talk</b> June 5, 6pm</p>".
        """
        for element in soup.find_all(True):
            if self._skipped(element):
                continue
            if element.find(True) is not None:
                own = ' '.join(element.find_all(string=True, recursive=False))
                if not has_date_or_time(own):
                    continue
            text = element.get_text(' ', strip=True)
            if text:
                yield text

    def _context_leaves(self, soup: BeautifulSoup) -> Iterator[str]:
        for text in self._leaves(soup):
            if has_time_context(text) and has_date_or_time(text):
                yield text

    def _date_leaves(self, soup: BeautifulSoup) -> Iterator[str]:
        for text in self._leaves(soup):
            if has_date_or_time(text):
                yield text

    def _domain_matches(self, soup: BeautifulSoup, url: str) -> Iterator[str]:
        hostname = (urlparse(url).hostname or '').lower()
        if hostname.startswith('www.'):
            hostname = hostname[4:]
        for selector in self.domain_selectors.get(hostname, []):
            for element in soup.select(selector):
                text = element.get_text(' ', strip=True)
                if text:
                    yield text

    @staticmethod
    def _skipped(element: Tag) -> bool:
        return element.name in SKIPPED_TAGS or element.find_parent(SKIPPED_TAGS) is not None

    @staticmethod
    def _clean(snippet: str) -> str:
        return _WHITESPACE.sub(' ', snippet).strip()
