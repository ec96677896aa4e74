"""Resolver turning date/time substrings into absolute timestamps."""
import logging
import re
from datetime import datetime, timezone, tzinfo
from email.utils import parsedate_to_datetime
from typing import List, Optional, Tuple

logger = logging.getLogger(__name__)

# (strptime format, carries an explicit zone)
ABSOLUTE_TEMPLATES: List[Tuple[str, bool]] = [
    ('%Y-%m-%dT%H:%M:%S.%f%z', True),
    ('%Y-%m-%dT%H:%M:%S%z', True),
    ('%Y-%m-%dT%H:%M%z', True),
    ('%Y-%m-%dT%H:%M:%S.%f', False),
    ('%Y-%m-%dT%H:%M:%S', False),
    ('%Y-%m-%dT%H:%M', False),
    ('%Y-%m-%d %H:%M:%S', False),
    ('%Y-%m-%d %H:%M', False),
    ('%Y-%m-%d', False),
    ('%Y/%m/%d %H:%M', False),
    ('%Y/%m/%d', False),
    ('%a, %d %b %Y %H:%M:%S %z', True),
    ('%a, %d %b %Y %H:%M:%S %Z', True),
    ('%d %b %Y %H:%M:%S %z', True),
]

for _month in ('%B', '%b'):
    ABSOLUTE_TEMPLATES.extend([
        (f'{_month} %d %Y %I:%M%p', False),
        (f'{_month} %d, %Y %I:%M%p', False),
        (f'{_month} %d, %Y, %I:%M%p', False),
        (f'{_month} %d %Y at %I:%M%p', False),
        (f'{_month} %d, %Y at %I:%M%p', False),
        (f'%A, {_month} %d, %Y %I:%M%p', False),
        (f'%A, {_month} %d, %Y at %I:%M%p', False),
        (f'{_month} %d %Y', False),
        (f'{_month} %d, %Y', False),
        (f'%A, {_month} %d, %Y', False),
        (f'{_month}/%d/%Y', False),
    ])

# Parsed with the year prepended, so Feb 29 survives strptime.
MONTH_DAY_TEMPLATES: List[str] = []
for _month in ('%B', '%b'):
    MONTH_DAY_TEMPLATES.extend([
        f'{_month} %d',
        f'{_month} %d %I:%M%p',
        f'{_month} %d, %I:%M%p',
        f'{_month} %d at %I:%M%p',
        f'{_month} %d, at %I:%M%p',
    ])

_WHITESPACE = re.compile(r'\s+')
_ORDINAL_SUFFIX = re.compile(r'(\d)(?:st|nd|rd|th)\b', re.IGNORECASE)
_SHORT_MERIDIEM = re.compile(r'(\d{1,2}:\d{2})\s*([ap])(?![a-z])', re.IGNORECASE)
_HOUR_ONLY = re.compile(r'(?<![\d:])(\d{1,2})\s*([ap]m)\b', re.IGNORECASE)
_SPACED_MERIDIEM = re.compile(r'(\d{1,2}:\d{2})\s+([ap]m)\b', re.IGNORECASE)
_RFC822_SHAPE = re.compile(r'\d{1,2} [a-z]{3} \d{4} \d{2}:\d{2}', re.IGNORECASE)


class DateTimeResolver:
    """Resolver for absolute and partial date/time expressions."""

    def __init__(self, tz: Optional[tzinfo] = None):
        """
        Initialize the resolver.

        Args:
            tz: Timezone for expressions without an explicit zone
                (default: the process local timezone)
        """
        self.tz = tz

    def resolve(
        self,
        text: str,
        fallback_year: Optional[int] = None
    ) -> Optional[datetime]:
        """
        Resolve a date/time substring into an aware datetime.

        Args:
            text: Date/time text such as "june 24 2025 5:00pm"
            fallback_year: Year used when the text carries none
                (default: current year)

        Returns:
            Timezone-aware datetime or None if nothing matches
        """
        if not text or not text.strip():
            return None
        cleaned = self.clean(text)

        for fmt, zoned in ABSOLUTE_TEMPLATES:
            try:
                parsed = datetime.strptime(cleaned, fmt)
            except ValueError:
                continue
            return self._zoned(parsed) if zoned else self._localize(parsed)

        if _RFC822_SHAPE.search(cleaned):
            try:
                return self._zoned(parsedate_to_datetime(cleaned))
            except (TypeError, ValueError):
                pass

        year = fallback_year or self.now().year
        for fmt in MONTH_DAY_TEMPLATES:
            try:
                parsed = datetime.strptime(f'{year} {cleaned}', f'%Y {fmt}')
            except ValueError:
                continue
            return self._localize(parsed)

        logger.debug(f"Could not resolve date/time text: '{text}'")
        return None

    def clean(self, text: str) -> str:
        """Lightly clean a date/time string before template matching."""
        text = _WHITESPACE.sub(' ', text).strip().rstrip('.,;')
        text = _ORDINAL_SUFFIX.sub(r'\1', text)
        text = _SHORT_MERIDIEM.sub(r'\1\2m', text)
        text = _HOUR_ONLY.sub(r'\1:00\2', text)
        return _SPACED_MERIDIEM.sub(r'\1\2', text)

    def now(self) -> datetime:
        return datetime.now(self.tz) if self.tz else datetime.now().astimezone()

    def format(self, value: datetime, with_time: bool = True) -> str:
        """
        Render a datetime as matcher-friendly English text.

        Args:
            value: Datetime to render (aware values are shown in local time)
            with_time: Append the clock time

        Returns:
            Text such as "june 24, 2025 7:00pm"
        """
        if value.tzinfo is not None:
            value = value.astimezone(self.tz) if self.tz else value.astimezone()
        text = f"{value.strftime('%B').lower()} {value.day}, {value.year}"
        if with_time:
            hour = value.hour % 12 or 12
            meridiem = 'am' if value.hour < 12 else 'pm'
            text += f" {hour}:{value.minute:02d}{meridiem}"
        return text

    def _localize(self, value: datetime) -> datetime:
        if self.tz:
            return value.replace(tzinfo=self.tz)
        return value.astimezone()

    @staticmethod
    def _zoned(value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
