"""Shared fixtures with a fixed timezone and clock."""
from datetime import datetime, timedelta, timezone

import pytest

from processor.date_resolver import DateTimeResolver
from processor.event_time_extractor import EventTimeExtractor

TZ = timezone(timedelta(hours=-5))
NOW = datetime(2025, 3, 1, 12, 0, tzinfo=TZ)


def local(*args) -> datetime:
    """Build an aware datetime in the test timezone."""
    return datetime(*args, tzinfo=TZ)


@pytest.fixture
def resolver():
    return DateTimeResolver(tz=TZ)


@pytest.fixture
def extractor(resolver):
    return EventTimeExtractor(resolver, now=lambda: NOW)
