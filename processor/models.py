"""Data models for event time extraction."""
import os
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple


READABLE_FORMAT = '%Y-%m-%d %H:%M'


@dataclass(frozen=True)
class EventSegment:
    """One named time span, such as an exhibition run or a reception."""
    name: str
    start: Optional[datetime]
    end: Optional[datetime]

    def to_dict(self) -> dict:
        return {
            'name': self.name,
            'start': self.start.isoformat() if self.start else None,
            'end': self.end.isoformat() if self.end else None
        }

    def to_readable_string(self) -> str:
        start = self.start.strftime(READABLE_FORMAT) if self.start else 'unknown'
        end = self.end.strftime(READABLE_FORMAT) if self.end else 'unknown'
        return f"{self.name}: {start} -> {end}"


@dataclass(frozen=True)
class ParsedEvents:
    """Primary exhibition span plus zero or more secondary events."""
    exhibition: Optional[EventSegment] = None
    receptions: List[EventSegment] = field(default_factory=list)

    @classmethod
    def empty(cls) -> 'ParsedEvents':
        """Return the "nothing found" sentinel."""
        return cls(exhibition=None, receptions=[])

    def is_empty(self) -> bool:
        return self.exhibition is None and not self.receptions

    def exhibition_range(self) -> Tuple[Optional[datetime], Optional[datetime]]:
        """Return the exhibition as a bare (start, end) pair."""
        if self.exhibition is None:
            return None, None
        return self.exhibition.start, self.exhibition.end

    def to_dict(self) -> dict:
        return {
            'exhibition': self.exhibition.to_dict() if self.exhibition else None,
            'receptions': [segment.to_dict() for segment in self.receptions]
        }

    def to_readable_string(self) -> str:
        lines = []
        if self.exhibition:
            lines.append(self.exhibition.to_readable_string())
        if self.receptions:
            lines.append("Events:")
            lines.extend(
                f"  - {segment.to_readable_string()}"
                for segment in self.receptions
            )
        return "\n".join(lines)


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


@dataclass(frozen=True)
class ScrapingConfig:
    """Web fallback settings supplied by the caller."""
    enabled: bool = True
    cache_enabled: bool = True
    timeout_ms: int = 5000
    user_agent: str = 'Mozilla/5.0 (compatible; EventTimeBot/1.0)'
    max_concurrent_requests: int = 3
    retry_attempts: int = 1
    single_flight: bool = True

    @classmethod
    def from_env(cls) -> 'ScrapingConfig':
        """
        Build a configuration from environment variables.

        Unset variables keep the dataclass defaults.

        Returns:
            ScrapingConfig instance
        """
        defaults = cls()
        return cls(
            enabled=_env_bool('SCRAPING_ENABLED', defaults.enabled),
            cache_enabled=_env_bool(
                'SCRAPING_CACHE_ENABLED', defaults.cache_enabled
            ),
            timeout_ms=int(
                os.environ.get('SCRAPING_TIMEOUT_MS', defaults.timeout_ms)
            ),
            user_agent=os.environ.get(
                'SCRAPING_USER_AGENT', defaults.user_agent
            ),
            max_concurrent_requests=int(
                os.environ.get(
                    'SCRAPING_MAX_CONCURRENT_REQUESTS',
                    defaults.max_concurrent_requests
                )
            ),
            retry_attempts=int(
                os.environ.get('SCRAPING_RETRY_ATTEMPTS', defaults.retry_attempts)
            ),
            single_flight=_env_bool(
                'SCRAPING_SINGLE_FLIGHT', defaults.single_flight
            )
        )
