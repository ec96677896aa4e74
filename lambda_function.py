"""AWS Lambda handler for event time extraction."""
import asyncio
import json
import logging
import os
import time
from typing import Dict, Any, Optional

from processor.models import ScrapingConfig
from scraper.event_time_service import EventTimeService


# Configure JSON logging
class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


# Reused across warm invocations, so the result cache outlives one request.
_service: Optional[EventTimeService] = None


def get_service() -> EventTimeService:
    """Return the container-wide service, creating it on first use."""
    global _service
    if _service is None:
        _service = EventTimeService(config=ScrapingConfig.from_env())
    return _service


def _response(status_code: int, body: Dict[str, Any]) -> Dict[str, Any]:
    return {'statusCode': status_code, 'body': json.dumps(body)}


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Extract event time ranges from a feed item.

    Args:
        event: Payload with "text" and optional "url",
            "scraping_enabled" and "fallback_year"
        context: Lambda context object

    Returns:
        Response dict with statusCode and the parsed events
    """
    setup_logging(os.environ.get('LOG_LEVEL', 'INFO'))
    logger = logging.getLogger(__name__)

    start_time = time.time()
    text = str(event.get('text') or '')
    url = event.get('url')
    fallback_year = event.get('fallback_year')

    if not text.strip() and not url:
        logger.warning("Request without text or url")
        return _response(400, {'message': 'Either text or url is required'})

    try:
        service = get_service()

        if url:
            result = asyncio.run(service.extract_with_fallback(
                text,
                url,
                scraping_enabled=bool(event.get('scraping_enabled', True)),
                fallback_year=fallback_year
            ))
        else:
            result = service.extract(text, fallback_year)

        duration = time.time() - start_time
        logger.info(
            "Extraction completed",
            extra={
                'duration_seconds': round(duration, 2),
                'has_exhibition': result.exhibition is not None,
                'receptions': len(result.receptions)
            }
        )

        return _response(200, {
            'message': 'Extraction completed',
            'found': not result.is_empty(),
            'events': result.to_dict(),
            'duration_seconds': round(duration, 2)
        })

    except Exception as e:
        duration = time.time() - start_time

        logger.error(
            f"Extraction failed: {str(e)}",
            extra={
                'duration_seconds': round(duration, 2),
                'error_type': type(e).__name__
            },
            exc_info=True
        )

        return _response(500, {
            'message': 'Extraction failed',
            'error': str(e),
            'error_type': type(e).__name__,
            'duration_seconds': round(duration, 2)
        })
