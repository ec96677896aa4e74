"""Text-only event time extraction pipeline."""
import logging
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from processor.block_splitter import split_blocks
from processor.date_resolver import DateTimeResolver
from processor.merger import merge, union_blocks
from processor.models import ParsedEvents
from processor.normalizer import prepare
from processor.patterns import PatternCascade, infer_context_year

logger = logging.getLogger(__name__)


class EventTimeExtractor:
    """Pipeline from raw text to ParsedEvents."""

    def __init__(
        self,
        resolver: Optional[DateTimeResolver] = None,
        now: Optional[Callable[[], datetime]] = None
    ):
        """
        Initialize the extractor.

        Args:
            resolver: Date/time resolver (default: local timezone resolver)
            now: Clock used for missing years and recurring events
        """
        self.resolver = resolver or DateTimeResolver()
        self.cascade = PatternCascade(self.resolver, now=now)

    def extract(
        self,
        text: str,
        fallback_year: Optional[int] = None
    ) -> ParsedEvents:
        """
        Extract exhibition and reception segments from free-form text.

        Labeled constructs ("opening reception:", "opens on", ...) are
        looked for in the whole text first. Otherwise the text is split at
        anchor keywords and each block is extracted on its own, or, with a
        single block, the generic rules run over it.

        Args:
            text: Raw text such as an RSS excerpt
            fallback_year: Year for dates that omit one
                (default: current year)

        Returns:
            ParsedEvents, empty when nothing was found
        """
        if not text or not text.strip():
            return ParsedEvents.empty()
        cleaned = prepare(text)
        if not cleaned:
            return ParsedEvents.empty()

        labeled = self.cascade.match_labeled(cleaned, fallback_year)
        if labeled is not None:
            return merge(labeled.exhibitions, labeled.receptions)

        # Blocks keep their line breaks for the bullet-line scanner.
        lines = [line for line in map(prepare, text.splitlines()) if line]
        blocks = split_blocks("\n".join(lines))
        if len(blocks) >= 2:
            year = fallback_year or infer_context_year(cleaned)
            logger.debug(f"Extracting {len(blocks)} blocks (context year {year})")
            return union_blocks(self.extract(block, year) for block in blocks)

        result = self.cascade.match_generic(cleaned, lines, fallback_year)
        return merge(result.exhibitions, result.receptions)

    def extract_lines(
        self,
        lines: List[str],
        fallback_year: Optional[int] = None
    ) -> ParsedEvents:
        """Extract from snippets joined into one newline-separated text."""
        return self.extract("\n".join(lines), fallback_year)

    def extract_exhibition_range(
        self,
        text: str
    ) -> Tuple[Optional[datetime], Optional[datetime]]:
        """Return only the exhibition (start, end) pair of the text."""
        return self.extract(text).exhibition_range()
