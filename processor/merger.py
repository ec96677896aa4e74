"""Merging and deduplication of candidate event segments."""
from typing import Iterable, List, Optional

from processor.models import EventSegment, ParsedEvents


def exhibition_score(segment: EventSegment) -> float:
    """
    Score how fully specified an exhibition candidate is.

    Sum of start and end as epoch seconds, a missing side counting as 0,
    so a closed range beats an open one.
    """
    start = segment.start.timestamp() if segment.start else 0
    end = segment.end.timestamp() if segment.end else 0
    return start + end


def pick_exhibition(candidates: Iterable[EventSegment]) -> Optional[EventSegment]:
    """Return the best-scoring candidate; the first one wins ties."""
    candidates = [candidate for candidate in candidates if candidate is not None]
    if not candidates:
        return None
    return max(candidates, key=exhibition_score)


def dedupe_segments(segments: Iterable[EventSegment]) -> List[EventSegment]:
    """Drop repeated (name, start, end) segments, keeping first appearance."""
    seen = set()
    unique = []
    for segment in segments:
        if segment in seen:
            continue
        seen.add(segment)
        unique.append(segment)
    return unique


def merge(
    exhibitions: Iterable[EventSegment],
    receptions: Iterable[EventSegment]
) -> ParsedEvents:
    """Combine candidate segments into one ParsedEvents."""
    return ParsedEvents(
        exhibition=pick_exhibition(exhibitions),
        receptions=dedupe_segments(receptions)
    )


def union_blocks(results: Iterable[ParsedEvents]) -> ParsedEvents:
    """
    Union per-block results.

    The first block with an exhibition supplies it; receptions from all
    blocks are concatenated and deduplicated.
    """
    exhibition = None
    receptions: List[EventSegment] = []
    for result in results:
        if exhibition is None:
            exhibition = result.exhibition
        receptions.extend(result.receptions)
    return ParsedEvents(
        exhibition=exhibition,
        receptions=dedupe_segments(receptions)
    )
