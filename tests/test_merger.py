"""Unit tests for segment merging."""
from processor.merger import (
    dedupe_segments,
    exhibition_score,
    merge,
    pick_exhibition,
    union_blocks,
)
from processor.models import EventSegment, ParsedEvents
from conftest import local

RUN = EventSegment("Exhibition", local(2025, 6, 1), local(2025, 6, 30))
OPEN_ENDED = EventSegment("Exhibition", local(2025, 6, 1), None)
TALK = EventSegment("Talk", local(2025, 6, 5, 18, 0), local(2025, 6, 5, 20, 0))
PARTY = EventSegment("Event", local(2025, 6, 6, 19, 0), local(2025, 6, 6, 21, 0))


class TestExhibitionScore:
    """Test cases for exhibition scoring."""

    def test_closed_range_beats_open_range(self):
        assert exhibition_score(RUN) > exhibition_score(OPEN_ENDED)

    def test_empty_segment_scores_zero(self):
        assert exhibition_score(EventSegment("Exhibition", None, None)) == 0

    def test_pick_exhibition(self):
        assert pick_exhibition([OPEN_ENDED, RUN]) == RUN

    def test_pick_exhibition_keeps_first_on_tie(self):
        twin = EventSegment("Exhibition", RUN.start, RUN.end)

        assert pick_exhibition([RUN, twin]) is RUN

    def test_pick_exhibition_without_candidates(self):
        assert pick_exhibition([]) is None


class TestMerge:
    """Test cases for merge() and union_blocks()."""

    def test_dedupe_keeps_first_appearance(self):
        assert dedupe_segments([TALK, PARTY, TALK]) == [TALK, PARTY]

    def test_same_times_with_other_name_are_distinct(self):
        renamed = EventSegment("Screening", TALK.start, TALK.end)

        assert dedupe_segments([TALK, renamed]) == [TALK, renamed]

    def test_merge(self):
        result = merge([OPEN_ENDED, RUN], [TALK, TALK])

        assert result == ParsedEvents(exhibition=RUN, receptions=[TALK])

    def test_merge_nothing_is_empty(self):
        assert merge([], []).is_empty()

    def test_union_blocks(self):
        result = union_blocks([
            ParsedEvents(receptions=[TALK]),
            ParsedEvents(exhibition=RUN, receptions=[PARTY]),
            ParsedEvents(exhibition=OPEN_ENDED, receptions=[TALK]),
        ])

        assert result.exhibition == RUN
        assert result.receptions == [TALK, PARTY]
