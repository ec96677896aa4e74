"""Unit tests for the rule cascade and its helpers."""
import pytest

from processor.models import EventSegment
from processor.normalizer import prepare
from processor.patterns import (
    Candidate,
    PatternCascade,
    drop_subsumed,
    infer_context_year,
    keyword_near,
    label_from_prefix,
    roll_back_start,
)
from conftest import NOW, local


@pytest.fixture
def cascade(resolver):
    return PatternCascade(resolver, now=lambda: NOW)


class TestHelpers:
    """Test cases for the named heuristics."""

    def test_label_from_prefix(self):
        assert label_from_prefix("open room") == "Open Room"
        assert label_from_prefix("book launch") == "Book Launch"

    @pytest.mark.parametrize("label", ["saturday", "dates", "on june", ""])
    def test_label_from_prefix_rejects_stopwords(self, label):
        assert label_from_prefix(label) is None

    def test_keyword_near_picks_closest(self):
        assert keyword_near("opening night with a film screening at ") == "screening"

    def test_keyword_near_without_keyword(self):
        assert keyword_near("join us on june 5 at ") is None

    def test_infer_context_year(self):
        assert infer_context_year("opens on july 12, 2024 at the gallery") == 2024
        assert infer_context_year("june 5 and july 6") is None

    def test_roll_back_start(self):
        assert roll_back_start(local(2025, 12, 15), local(2025, 1, 10)) == local(2024, 12, 15)
        assert roll_back_start(local(2025, 1, 5), local(2025, 1, 10)) == local(2025, 1, 5)

    def test_drop_subsumed_keeps_most_specific(self):
        start = local(2025, 4, 5, 18, 30)
        deadline = EventSegment("Deadline", start, start)
        generic = EventSegment("Event", start, local(2025, 4, 5, 20, 30))
        other = EventSegment("Event", local(2025, 4, 6, 12, 0), local(2025, 4, 6, 14, 0))

        kept = drop_subsumed([
            Candidate(generic, 1),
            Candidate(deadline, 4),
            Candidate(other, 1),
        ])

        assert kept == [deadline, other]

    def test_drop_subsumed_keeps_distinct_names_at_one_start(self):
        start = local(2025, 6, 5, 19, 0)
        doors = EventSegment("Doors", start, local(2025, 6, 5, 19, 30))
        doors_echo = EventSegment("Doors", start, local(2025, 6, 5, 21, 0))
        screening = EventSegment("Screening", start, local(2025, 6, 5, 21, 30))

        kept = drop_subsumed([
            Candidate(doors, 4),
            Candidate(doors_echo, 3),
            Candidate(screening, 3),
        ])

        assert kept == [doors, screening]


class TestPatternCascade:
    """Test cases for the two cascade tiers."""

    def test_labeled_tier_returns_none_without_labels(self, cascade):
        assert cascade.match_labeled(prepare("June 24 | 5-9pm")) is None

    def test_labeled_reception(self, cascade):
        result = cascade.match_labeled(
            prepare("Opening reception: Saturday, March 8, 2025, 6:00 – 8:00 pm")
        )

        assert result.exhibitions == []
        assert result.receptions == [
            EventSegment(
                "Opening Reception",
                local(2025, 3, 8, 18, 0),
                local(2025, 3, 8, 20, 0)
            )
        ]

    def test_open_ended_exhibition(self, cascade):
        result = cascade.match_labeled(prepare("On view through July 28, 2024"))

        assert result.exhibitions == [
            EventSegment("Exhibition", None, local(2024, 7, 28))
        ]

    def test_match_prefers_labeled_tier(self, cascade):
        result = cascade.match(
            prepare("Talk June 5 at 3pm. Opening reception: June 6, 2025, 6:00 - 8:00pm")
        )

        assert [segment.name for segment in result.receptions] == ["Opening Reception"]

    def test_generic_tier_accumulates(self, cascade):
        result = cascade.match_generic(prepare("June 24 | 5-9pm. February 1-23, 2025"))

        assert len(result.receptions) == 1
        assert result.exhibitions == [
            EventSegment("Exhibition", local(2025, 2, 1), local(2025, 2, 23))
        ]
        assert result.found()

    def test_daily_hours(self, cascade):
        result = cascade.match_generic(prepare("Daily 10am-6pm"))

        assert result.receptions == [
            EventSegment("Daily", local(2025, 3, 1, 10, 0), local(2025, 3, 1, 18, 0))
        ]

    def test_range_past_midnight_ends_next_day(self, cascade):
        result = cascade.match_generic(prepare("June 24 | 10pm-1am"))

        assert result.receptions == [
            EventSegment("Event", local(2025, 6, 24, 22, 0), local(2025, 6, 25, 1, 0))
        ]

    def test_bullet_line_without_meridiem_is_evening(self, cascade):
        ctx = cascade.context(2025)

        candidates = cascade.scan_bullet_lines(["june 5", "starts at 8"], ctx)

        assert [c.segment for c in candidates] == [
            EventSegment("Event", local(2025, 6, 5, 20, 0), local(2025, 6, 5, 22, 0))
        ]

    def test_bullet_line_without_date_is_ignored(self, cascade):
        assert cascade.scan_bullet_lines(["doors: 7pm"], cascade.context()) == []

    def test_glued_keyword_time_range(self, cascade):
        candidates = cascade.scan_glued_keywords(
            prepare("Book launch June 12, 2025 6-8pm"), cascade.context()
        )

        assert [c.segment for c in candidates] == [
            EventSegment("Book Launch", local(2025, 6, 12, 18, 0), local(2025, 6, 12, 20, 0))
        ]

    def test_custom_rule_table(self, resolver):
        cascade = PatternCascade(resolver, now=lambda: NOW, rules=[])

        result = cascade.match_generic(prepare("February 1-23, 2025"))

        assert not result.found()
