"""Priority-ordered rule cascade producing event segments from text.

Rules run against text that already went through ``normalizer.prepare``:
lowercase, full month names, hyphen dashes and explicit meridiems on both
sides of a time range.
"""
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from processor.date_resolver import DateTimeResolver
from processor.models import EventSegment

logger = logging.getLogger(__name__)

DEFAULT_EVENT_DURATION = timedelta(hours=2)
DOORS_DURATION = timedelta(minutes=30)
PROXIMITY_WINDOW = 50

EVENT = 'Event'
EXHIBITION = 'Exhibition'
OPENING_RECEPTION = 'Opening Reception'
DEADLINE = 'Deadline'
DOORS = 'Doors'
PROGRAM = 'Program'

EXHIBITION_KIND = 'exhibition'
RECEPTION_KIND = 'reception'

MONTHS = (
    'january', 'february', 'march', 'april', 'may', 'june', 'july',
    'august', 'september', 'october', 'november', 'december',
)
WEEKDAYS = (
    'monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday',
    'sunday',
)
WEEKDAY_ABBREVIATIONS = (
    'tues', 'thurs', 'mon', 'tue', 'wed', 'thu', 'fri', 'sat', 'sun',
)
ACTIVITY_KEYWORDS = (
    'book launch', 'screening', 'doors', 'reception', 'opening', 'closing',
    'talk', 'lecture', 'panel', 'performance', 'concert', 'workshop',
    'reading', 'program', 'tour',
)
LABEL_STOPWORDS = frozenset(
    MONTHS + WEEKDAYS + WEEKDAY_ABBREVIATIONS + (
        'at', 'on', 'from', 'to', 'and', 'date', 'dates', 'time', 'when',
        'deadline', 'due', 'visit', 'hours',
    )
)

_MONTH = r'(?:' + '|'.join(MONTHS) + r')'
_WEEKDAY_FULL = r'(?:' + '|'.join(WEEKDAYS) + r')'
_WEEKDAY = r'\b(?:' + '|'.join(WEEKDAYS + WEEKDAY_ABBREVIATIONS) + r')\b'
_DATE = rf'\b{_MONTH}\s+\d{{1,2}}\b'
_TIME = r'\d{1,2}(?::\d{2})?\s*[ap]m\b'
_YEAR = r'\d{4}'
_OPT_WEEKDAY = rf'(?:{_WEEKDAY},?\s*)?'
_OPT_YEAR = rf'(?:,?\s*({_YEAR}))?'
_SEP = r'\s*[|:;•]\s*'
_RANGE_SEP = r'\s*(?:-|to)\s*'
_NOT_RANGE = rf'(?!{_RANGE_SEP}\d)'
_CLOCK = r'\d{1,2}(?::\d{2})?'

_DATE_WITH_YEAR = re.compile(rf'({_DATE}){_OPT_YEAR}')
_TIME_OR_RANGE = re.compile(rf'(?<![\d:])({_TIME})(?:{_RANGE_SEP}({_TIME}))?')
_KEYWORD = re.compile(
    r'\b(' + '|'.join(re.escape(k) for k in ACTIVITY_KEYWORDS) + r')\b'
)
_BULLET_TIME_LINE = re.compile(
    rf'^(doors|program|starts?)(?:\s+open)?(?:\s+at)?\s*:?\s*({_CLOCK})\s*([ap]m)?\b'
)

_LABELED_RECEPTION = re.compile(
    rf'opening reception:\s*{_OPT_WEEKDAY}({_DATE}),?\s*({_YEAR}),?\s*'
    rf'(\d{{1,2}}:\d{{2}})\s*([ap]m)?\s*-\s*(\d{{1,2}}:\d{{2}})\s*([ap]m)'
)
_VISIT_DATES = re.compile(
    rf'\b(?:visit|dates):\s*({_MONTH})\s+(\d{{1,2}})\s*-\s*(\d{{1,2}}),?\s*({_YEAR})'
)
_OPENS_ON = re.compile(rf'\bopens on\s+({_DATE}){_OPT_YEAR}')
_THROUGH = re.compile(rf'\b(?:on view through|through)\s+({_DATE}){_OPT_YEAR}')
_SIMPLE_RECEPTION = re.compile(
    rf'opening reception:\s*{_OPT_WEEKDAY}({_DATE}),?\s*(?:({_YEAR}),?\s*)?'
    rf'({_CLOCK})\s*([ap]m)?\s*-\s*({_CLOCK})\s*([ap]m)'
)


@dataclass
class MatchContext:
    """Per-call state shared by the rules."""
    resolver: DateTimeResolver
    year: int
    today: datetime

    def at(
        self,
        date_text: str,
        year: Optional[str] = None,
        time_text: Optional[str] = None
    ) -> Optional[datetime]:
        """Resolve "<month> <day>" plus an optional year and clock time."""
        text = f"{date_text} {year or self.year}"
        if time_text:
            text += f" {time_text}"
        return self.resolver.resolve(text)

    def on_today(self, time_text: str) -> Optional[datetime]:
        date_text = f"{MONTHS[self.today.month - 1]} {self.today.day}"
        return self.at(date_text, str(self.today.year), time_text)


@dataclass
class Candidate:
    """A reception segment along with the specificity of its rule."""
    segment: EventSegment
    specificity: int


@dataclass
class CascadeResult:
    """Unmerged output of one cascade run."""
    exhibitions: List[EventSegment] = field(default_factory=list)
    receptions: List[EventSegment] = field(default_factory=list)

    def found(self) -> bool:
        return bool(self.exhibitions or self.receptions)


@dataclass(frozen=True)
class Rule:
    """A pattern paired with the function assembling its segments."""
    name: str
    pattern: re.Pattern
    assemble: Callable[[re.Match, MatchContext], List[EventSegment]]
    kind: str = RECEPTION_KIND
    specificity: int = 1


def _span(
    name: str,
    start: Optional[datetime],
    end: Optional[datetime]
) -> List[EventSegment]:
    if start is None or end is None:
        return []
    if end < start:
        # "10pm-1am" ends on the next day
        end += timedelta(days=1)
    return [EventSegment(name, start, end)]


def _lasting(
    name: str,
    start: Optional[datetime],
    duration: timedelta
) -> List[EventSegment]:
    if start is None:
        return []
    return [EventSegment(name, start, start + duration)]


def roll_back_start(start: datetime, end: datetime) -> datetime:
    """Move a range start that lies after its end into the previous year."""
    if start <= end:
        return start
    try:
        return start.replace(year=start.year - 1)
    except ValueError:
        return start


def _exhibition(
    start: Optional[datetime],
    end: Optional[datetime]
) -> List[EventSegment]:
    if start is None or end is None:
        return []
    return [EventSegment(EXHIBITION, roll_back_start(start, end), end)]


def label_from_prefix(label: str) -> Optional[str]:
    """Turn free text before a separator into an event name."""
    words = label.split()
    if not words or any(word in LABEL_STOPWORDS for word in words):
        return None
    return label.title()


def keyword_near(window: str) -> Optional[str]:
    """Return the activity keyword closest to the end of the window."""
    matches = list(_KEYWORD.finditer(window))
    if not matches:
        return None
    return matches[-1].group(1)


def infer_context_year(text: str) -> Optional[int]:
    """Return the first year written right after a date in the text."""
    for match in _DATE_WITH_YEAR.finditer(text):
        if match.group(2):
            return int(match.group(2))
    return None


def drop_subsumed(candidates: List[Candidate]) -> List[EventSegment]:
    """
    Drop generic echoes of a more specific candidate.

    A candidate is an echo when another candidate with a higher
    specificity starts at the same instant and the candidate is either a
    plain "Event" or carries that candidate's name. A labeled deadline at
    6:30pm thus hides the 2h "Event" the single-timestamp rule finds in the
    same text, while a differently named event at 6:30pm is kept.
    """
    kept = []
    for candidate in candidates:
        segment = candidate.segment
        echoed = any(
            other.specificity > candidate.specificity
            and other.segment.start == segment.start
            and segment.name in (EVENT, other.segment.name)
            for other in candidates
        )
        if not echoed:
            kept.append(segment)
    return kept


def _time_range(match: re.Match, ctx: MatchContext) -> List[EventSegment]:
    date_text, year, start, end = match.groups()
    return _span(
        EVENT,
        ctx.at(date_text, year, start),
        ctx.at(date_text, year, end)
    )


def _single_time(match: re.Match, ctx: MatchContext) -> List[EventSegment]:
    date_text, year, time_text = match.groups()
    return _lasting(
        EVENT, ctx.at(date_text, year, time_text), DEFAULT_EVENT_DURATION
    )


def _prefixed_single_time(
    match: re.Match,
    ctx: MatchContext
) -> List[EventSegment]:
    label, date_text, year, time_text = match.groups()
    name = label_from_prefix(label)
    if name is None:
        return []
    return _lasting(
        name, ctx.at(date_text, year, time_text), DEFAULT_EVENT_DURATION
    )


def _from_range(match: re.Match, ctx: MatchContext) -> List[EventSegment]:
    start_date, start_year, end_date, end_year = match.groups()
    start_year = start_year or end_year
    end_year = end_year or start_year
    return _exhibition(
        ctx.at(start_date, start_year),
        ctx.at(end_date, end_year)
    )


def _year_range(match: re.Match, ctx: MatchContext) -> List[EventSegment]:
    start_date, start_year, end_date, end_year = match.groups()
    return _exhibition(
        ctx.at(start_date, start_year),
        ctx.at(end_date, end_year)
    )


def _same_month_range(
    match: re.Match,
    ctx: MatchContext
) -> List[EventSegment]:
    month, start_day, end_day, year = match.groups()
    return _exhibition(
        ctx.at(f"{month} {start_day}", year),
        ctx.at(f"{month} {end_day}", year)
    )


def _cross_month_range(
    match: re.Match,
    ctx: MatchContext
) -> List[EventSegment]:
    start_date, end_date, year = match.groups()
    return _exhibition(ctx.at(start_date, year), ctx.at(end_date, year))


def _deadline(match: re.Match, ctx: MatchContext) -> List[EventSegment]:
    date_text, year, time_text = match.groups()
    moment = ctx.at(date_text, year, time_text)
    if moment is None:
        return []
    return [EventSegment(DEADLINE, moment, moment)]


def _doors_and_program(
    match: re.Match,
    ctx: MatchContext
) -> List[EventSegment]:
    date_text, year, doors_time, program_time = match.groups()
    segments = _lasting(
        DOORS, ctx.at(date_text, year, doors_time), DOORS_DURATION
    )
    if program_time:
        segments += _lasting(
            PROGRAM,
            ctx.at(date_text, year, program_time),
            DEFAULT_EVENT_DURATION
        )
    return segments


def _every_weekday(match: re.Match, ctx: MatchContext) -> List[EventSegment]:
    weekday, start, end = match.groups()
    return _span(
        f"Every {weekday.title()}", ctx.on_today(start), ctx.on_today(end)
    )


def _recurring(name: str):
    def assemble(match: re.Match, ctx: MatchContext) -> List[EventSegment]:
        start, end = match.groups()
        return _span(name, ctx.on_today(start), ctx.on_today(end))
    return assemble


RULES: List[Rule] = [
    Rule(
        'separator_time_range',
        re.compile(
            rf'{_OPT_WEEKDAY}({_DATE}){_OPT_YEAR}{_SEP}'
            rf'({_TIME}){_RANGE_SEP}({_TIME})'
        ),
        _time_range,
        specificity=2
    ),
    Rule(
        'separator_single_time',
        re.compile(
            rf'{_OPT_WEEKDAY}({_DATE}){_OPT_YEAR}{_SEP}({_TIME}){_NOT_RANGE}'
        ),
        _single_time
    ),
    Rule(
        'prefixed_separator_time',
        re.compile(
            rf'\b([a-z]+(?: [a-z]+)?){_SEP}({_DATE}){_OPT_YEAR}{_SEP}'
            rf'({_TIME}){_NOT_RANGE}'
        ),
        _prefixed_single_time,
        specificity=3
    ),
    Rule(
        'date_time_range',
        re.compile(
            rf'{_OPT_WEEKDAY}({_DATE}),?\s*(?:({_YEAR}),?\s*)?(?:at\s+)?'
            rf'({_TIME}){_RANGE_SEP}({_TIME})'
        ),
        _time_range,
        specificity=2
    ),
    Rule(
        'from_date_to_date',
        re.compile(
            rf'\bfrom\s+({_DATE}){_OPT_YEAR}{_RANGE_SEP}({_DATE}){_OPT_YEAR}'
        ),
        _from_range,
        kind=EXHIBITION_KIND
    ),
    Rule(
        'dated_year_range',
        re.compile(
            rf'({_DATE}),?\s*({_YEAR})\s*-\s*({_DATE}),?\s*({_YEAR})'
        ),
        _year_range,
        kind=EXHIBITION_KIND
    ),
    Rule(
        'same_month_range',
        re.compile(
            rf'\b({_MONTH})\s+(\d{{1,2}})\s*-\s*(\d{{1,2}}),?\s*({_YEAR})\b'
        ),
        _same_month_range,
        kind=EXHIBITION_KIND
    ),
    Rule(
        'cross_month_range',
        re.compile(rf'({_DATE})\s*-\s*({_DATE}),?\s*({_YEAR})'),
        _cross_month_range,
        kind=EXHIBITION_KIND
    ),
    Rule(
        'deadline',
        re.compile(
            rf'\b(?:deadline|due):\s*{_OPT_WEEKDAY}({_DATE}),?\s*({_YEAR}),?\s*'
            rf'(?:at\s+)?({_TIME})'
        ),
        _deadline,
        specificity=4
    ),
    Rule(
        'single_date_time',
        re.compile(
            rf'{_OPT_WEEKDAY}({_DATE}){_OPT_YEAR}\s*,?\s*(?:at\s+)?'
            rf'({_TIME}){_NOT_RANGE}'
        ),
        _single_time
    ),
    Rule(
        'doors_and_program',
        re.compile(
            rf'({_DATE}){_OPT_YEAR}[^.]{{0,60}}?\bdoors(?:\s+open)?(?:\s+at)?'
            rf'\s*:?\s*({_TIME})(?:[^.]{{0,40}}?\b(?:program|show|film)'
            rf'(?:\s+starts?)?(?:\s+at)?\s*:?\s*({_TIME}))?'
        ),
        _doors_and_program,
        specificity=4
    ),
    Rule(
        'every_weekday',
        re.compile(
            rf'\bevery\s+({_WEEKDAY_FULL})s?\s+(?:from\s+)?'
            rf'({_TIME}){_RANGE_SEP}({_TIME})'
        ),
        _every_weekday,
        specificity=2
    ),
    Rule(
        'weekends_only',
        re.compile(
            rf'\bweekends?(?:\s+only)?\s*:?\s*(?:from\s+)?'
            rf'({_TIME}){_RANGE_SEP}({_TIME})'
        ),
        _recurring('Weekends'),
        specificity=2
    ),
    Rule(
        'daily',
        re.compile(
            rf'\bdaily\s*:?\s*(?:from\s+)?({_TIME}){_RANGE_SEP}({_TIME})'
        ),
        _recurring('Daily'),
        specificity=2
    ),
]


class PatternCascade:
    """Two-tier cascade of extraction rules."""

    GLUED_KEYWORD_SPECIFICITY = 3
    BULLET_LINE_SPECIFICITY = 4

    def __init__(
        self,
        resolver: Optional[DateTimeResolver] = None,
        now: Optional[Callable[[], datetime]] = None,
        rules: Optional[List[Rule]] = None
    ):
        """
        Initialize the cascade.

        Args:
            resolver: Resolver for captured date/time text
            now: Clock returning the current aware datetime
                (default: the resolver's clock)
            rules: Generic-tier rule table (default: RULES)
        """
        self.resolver = resolver or DateTimeResolver()
        self.now = now or self.resolver.now
        self.rules = rules if rules is not None else RULES

    def context(self, fallback_year: Optional[int] = None) -> MatchContext:
        today = self.now()
        return MatchContext(
            resolver=self.resolver,
            year=fallback_year or today.year,
            today=today
        )

    def match(
        self,
        text: str,
        lines: Optional[List[str]] = None,
        fallback_year: Optional[int] = None
    ) -> CascadeResult:
        """
        Run both tiers against cleaned text.

        Args:
            text: Text prepared by ``normalizer.prepare``
            lines: Prepared lines of the original input for the
                multi-line scanner (default: the text as one line)
            fallback_year: Year for dates that omit one

        Returns:
            CascadeResult with the labeled result if any, else every
            generic match
        """
        labeled = self.match_labeled(text, fallback_year)
        if labeled is not None:
            return labeled
        return self.match_generic(text, lines, fallback_year)

    def match_labeled(
        self,
        text: str,
        fallback_year: Optional[int] = None
    ) -> Optional[CascadeResult]:
        """Run the short-circuit tier; None when nothing labeled is found."""
        ctx = self.context(fallback_year)
        exhibition = None
        receptions: List[EventSegment] = []

        match = _LABELED_RECEPTION.search(text)
        if match:
            date_text, year, start, start_meridiem, end, meridiem = match.groups()
            receptions += _span(
                OPENING_RECEPTION,
                ctx.at(date_text, year, f"{start}{start_meridiem or meridiem}"),
                ctx.at(date_text, year, f"{end}{meridiem}")
            )

        match = _VISIT_DATES.search(text)
        if match:
            month, start_day, end_day, year = match.groups()
            start = ctx.at(f"{month} {start_day}", year)
            end = ctx.at(f"{month} {end_day}", year)
            if start and end:
                exhibition = EventSegment(EXHIBITION, start, end)

        opens = through = None
        match = _OPENS_ON.search(text)
        if match:
            opens = ctx.at(match.group(1), match.group(2))
        match = _THROUGH.search(text)
        if match:
            through = ctx.at(match.group(1), match.group(2))
        if opens or through:
            exhibition = EventSegment(EXHIBITION, opens, through)

        if not receptions:
            match = _SIMPLE_RECEPTION.search(text)
            if match:
                date_text, year, start, start_meridiem, end, meridiem = match.groups()
                if not year:
                    year = str(opens.year) if opens else str(ctx.year)
                receptions += _span(
                    OPENING_RECEPTION,
                    ctx.at(date_text, year, f"{start}{start_meridiem or meridiem}"),
                    ctx.at(date_text, year, f"{end}{meridiem}")
                )

        if exhibition is None and not receptions:
            return None
        logger.debug(
            f"Labeled tier matched: exhibition={exhibition}, "
            f"receptions={len(receptions)}"
        )
        return CascadeResult(
            exhibitions=[exhibition] if exhibition else [],
            receptions=receptions
        )

    def match_generic(
        self,
        text: str,
        lines: Optional[List[str]] = None,
        fallback_year: Optional[int] = None
    ) -> CascadeResult:
        """Run every generic rule and keep all of their matches."""
        ctx = self.context(fallback_year)
        exhibitions: List[EventSegment] = []
        candidates: List[Candidate] = []

        for rule in self.rules:
            for match in rule.pattern.finditer(text):
                segments = rule.assemble(match, ctx)
                if not segments:
                    continue
                logger.debug(f"Rule '{rule.name}' matched '{match.group(0)}'")
                if rule.kind == EXHIBITION_KIND:
                    exhibitions.extend(segments)
                else:
                    candidates.extend(
                        Candidate(segment, rule.specificity)
                        for segment in segments
                    )

        candidates.extend(self.scan_glued_keywords(text, ctx))
        candidates.extend(
            self.scan_bullet_lines(lines if lines is not None else [text], ctx)
        )
        return CascadeResult(
            exhibitions=exhibitions,
            receptions=drop_subsumed(candidates)
        )

    def scan_glued_keywords(
        self,
        text: str,
        ctx: MatchContext
    ) -> List[Candidate]:
        """
        Recover events from run-on text by keyword proximity.

        Every time (or time range) preceded within PROXIMITY_WINDOW
        characters by an activity keyword becomes a segment named after
        the keyword, dated by the nearest date before it.
        """
        candidates = []
        for match in _TIME_OR_RANGE.finditer(text):
            window = text[max(0, match.start() - PROXIMITY_WINDOW):match.start()]
            keyword = keyword_near(window)
            if keyword is None:
                continue
            dates = list(_DATE_WITH_YEAR.finditer(text, 0, match.start()))
            if not dates:
                continue
            date_text, year = dates[-1].groups()
            start = ctx.at(date_text, year, match.group(1))
            if match.group(2):
                segments = _span(
                    keyword.title(), start, ctx.at(date_text, year, match.group(2))
                )
            else:
                segments = _lasting(keyword.title(), start, DEFAULT_EVENT_DURATION)
            candidates.extend(
                Candidate(segment, self.GLUED_KEYWORD_SPECIFICITY)
                for segment in segments
            )
        return candidates

    def scan_bullet_lines(
        self,
        lines: List[str],
        ctx: MatchContext
    ) -> List[Candidate]:
        """
        Attach "doors/program/starts" lines to the date seen above them.

        A clock time without a meridiem is read as pm.
        """
        candidates = []
        current_date = None
        current_year = None
        for line in lines:
            date_match = _DATE_WITH_YEAR.search(line)
            if date_match:
                current_date = date_match.group(1)
                if date_match.group(2):
                    current_year = date_match.group(2)

            match = _BULLET_TIME_LINE.match(line)
            if not match or current_date is None:
                continue
            keyword, clock, meridiem = match.groups()
            start = ctx.at(current_date, current_year, f"{clock}{meridiem or 'pm'}")
            if keyword == 'doors':
                segments = _lasting(DOORS, start, DOORS_DURATION)
            elif keyword == 'program':
                segments = _lasting(PROGRAM, start, DEFAULT_EVENT_DURATION)
            else:
                segments = _lasting(EVENT, start, DEFAULT_EVENT_DURATION)
            candidates.extend(
                Candidate(segment, self.BULLET_LINE_SPECIFICITY)
                for segment in segments
            )
        return candidates
