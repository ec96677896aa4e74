"""Text normalization applied before date/time pattern matching."""
import re

MONTH_ABBREVIATIONS = {
    'jan': 'january',
    'feb': 'february',
    'mar': 'march',
    'apr': 'april',
    'jun': 'june',
    'jul': 'july',
    'aug': 'august',
    'sept': 'september',
    'sep': 'september',
    'oct': 'october',
    'nov': 'november',
    'dec': 'december',
}

_GLUED_MERIDIEM = re.compile(r'(?<=[\d\s])([ap]m)(?=[A-Z])')
_GLUED_YEAR = re.compile(r'(?<!\d)(\d{4})(?=[A-Z])')
_MONTH_ABBREVIATION = re.compile(
    r'\b(' + '|'.join(MONTH_ABBREVIATIONS) + r')\b\.?'
)
_ORDINAL_SUFFIX = re.compile(r'\b(\d{1,2})(?:st|nd|rd|th)\b')
_LEADING_BULLET = re.compile(r'^[\s•·▪►*|\-–—]+')
_WHITESPACE = re.compile(r'\s+')

_DASHES = re.compile(r'[–—]')
_DOTTED_MERIDIEM = re.compile(r'(\d)\s*([ap])\.m\.?')
_SHORT_MERIDIEM = re.compile(r'(\d{1,2}:\d{2})([ap])(?![a-z])')
_BARE_TIME_RANGE = re.compile(
    r'(?<![\d:])(\d{1,2})(:\d{2})?\s*-\s*(\d{1,2})(:\d{2})?\s*([ap]m)\b'
)


def normalize(text: str) -> str:
    """
    Canonicalize raw text for matching.

    The case-sensitive un-gluing pass runs before lowercasing, since it
    relies on the capital letter that starts the glued word.

    Args:
        text: Arbitrary input text

    Returns:
        Lowercased text with expanded months, no ordinals, no leading
        bullet and single-spaced whitespace
    """
    if not text:
        return ''
    text = _GLUED_MERIDIEM.sub(r'\1 ', text)
    text = _GLUED_YEAR.sub(r'\1 ', text)
    text = text.lower()
    text = _MONTH_ABBREVIATION.sub(
        lambda match: MONTH_ABBREVIATIONS[match.group(1)], text
    )
    text = _ORDINAL_SUFFIX.sub(r'\1', text)
    text = _LEADING_BULLET.sub('', text)
    return _WHITESPACE.sub(' ', text).strip()


def _rewrite_time_range(match: re.Match) -> str:
    start_hour, start_minutes, end_hour, end_minutes, meridiem = match.groups()
    start_meridiem = meridiem
    if int(start_hour) > int(end_hour) and int(start_hour) != 12:
        start_meridiem = 'am' if meridiem == 'pm' else 'pm'
    return (
        f"{start_hour}{start_minutes or ''}{start_meridiem}-"
        f"{end_hour}{end_minutes or ''}{meridiem}"
    )


def cleanup(text: str) -> str:
    """
    Second-stage cleanup run on normalized text before matching.

    Turns en/em dashes into hyphens, completes one-letter meridiems
    ("7:30p") and makes both sides of a time range carry a meridiem
    ("6 - 8 pm" becomes "6pm-8pm").
    """
    text = _DASHES.sub('-', text)
    text = _DOTTED_MERIDIEM.sub(r'\1\2m', text)
    text = _SHORT_MERIDIEM.sub(r'\1\2m', text)
    return _BARE_TIME_RANGE.sub(_rewrite_time_range, text)


def prepare(text: str) -> str:
    """Normalize and clean up text in one step."""
    return cleanup(normalize(text))
