"""
Free-text time parsing.

Turns strings such as ``"3:15 PM"``, ``"12:00 am"``, ``"noon"``, ``"1430"`` or
``"3:30 - 5:30 pm"`` into 24-hour ``(hour, minute)`` pairs. Both output
formats (calendar file and calendar API) go through this module so they
always agree on how a missing AM/PM marker is inferred:

- a token with its own marker keeps it;
- in a range, a side without a marker borrows the other side's marker when
  the whole string carries only that one kind of marker;
- a start that borrows ``PM`` but whose 12-hour value is greater than the
  end's (``10:30-1:30 PM``) crosses the boundary and is read as ``AM``;
- a range with no marker at all is read on the 24-hour clock;
- a range whose end can't be read (``2:00 PM - TBA``) keeps its start.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple

from dateutil import parser as dt_parser

from .errors import InvalidTimeFormat

logger = logging.getLogger(__name__)

TimeOfDay = Tuple[int, int]

_RANGE_SPLIT = re.compile(r"\s*[–—-]\s*|\s+to\s+", re.IGNORECASE)
_MERIDIEM = re.compile(r"(?<![a-z])([ap])\.?m\b\.?", re.IGNORECASE)
# "9", "930", "1430", "3.30"
_BARE_CLOCK = re.compile(r"(\d{1,2})(?:\.?(\d{2}))?")
_WORD_TIMES = {"noon": (12, 0), "midday": (12, 0), "midnight": (0, 0)}
_NO_DATE = datetime(2000, 1, 1)


@dataclass(frozen=True)
class TimeSpan:
    start: TimeOfDay
    end: Optional[TimeOfDay] = None

    @property
    def is_range(self) -> bool:
        return self.end is not None


def _meridiem_of(text: str) -> Optional[str]:
    m = _MERIDIEM.search(text)
    return m.group(1).lower() if m else None


def parse_time(token: str, fallback_meridiem: Optional[str] = None) -> TimeOfDay:
    """Parse a single time token into a 24-hour ``(hour, minute)`` pair.

    ``fallback_meridiem`` ("AM"/"PM") applies only when the token has no
    marker of its own. Raises ``InvalidTimeFormat`` when no time of day can
    be read from the token.
    """
    text = (token or "").strip().lower()
    for word, value in _WORD_TIMES.items():
        if re.search(rf"\b{word}\b", text):
            return value

    meridiem = _meridiem_of(text)
    text = _MERIDIEM.sub(" ", text).strip()
    if not re.search(r"\d", text):
        raise InvalidTimeFormat(f"Unrecognized time: {token!r}")

    bare = _BARE_CLOCK.fullmatch(text)
    if bare:
        text = f"{bare.group(1)}:{bare.group(2) or '00'}"
    if meridiem:
        text = f"{text} {meridiem}m"

    # a marker on an already-24-hour value ("13:00 PM") is ignored
    try:
        parsed = dt_parser.parse(text, default=_NO_DATE, fuzzy=True)
    except (ValueError, OverflowError) as e:
        raise InvalidTimeFormat(f"Unrecognized time: {token!r}") from e
    if parsed.date() != _NO_DATE.date():
        raise InvalidTimeFormat(f"Not a time of day: {token!r}")

    hour, minute = parsed.hour, parsed.minute
    if meridiem is None and fallback_meridiem:
        fallback = fallback_meridiem.strip().lower()[:1]
        if fallback == "p" and hour < 12:
            hour += 12
        elif fallback == "a" and hour == 12:
            hour = 0
    return hour, minute


def _parse_range(start_text: str, end_text: str, text: str) -> TimeSpan:
    start_mer = _meridiem_of(start_text)
    end_mer = _meridiem_of(end_text)
    markers = {m.lower() for m in _MERIDIEM.findall(text)}
    end_inferred = end_mer is None

    if start_mer is None and end_mer is not None and markers == {end_mer}:
        start_mer = end_mer
        if end_mer == "p" and parse_time(start_text, "p") > parse_time(end_text, "p"):
            start_mer = "a"
    elif end_mer is None and start_mer is not None and markers == {start_mer}:
        end_mer = start_mer

    start = parse_time(start_text, start_mer)
    end = parse_time(end_text, end_mer)

    # "11 am - 1": the borrowed AM put the end before the start
    if end_inferred and markers and end <= start and end[0] < 12:
        end = (end[0] + 12, end[1])
    return TimeSpan(start, end)


def parse_time_span(text: str) -> TimeSpan:
    """Parse a single time or a ``start - end`` range."""
    text = (text or "").strip()
    if not text:
        raise InvalidTimeFormat("Empty time")

    parts = _RANGE_SPLIT.split(text, maxsplit=1)
    if len(parts) == 1 or not parts[0].strip() or not parts[1].strip():
        return TimeSpan(parse_time(text))

    start_text, end_text = parts
    try:
        return _parse_range(start_text, end_text, text)
    except InvalidTimeFormat as e:
        start = parse_time(start_text)
        logger.warning("Keeping only the start of %r: %s", text, e.message)
        return TimeSpan(start)


def try_parse_time_span(text: Optional[str]) -> Optional[TimeSpan]:
    """``parse_time_span`` that returns None for empty or unparseable input."""
    if not text or not text.strip():
        return None
    try:
        return parse_time_span(text)
    except InvalidTimeFormat as e:
        logger.warning("Treating event as all-day: %s", e.message)
        return None


def format_time(value: TimeOfDay) -> str:
    hour, minute = value
    period = "PM" if hour >= 12 else "AM"
    display = hour % 12 or 12
    return f"{display}:{minute:02d} {period}"


def format_time_span(span: TimeSpan) -> str:
    if span.end is None:
        return format_time(span.start)
    return f"{format_time(span.start)} – {format_time(span.end)}"
