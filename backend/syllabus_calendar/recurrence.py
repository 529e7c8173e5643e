import logging
import re
from datetime import datetime
from typing import Optional, Tuple

from .dates import parse_event_date, until_to_utc
from .models import RecurrenceRule

logger = logging.getLogger(__name__)

_AND = r",?\s*(?:and\s+|&\s*)?"
_MON = r"mon(?:day)?s?"
_TUE = r"tue(?:s(?:day)?)?s?"
_WED = r"wed(?:nesday)?s?"
_THU = r"thu(?:r(?:s(?:day)?)?)?s?"
_FRI = r"fri(?:day)?s?"

# Evaluated top to bottom: combinations before single days before plain "weekly".
RECURRENCE_TABLE: Tuple[Tuple[re.Pattern, Tuple[str, ...]], ...] = tuple(
    (re.compile(pattern, re.IGNORECASE), days)
    for pattern, days in (
        (rf"\b{_MON}{_AND}{_WED}{_AND}{_FRI}\b|\bmwf\b", ("MO", "WE", "FR")),
        (rf"\b{_TUE}{_AND}{_THU}\b|\bt(?:u)?th\b|\btr\b", ("TU", "TH")),
        (rf"\b{_MON}{_AND}{_WED}\b|\bmw\b", ("MO", "WE")),
        (r"\bmondays?\b", ("MO",)),
        (r"\btuesdays?\b", ("TU",)),
        (r"\bwednesdays?\b", ("WE",)),
        (r"\bthursdays?\b", ("TH",)),
        (r"\bfridays?\b", ("FR",)),
        (r"\bsaturdays?\b", ("SA",)),
        (r"\bsundays?\b", ("SU",)),
        (r"\bweekly\b|\bevery week\b|\beach week\b", ()),
    )
)

_UNTIL = re.compile(r"\buntil\b\s*(.+)$", re.IGNORECASE)


def match_days(text: str) -> Optional[Tuple[str, ...]]:
    """Day codes of the first table row matching ``text``; None when nothing does."""
    for pattern, days in RECURRENCE_TABLE:
        if pattern.search(text):
            return days
    return None


def compile_recurrence(text: Optional[str], now: datetime) -> Optional[RecurrenceRule]:
    """Compile a free-text recurrence description into a weekly rule.

    An "until <date>" clause bounds the rule when its date parses and is
    dropped otherwise. Returns None when no known pattern matches.
    """
    if not text or not text.strip():
        return None

    pattern_text, until = text, None
    m = _UNTIL.search(text)
    if m:
        # weekday names inside the until clause ("until Monday, May 4") are not pattern days
        pattern_text = text[: m.start()]
        until = parse_event_date(m.group(1), now, fuzzy=True)
        if until is None:
            logger.warning("Ignoring unparseable until date in %r", text)

    days = match_days(pattern_text)
    if days is None:
        logger.warning("Unrecognized recurrence %r", text)
        return None
    return RecurrenceRule(days=days, until=until)


def format_rrule(
    rule: RecurrenceRule, all_day: bool, time_zone: Optional[str] = None
) -> str:
    """RFC 5545 RRULE value (without the ``RRULE:`` prefix).

    UNTIL takes the form the start value requires: a date for all-day
    events, UTC for zoned events and floating local time otherwise.
    """
    parts = ["FREQ=WEEKLY"]
    if rule.until:
        if all_day:
            parts.append(f"UNTIL={rule.until:%Y%m%d}")
        elif time_zone:
            parts.append(f"UNTIL={until_to_utc(rule.until, time_zone):%Y%m%dT%H%M%SZ}")
        else:
            parts.append(f"UNTIL={rule.until:%Y%m%d}T235959")
    if rule.days:
        parts.append("BYDAY=" + ",".join(rule.days))
    return ";".join(parts)
