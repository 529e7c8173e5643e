import logging
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from enum import Enum
from typing import Iterable, Optional

from dateutil import parser as dt_parser
from dateutil import tz
from dateutil.zoneinfo import get_zonefile_instance

from .models import WEEKDAY_CODES

logger = logging.getLogger(__name__)

# IANA names only; gettz would also take POSIX TZ strings and file paths
IANA_ZONES = frozenset(get_zonefile_instance().zones)


class AnchorPolicy(str, Enum):
    """Where a recurring event without a date gets its first occurrence."""

    TOMORROW = "tomorrow"
    NEXT_MONDAY = "next_monday"


def parse_event_date(
    raw: Optional[str], now: datetime, fuzzy: bool = False
) -> Optional[date]:
    """Parse an ISO-ish or written date; a missing year defaults to ``now``'s."""
    if not raw:
        return None
    s = str(raw).strip()
    if not s:
        return None
    try:
        return dt_parser.parse(
            s, default=datetime(now.year, 1, 1), fuzzy=fuzzy
        ).date()
    except (ValueError, OverflowError):
        logger.warning("Unparseable date %r", s)
        return None


def get_zone(name: Optional[str]) -> Optional[tzinfo]:
    """IANA zone lookup; None for empty or unknown names."""
    name = (name or "").strip()
    if name not in IANA_ZONES:
        return None
    return tz.gettz(name)


def until_to_utc(until: date, zone_name: str) -> datetime:
    """Last second of ``until`` in ``zone_name``, expressed in UTC."""
    local = datetime.combine(until, time(23, 59, 59), tzinfo=get_zone(zone_name) or tz.UTC)
    return local.astimezone(timezone.utc)


def anchor_date(policy: AnchorPolicy, now: datetime, days: Iterable[str] = ()) -> date:
    """First occurrence for a recurring event that has no date of its own.

    The policy picks a base date after ``now``; the anchor then moves forward to
    the first weekday listed in ``days`` so the first instance matches the rule.
    """
    today = now.date()
    if policy == AnchorPolicy.NEXT_MONDAY:
        base = today + timedelta(days=(7 - today.weekday()) % 7 or 7)
    else:
        base = today + timedelta(days=1)

    return align_to_days(base, days)


def align_to_days(day: date, days: Iterable[str] = ()) -> date:
    """First date on or after ``day`` whose weekday is one of ``days``."""
    wanted = {WEEKDAY_CODES.index(d) for d in days if d in WEEKDAY_CODES}
    if not wanted:
        return day
    for offset in range(7):
        candidate = day + timedelta(days=offset)
        if candidate.weekday() in wanted:
            return candidate
    return day
