import logging
import re
from datetime import datetime
from typing import List, Optional

from icalendar import Calendar, Event, vRecur

from .config import ICS_PRODID, UID_DOMAIN
from .models import NormalizedEvent
from .recurrence import format_rrule

logger = logging.getLogger(__name__)

COURSE_CODE = re.compile(r"([A-Z]{2,4}\s*\d{3,4}[A-Z]?)")
ILLEGAL_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*]')


# ============================================================
# FILENAME
# ============================================================
def class_id_for_filename(class_name: Optional[str]) -> str:
    """Course code (``MIS 302 - Intro`` -> ``MIS_302``), else the first two words."""
    name = (class_name or "").strip()
    if not name or name == "Unknown Course":
        return "calendar"
    m = COURSE_CODE.search(name)
    if m:
        return re.sub(r"\s+", "_", m.group(1))
    first_part = " ".join(name.split(" - ")[0].split()[:2])
    return first_part or "calendar"


def sanitize_filename(name: str) -> str:
    name = ILLEGAL_FILENAME_CHARS.sub("", name)
    return re.sub(r"\s+", "_", name.strip())


def ics_filename(class_name: Optional[str]) -> str:
    return f"{sanitize_filename(class_id_for_filename(class_name)) or 'calendar'}.ics"


# ============================================================
# ICS GENERATION
# ============================================================
def events_to_ics(
    events: List[NormalizedEvent],
    now: datetime,
    class_name: Optional[str] = None,
    time_zone: Optional[str] = None,
) -> bytes:
    """Serialize normalized events into one VCALENDAR document (CRLF, folded)."""
    cal = Calendar()
    cal.add("prodid", ICS_PRODID)
    cal.add("version", "2.0")
    cal.add("calscale", "GREGORIAN")
    cal.add("method", "PUBLISH")
    if class_name:
        cal.add("x-wr-calname", f"{class_name} Schedule")
        cal.add("x-wr-caldesc", f"Academic calendar for {class_name}")
    if time_zone:
        cal.add("x-wr-timezone", time_zone)

    for ev in events:
        e = Event()
        e.add("uid", f"{ev.uid}@{UID_DOMAIN}")
        e.add("dtstamp", now)
        e.add("summary", ev.title)
        e.add("description", ev.description)
        if ev.location:
            e.add("location", ev.location)

        # all-day values keep their VALUE=DATE parameter
        params = {"TZID": ev.time_zone} if (ev.time_zone and not ev.is_all_day) else None
        e.add("dtstart", ev.start, parameters=params)
        e.add("dtend", ev.end, parameters=params)

        if ev.rule is not None:
            e.add("rrule", vRecur.from_ical(format_rrule(ev.rule, ev.is_all_day, ev.time_zone)))

        cal.add_component(e)

    logger.info("Encoded %d events into calendar file", len(events))
    return cal.to_ical()
