import logging
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from .config import DEFAULT_EVENT_MINUTES
from .dates import AnchorPolicy, align_to_days, anchor_date, parse_event_date
from .models import ExtractedEvent, NormalizedEvent
from .recurrence import compile_recurrence
from .time_parser import try_parse_time_span

logger = logging.getLogger(__name__)


def tag_description(description: str, event_type: str) -> str:
    return f"{description}\nType: {event_type}".strip()


def format_event(
    ev: ExtractedEvent,
    now: datetime,
    time_zone: Optional[str] = None,
    anchor: AnchorPolicy = AnchorPolicy.TOMORROW,
) -> Optional[NormalizedEvent]:
    """Turn one extracted event into a placeable event, or None if it can't be placed.

    - no usable time: all-day, ``end = start + 1 day``
    - single time: ``end = start + DEFAULT_EVENT_MINUTES``
    - time range: the range's end, rolled to the next day if it isn't after the start
    - no date but a recognized recurrence: anchored per ``anchor`` after ``now``
    - a date off the recurrence's weekdays: moved forward to the next one
    """
    warnings: List[str] = []
    rule = compile_recurrence(ev.recurrence, now)
    if ev.recurrence and rule is None:
        warnings.append(f"Unrecognized recurrence: {ev.recurrence}")

    day = parse_event_date(ev.date, now)
    if ev.date and day is None:
        warnings.append(f"Unparseable date: {ev.date}")
    if day is None:
        if rule is None:
            logger.info("Dropping unplaceable event %r", ev.title)
            return None
        day = anchor_date(anchor, now, rule.days)
    elif rule is not None and align_to_days(day, rule.days) != day:
        # the first instance has to fall on one of the rule's weekdays
        warnings.append(f"Moved first occurrence of {ev.title!r} to match {ev.recurrence}")
        day = align_to_days(day, rule.days)

    span = try_parse_time_span(ev.time)
    if ev.time and span is None:
        warnings.append(f"Unparseable time: {ev.time}")

    if span is None:
        is_all_day = True
        start = day
        end = day + timedelta(days=1)
    else:
        is_all_day = False
        start = datetime.combine(day, datetime.min.time()).replace(
            hour=span.start[0], minute=span.start[1]
        )
        if span.end is None:
            end = start + timedelta(minutes=DEFAULT_EVENT_MINUTES)
        else:
            end = start.replace(hour=span.end[0], minute=span.end[1])
            if end <= start:
                end += timedelta(days=1)

    return NormalizedEvent(
        uid=ev.id,
        title=ev.title or "Untitled Event",
        type=ev.type,
        is_all_day=is_all_day,
        start=start,
        end=end,
        time_zone=time_zone or None,
        rule=rule,
        location=ev.location,
        description=tag_description(ev.description, ev.type),
        warnings=warnings,
    )


def format_events(
    events: Iterable[ExtractedEvent],
    now: datetime,
    time_zone: Optional[str] = None,
    anchor: AnchorPolicy = AnchorPolicy.TOMORROW,
) -> List[NormalizedEvent]:
    out: List[NormalizedEvent] = []
    for ev in events:
        normalized = format_event(ev, now, time_zone=time_zone, anchor=anchor)
        if normalized is not None:
            out.append(normalized)
    return out
