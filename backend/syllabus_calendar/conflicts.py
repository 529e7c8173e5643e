"""
Staggering of colliding deadline-like events.

Two passes, both pure and run before anything is written anywhere:

1. ``resolve_external_conflicts`` moves new priority events (homework,
   assignments, deadlines) off slots already taken by priority events in the
   destination calendar.
2. ``resolve_overlaps`` staggers priority events inside the batch that share
   a slot.

A slot is the event's date plus its parsed start time, so "2:00 PM" and
"14:00" on the same date collide. All-day events have no slot and are never
moved. Shifted events keep their duration; a shift past midnight moves the
date as well.
"""

import logging
from collections import Counter, OrderedDict
from datetime import datetime, time, timedelta, tzinfo
from typing import Any, Dict, Iterable, List, Optional

from dateutil import parser as dt_parser

from .config import STAGGER_MINUTES
from .dates import get_zone, parse_event_date
from .models import ExtractedEvent, is_priority_text
from .time_parser import TimeSpan, format_time_span, try_parse_time_span

logger = logging.getLogger(__name__)


def event_slot(ev: ExtractedEvent, now: datetime) -> Optional[datetime]:
    """Conflict key of an extracted event, or None when it has no date/time."""
    if not ev.date or not ev.time:
        return None
    day = parse_event_date(ev.date, now)
    span = try_parse_time_span(ev.time)
    if day is None or span is None:
        return None
    return datetime.combine(day, time(*span.start))


def shift_event(ev: ExtractedEvent, slot: datetime, minutes: int) -> ExtractedEvent:
    """Copy of ``ev`` moved ``minutes`` later, keeping its duration."""
    span = try_parse_time_span(ev.time)
    new_start = slot + timedelta(minutes=minutes)
    new_end = None
    if span is not None and span.end is not None:
        end = datetime.combine(slot.date(), time(*span.end))
        if end <= slot:
            end += timedelta(days=1)
        end += timedelta(minutes=minutes)
        new_end = (end.hour, end.minute)
    new_time = format_time_span(TimeSpan((new_start.hour, new_start.minute), new_end))
    logger.info("Moving %r from %s to %s", ev.title, slot, new_start)
    return ev.model_copy(update={"date": new_start.date().isoformat(), "time": new_time})


def resolve_overlaps(
    events: List[ExtractedEvent], now: datetime, step: int = STAGGER_MINUTES
) -> List[ExtractedEvent]:
    """Stagger priority events that share a slot within one batch.

    In each group the first priority event stays put and the n-th later one
    moves ``step * n`` minutes, skipping slots other priority events already
    hold so a second run finds nothing to do. Non-priority events are untouched.
    """
    slots = [event_slot(ev, now) for ev in events]
    groups: Dict[datetime, List[int]] = OrderedDict()
    for i, slot in enumerate(slots):
        if slot is not None:
            groups.setdefault(slot, []).append(i)

    occupied = {slot for ev, slot in zip(events, slots) if slot is not None and ev.is_priority}
    out = list(events)
    for slot, members in groups.items():
        if len(members) < 2:
            continue
        priority = [i for i in members if events[i].is_priority]
        for position, i in enumerate(priority[1:], start=1):
            target = slot + timedelta(minutes=step * position)
            while target in occupied:
                target += timedelta(minutes=step)
            occupied.add(target)
            out[i] = shift_event(events[i], slot, int((target - slot).total_seconds() // 60))
    return out


def existing_event_slot(item: Dict[str, Any], zone: Optional[tzinfo]) -> Optional[datetime]:
    """Local slot of a calendar-API event resource; None for all-day or malformed ones."""
    start = item.get("start") or {}
    raw = start.get("dateTime")
    if not raw:
        return None
    try:
        parsed = dt_parser.isoparse(raw)
    except (ValueError, OverflowError):
        logger.warning("Skipping existing event with bad start %r", raw)
        return None
    if parsed.tzinfo is not None and zone is not None:
        parsed = parsed.astimezone(zone)
    return parsed.replace(tzinfo=None, second=0, microsecond=0)


def existing_conflict_counts(
    existing: Iterable[Dict[str, Any]], zone: Optional[tzinfo]
) -> Counter:
    counts: Counter = Counter()
    for item in existing:
        blob = f"{item.get('summary') or ''} {item.get('description') or ''}"
        if not is_priority_text(blob):
            continue
        slot = existing_event_slot(item, zone)
        if slot is not None:
            counts[slot] += 1
    return counts


def resolve_external_conflicts(
    events: List[ExtractedEvent],
    existing: Iterable[Dict[str, Any]],
    now: datetime,
    time_zone: Optional[str] = None,
    step: int = STAGGER_MINUTES,
) -> List[ExtractedEvent]:
    """Move new priority events off slots held by existing priority events.

    Each new event landing on an occupied slot moves ``step * count`` minutes,
    then the slot's count grows so the next one lands further out.
    """
    counts = existing_conflict_counts(existing, get_zone(time_zone))
    if not counts:
        return list(events)

    out: List[ExtractedEvent] = []
    for ev in events:
        slot = event_slot(ev, now) if ev.is_priority else None
        if slot is not None and counts[slot] > 0:
            n = counts[slot]
            ev = shift_event(ev, slot, step * n)
            counts[slot] = n + 1
        out.append(ev)
    return out
