from datetime import date, datetime

from syllabus_calendar.dates import AnchorPolicy, anchor_date, get_zone
from syllabus_calendar.formatter import format_event, format_events
from syllabus_calendar.models import ExtractedEvent

from conftest import NOW


def make(**fields):
    fields.setdefault("title", "Event")
    return ExtractedEvent(**fields)


def test_extracted_event_defaults_for_missing_fields():
    ev = ExtractedEvent.model_validate({"title": "Quiz 1", "date": None, "time": 5, "type": None})
    assert ev.date == ""
    assert ev.time == "5"
    assert ev.type == "event"
    assert ev.location == ""
    assert ev.id


def test_generated_ids_are_stable():
    a = make(title="Quiz 1", date="2025-03-10")
    b = make(title="Quiz 1", date="2025-03-10")
    assert a.id == b.id
    assert make(id="abc").id == "abc"


def test_all_day_event_ends_next_day():
    ev = format_event(make(date="2025-03-10"), NOW)
    assert ev.is_all_day
    assert ev.start == date(2025, 3, 10)
    assert ev.end == date(2025, 3, 11)


def test_single_time_gets_one_hour():
    ev = format_event(make(date="2025-03-10", time="2:00 PM"), NOW)
    assert not ev.is_all_day
    assert ev.start == datetime(2025, 3, 10, 14, 0)
    assert ev.end == datetime(2025, 3, 10, 15, 0)


def test_range_uses_its_end():
    ev = format_event(make(date="2025-03-10", time="3:30 - 5:30 pm"), NOW)
    assert ev.start == datetime(2025, 3, 10, 15, 30)
    assert ev.end == datetime(2025, 3, 10, 17, 30)


def test_range_past_midnight_ends_next_day():
    ev = format_event(make(date="2025-03-10", time="10 PM - 1 AM"), NOW)
    assert ev.end == datetime(2025, 3, 11, 1, 0)
    assert ev.end > ev.start


def test_unparseable_time_falls_back_to_all_day():
    ev = format_event(make(date="2025-03-10", time="TBA"), NOW)
    assert ev.is_all_day
    assert ev.warnings == ["Unparseable time: TBA"]


def test_written_date_without_year_uses_reference_year():
    ev = format_event(make(date="March 10"), NOW)
    assert ev.start == date(2025, 3, 10)


def test_description_is_tagged_with_type():
    ev = format_event(make(date="2025-03-10", type="Exam", description="Bring a calculator"), NOW)
    assert ev.description == "Bring a calculator\nType: exam"
    assert format_event(make(date="2025-03-10", type="exam"), NOW).description == "Type: exam"


def test_location_and_time_zone_are_kept():
    ev = format_event(
        make(date="2025-03-10", time="9 am", location="Room 101"), NOW, time_zone="America/Chicago"
    )
    assert ev.location == "Room 101"
    assert ev.time_zone == "America/Chicago"


def test_unplaceable_events_are_dropped():
    assert format_event(make(), NOW) is None
    assert format_event(make(recurrence="now and then"), NOW) is None
    events = [make(date="2025-03-10"), make(), make(recurrence="occasionally")]
    assert len(format_events(events, NOW)) == 1


def test_unrecognized_recurrence_with_date_is_single_event():
    ev = format_event(make(date="2025-03-10", recurrence="now and then"), NOW)
    assert ev.rule is None
    assert ev.start == date(2025, 3, 10)
    assert ev.warnings == ["Unrecognized recurrence: now and then"]


def test_recurring_event_with_date_anchors_on_date():
    ev = format_event(make(date="2025-03-10", time="10 am", recurrence="Every Monday"), NOW)
    assert ev.start == datetime(2025, 3, 10, 10, 0)
    assert ev.rule.days == ("MO",)


def test_recurring_event_date_moves_to_first_rule_weekday():
    # 2025-03-12 is a Wednesday
    ev = format_event(make(date="2025-03-12", time="10 am", recurrence="Every Monday"), NOW)
    assert ev.start == datetime(2025, 3, 17, 10, 0)
    assert ev.warnings == ["Moved first occurrence of 'Event' to match Every Monday"]


def test_compact_time_keeps_minutes():
    ev = format_event(make(date="2025-03-10", time="1430"), NOW)
    assert ev.start == datetime(2025, 3, 10, 14, 30)
    assert ev.end == datetime(2025, 3, 10, 15, 30)


def test_recurring_event_without_date_anchors_after_now():
    ev = make(time="10:00 AM", recurrence="Every Monday, Wednesday, and Friday")
    # NOW is Wednesday 2025-03-05; tomorrow is Thursday, first MWF day is Friday
    tomorrow = format_event(ev, NOW, anchor=AnchorPolicy.TOMORROW)
    assert tomorrow.start == datetime(2025, 3, 7, 10, 0)
    assert tomorrow.rule.days == ("MO", "WE", "FR")

    monday = format_event(ev, NOW, anchor=AnchorPolicy.NEXT_MONDAY)
    assert monday.start == datetime(2025, 3, 10, 10, 0)


def test_anchor_date_policies():
    assert anchor_date(AnchorPolicy.TOMORROW, NOW) == date(2025, 3, 6)
    assert anchor_date(AnchorPolicy.NEXT_MONDAY, NOW) == date(2025, 3, 10)
    monday = datetime(2025, 3, 10, 8, 0)
    assert anchor_date(AnchorPolicy.NEXT_MONDAY, monday) == date(2025, 3, 17)
    assert anchor_date(AnchorPolicy.TOMORROW, NOW, ("TU",)) == date(2025, 3, 11)


def test_get_zone_only_accepts_iana_names():
    assert get_zone("America/Chicago") is not None
    assert get_zone(" UTC ") is not None
    assert get_zone("") is None
    assert get_zone("GMT+3") is None
    assert get_zone("ABC-5") is None
    assert get_zone("/etc/hostname") is None
