import pytest

from syllabus_calendar.formatter import format_events
from syllabus_calendar.ics import class_id_for_filename, events_to_ics, ics_filename
from syllabus_calendar.models import ExtractedEvent

from conftest import NOW


def render(events, **kwargs):
    time_zone = kwargs.get("time_zone")
    normalized = format_events(events, NOW, time_zone=time_zone)
    return events_to_ics(normalized, NOW, **kwargs).decode("utf-8")


def lines(text):
    # unfold continuation lines first
    return text.replace("\r\n ", "").split("\r\n")


def test_document_structure_and_line_endings():
    text = render([ExtractedEvent(id="e1", title="Midterm", date="2025-03-10", type="exam")])
    assert text.startswith("BEGIN:VCALENDAR\r\n")
    assert text.rstrip("\r\n").endswith("END:VCALENDAR")
    assert "\n" not in text.replace("\r\n", "")
    out = lines(text)
    assert "VERSION:2.0" in out
    assert "CALSCALE:GREGORIAN" in out
    assert "METHOD:PUBLISH" in out
    assert out.count("BEGIN:VEVENT") == 1
    assert "UID:e1@syllabuscalendar.com" in out
    assert "DTSTAMP:20250305T090000Z" in out
    assert "SUMMARY:Midterm" in out


def test_all_day_event_uses_exclusive_end_date():
    out = lines(render([ExtractedEvent(title="Spring Break", date="2025-03-10", type="holiday")]))
    assert "DTSTART;VALUE=DATE:20250310" in out
    assert "DTEND;VALUE=DATE:20250311" in out


def test_timed_event_floating_and_zoned():
    ev = ExtractedEvent(title="Office hours", date="2025-03-10", time="2:00 PM")
    floating = lines(render([ev]))
    assert "DTSTART:20250310T140000" in floating
    assert "DTEND:20250310T150000" in floating

    zoned = lines(render([ev], time_zone="America/Chicago"))
    assert "DTSTART;TZID=America/Chicago:20250310T140000" in zoned
    assert "DTEND;TZID=America/Chicago:20250310T150000" in zoned
    assert "X-WR-TIMEZONE:America/Chicago" in zoned


def test_recurring_event_has_rrule():
    ev = ExtractedEvent(
        title="Lecture",
        type="class",
        time="3:30 - 5:30 pm",
        recurrence="Every Monday, Wednesday, and Friday until May 2, 2025",
    )
    out = lines(render([ev]))
    rrule = [line for line in out if line.startswith("RRULE:")]
    assert len(rrule) == 1
    assert "FREQ=WEEKLY" in rrule[0]
    assert "BYDAY=MO,WE,FR" in rrule[0]
    assert "UNTIL=20250502T235959" in rrule[0]
    # tomorrow is Thursday 2025-03-06, first MWF day after it is Friday
    assert "DTSTART:20250307T153000" in out
    assert "DTEND:20250307T173000" in out


def test_free_text_is_escaped():
    ev = ExtractedEvent(
        title="Essay; draft, v2",
        date="2025-03-10",
        type="assignment",
        description="Read ch. 1, 2; then write",
        location="Hall A, Room 3",
    )
    out = lines(render([ev]))
    assert "SUMMARY:Essay\\; draft\\, v2" in out
    assert "DESCRIPTION:Read ch. 1\\, 2\\; then write\\nType: assignment" in out
    assert "LOCATION:Hall A\\, Room 3" in out


def test_long_lines_are_folded():
    ev = ExtractedEvent(title="Project", date="2025-03-10", description="x" * 200)
    text = render([ev])
    assert all(len(line.encode("utf-8")) <= 75 for line in text.split("\r\n"))


def test_unplaceable_events_are_skipped():
    events = [
        ExtractedEvent(title="Quiz", date="2025-03-10"),
        ExtractedEvent(title="Someday"),
        ExtractedEvent(title="Sometimes", recurrence="every so often"),
    ]
    out = lines(render(events))
    assert out.count("BEGIN:VEVENT") == 1
    assert "SUMMARY:Someday" not in out


def test_class_name_metadata():
    out = lines(render([ExtractedEvent(title="Quiz", date="2025-03-10")], class_name="MIS 302"))
    assert "X-WR-CALNAME:MIS 302 Schedule" in out
    assert "X-WR-CALDESC:Academic calendar for MIS 302" in out


@pytest.mark.parametrize(
    "class_name,filename",
    [
        ("MIS 302 - Intro to Systems", "MIS_302.ics"),
        ("MATH2304 Calculus", "MATH2304.ics"),
        ("Intro to Psychology", "Intro_to.ics"),
        ('Art: "History" of Film', "Art_History.ics"),
        ("Unknown Course", "calendar.ics"),
        ("", "calendar.ics"),
        (None, "calendar.ics"),
    ],
)
def test_ics_filename(class_name, filename):
    assert ics_filename(class_name) == filename


def test_class_id_keeps_trailing_letter():
    assert class_id_for_filename("CS 101H Honors") == "CS_101H"
