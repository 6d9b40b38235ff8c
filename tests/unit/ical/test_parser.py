"""
Unit tests for the iCalendar parser.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable
from zoneinfo import ZoneInfo

import pytest

from sync_ics.errors import ParseError
from sync_ics.ical.parser import RawCalendarEvent, check_structure, parse_calendar, unfold_lines


def _split(items: list) -> tuple[list[RawCalendarEvent], list[ParseError]]:
    events = [item for item in items if isinstance(item, RawCalendarEvent)]
    warnings = [item for item in items if isinstance(item, ParseError)]
    return events, warnings


@pytest.mark.unit
def test_unfold_lines_joins_continuations() -> None:
    """Test that a line starting with whitespace continues the previous one."""
    text = "SUMMARY:Reserved for Jane\r\n  Doe\r\nUID:1\r\n"

    assert unfold_lines(text) == ["SUMMARY:Reserved for Jane Doe", "UID:1"]


@pytest.mark.unit
def test_parse_calendar_reads_timed_event(build_feed: Callable[..., str]) -> None:
    feed = build_feed(
        [
            {
                "uid": "abc@airbnb.com",
                "start": "20250701T150000Z",
                "end": "20250705T110000Z",
                "summary": "Reserved for Jane Doe",
                "description": "Guest: Jane Doe",
            }
        ]
    )

    events, warnings = _split(list(parse_calendar(feed)))

    assert warnings == []
    assert len(events) == 1
    event = events[0]
    assert event.uid == "abc@airbnb.com"
    assert event.summary == "Reserved for Jane Doe"
    assert event.description == "Guest: Jane Doe"
    assert event.start == datetime(2025, 7, 1, 15, 0, tzinfo=timezone.utc)
    assert event.end == datetime(2025, 7, 5, 11, 0, tzinfo=timezone.utc)


@pytest.mark.unit
def test_parse_calendar_unfolds_and_unescapes_text(build_feed: Callable[..., str]) -> None:
    """Test that folded lines are rejoined and escaped text is decoded."""
    feed = build_feed(
        [
            {
                "uid": "folded-1",
                "start": "20250701",
                "end": "20250703",
                "summary": "Reserved for Jane\r\n  Doe",
                "description": "Check-in 3pm\\nPhone: +1 555 010 1234\\, mobile\\; main",
            }
        ]
    )

    events, _ = _split(list(parse_calendar(feed)))

    assert events[0].summary == "Reserved for Jane Doe"
    assert events[0].description == "Check-in 3pm\nPhone: +1 555 010 1234, mobile; main"


@pytest.mark.unit
def test_parse_calendar_all_day_dates_start_at_midnight_utc(
    build_feed: Callable[..., str],
) -> None:
    feed = build_feed([{"uid": "d1", "start": "20250701", "end": "20250704", "summary": "x"}])

    events, _ = _split(list(parse_calendar(feed)))

    assert events[0].start == datetime(2025, 7, 1, tzinfo=timezone.utc)
    assert events[0].end == datetime(2025, 7, 4, tzinfo=timezone.utc)
    assert events[0].start.tzinfo is not None


@pytest.mark.unit
def test_parse_calendar_uses_feed_timezone_for_all_day_dates(
    build_feed: Callable[..., str],
) -> None:
    """Test that X-WR-TIMEZONE places all-day dates in the property's zone."""
    feed = build_feed(
        [{"uid": "tz1", "start": "20250701", "end": "20250704", "summary": "x"}],
        timezone_name="America/New_York",
    )

    events, _ = _split(list(parse_calendar(feed, default_tz="Europe/London")))

    assert events[0].start == datetime(2025, 7, 1, tzinfo=ZoneInfo("America/New_York"))
    assert events[0].start == datetime(2025, 7, 1, 4, 0, tzinfo=timezone.utc)


@pytest.mark.unit
def test_parse_calendar_falls_back_to_default_timezone(build_feed: Callable[..., str]) -> None:
    feed = build_feed([{"uid": "tz2", "start": "20250101", "end": "20250102", "summary": "x"}])

    events, _ = _split(list(parse_calendar(feed, default_tz="Europe/Berlin")))

    assert events[0].start == datetime(2024, 12, 31, 23, 0, tzinfo=timezone.utc)


@pytest.mark.unit
def test_parse_calendar_accepts_duration_instead_of_dtend(
    build_feed: Callable[..., str],
) -> None:
    feed = build_feed(
        [
            {
                "uid": "dur-1",
                "start": "20250701T150000Z",
                "summary": "x",
                "extra": ["DURATION:P3D"],
            }
        ]
    )

    events, warnings = _split(list(parse_calendar(feed)))

    assert warnings == []
    assert events[0].end - events[0].start == timedelta(days=3)


@pytest.mark.unit
def test_parse_calendar_reads_optional_properties(build_feed: Callable[..., str]) -> None:
    feed = build_feed(
        [
            {
                "uid": "opt-1",
                "start": "20250701",
                "end": "20250702",
                "summary": "x",
                "extra": [
                    "LOCATION:Beach House",
                    "URL:https://www.airbnb.com/hosting/reservations/details/HM123",
                    "STATUS:cancelled",
                ],
            }
        ]
    )

    event = _split(list(parse_calendar(feed)))[0][0]

    assert event.location == "Beach House"
    assert event.url == "https://www.airbnb.com/hosting/reservations/details/HM123"
    assert event.status == "CANCELLED"


@pytest.mark.unit
def test_parse_calendar_tolerates_one_event_missing_uid(build_feed: Callable[..., str]) -> None:
    """Test that ten valid events and one without UID yield ten events and one warning."""
    valid = [
        {
            "uid": f"evt-{day}",
            "start": f"202507{day:02d}",
            "end": f"202507{day + 1:02d}",
            "summary": f"Guest {day}",
        }
        for day in range(1, 11)
    ]
    broken = {"start": "20250720", "end": "20250722", "summary": "No uid here"}
    feed = build_feed(valid[:5] + [broken] + valid[5:])

    events, warnings = _split(list(parse_calendar(feed)))

    assert len(events) == 10
    assert len(warnings) == 1
    assert warnings[0].index == 5
    assert warnings[0].uid is None
    assert warnings[0].describe() == "Skipped event #5: missing UID"
    assert [event.uid for event in events] == [f"evt-{day}" for day in range(1, 11)]


@pytest.mark.unit
def test_parse_calendar_reports_event_missing_dtend(build_feed: Callable[..., str]) -> None:
    feed = build_feed([{"uid": "no-end", "start": "20250701", "summary": "x"}])

    events, warnings = _split(list(parse_calendar(feed)))

    assert events == []
    assert warnings[0].uid == "no-end"
    assert "DTEND" in str(warnings[0])


@pytest.mark.unit
def test_parse_calendar_reports_unparsable_date(build_feed: Callable[..., str]) -> None:
    feed = build_feed(
        [
            {"uid": "bad-date", "start": "2025-07-XX", "end": "20250702", "summary": "x"},
            {"uid": "good", "start": "20250703", "end": "20250704", "summary": "y"},
        ]
    )

    events, warnings = _split(list(parse_calendar(feed)))

    assert [event.uid for event in events] == ["good"]
    assert len(warnings) == 1
    assert warnings[0].uid == "bad-date"


@pytest.mark.unit
def test_parse_calendar_reports_end_before_start(build_feed: Callable[..., str]) -> None:
    feed = build_feed([{"uid": "backwards", "start": "20250705", "end": "20250701", "summary": "x"}])

    _, warnings = _split(list(parse_calendar(feed)))

    assert str(warnings[0]) == "end is not after start"
    assert warnings[0].describe() == "Skipped event backwards: end is not after start"


@pytest.mark.unit
def test_parse_calendar_ignores_non_event_components(build_feed: Callable[..., str]) -> None:
    feed = build_feed(
        [{"uid": "e1", "start": "20250701", "end": "20250702", "summary": "x"}]
    ).replace(
        "END:VCALENDAR",
        "BEGIN:VTODO\r\nUID:todo-1\r\nSUMMARY:Clean\r\nEND:VTODO\r\nEND:VCALENDAR",
    )

    events, warnings = _split(list(parse_calendar(feed)))

    assert [event.uid for event in events] == ["e1"]
    assert warnings == []


@pytest.mark.unit
def test_parse_calendar_with_no_events_yields_nothing(build_feed: Callable[..., str]) -> None:
    assert list(parse_calendar(build_feed([]))) == []


@pytest.mark.unit
@pytest.mark.parametrize("text", ["", "   \r\n"])
def test_parse_calendar_rejects_empty_feed(text: str) -> None:
    with pytest.raises(ParseError, match="empty"):
        parse_calendar(text)


@pytest.mark.unit
def test_parse_calendar_rejects_unterminated_event() -> None:
    """Test that an event block missing END:VEVENT fails the whole feed."""
    feed = (
        "BEGIN:VCALENDAR\r\nVERSION:2.0\r\n"
        "BEGIN:VEVENT\r\nUID:1\r\nDTSTART;VALUE=DATE:20250701\r\n"
        "END:VCALENDAR\r\n"
    )

    with pytest.raises(ParseError, match="VEVENT"):
        parse_calendar(feed)


@pytest.mark.unit
def test_parse_calendar_rejects_html_error_page() -> None:
    with pytest.raises(ParseError, match="no VCALENDAR"):
        parse_calendar("<html><body>Service Unavailable</body></html>")


@pytest.mark.unit
def test_check_structure_rejects_event_outside_calendar() -> None:
    with pytest.raises(ParseError, match="outside of VCALENDAR"):
        check_structure(["BEGIN:VEVENT", "UID:1", "END:VEVENT"])


@pytest.mark.unit
def test_check_structure_rejects_stray_end() -> None:
    with pytest.raises(ParseError, match="without matching BEGIN"):
        check_structure(["END:VCALENDAR"])
