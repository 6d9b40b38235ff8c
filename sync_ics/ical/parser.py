"""
Calendar parser: raw iCalendar text to a lazy stream of reservation events.

Only VEVENT blocks are extracted. Property decoding (line unfolding, text
unescaping, DATE/DATE-TIME values) is delegated to the icalendar library; this
module adds the structural checks, zone defaulting and per-event validation
that a booking feed needs.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Any, Iterator, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog
from icalendar import Calendar

from sync_ics.errors import ParseError
from sync_ics.utils.datetime import start_of_day

logger = structlog.get_logger(__name__)

_FOLD = re.compile(r"\r?\n[ \t]")


@dataclass(frozen=True)
class RawCalendarEvent:
    """One VEVENT block, platform independent. start/end are timezone-aware."""

    uid: str
    summary: str
    start: datetime
    end: datetime
    description: Optional[str] = None
    location: Optional[str] = None
    url: Optional[str] = None
    status: Optional[str] = None


def unfold_lines(text: str) -> list[str]:
    """
    Rejoin folded content lines.

    A line starting with a space or tab continues the previous one; the
    single leading whitespace character is dropped.

    Example:
        >>> unfold_lines("SUMMARY:Reserved for Jane\\r\\n  Doe\\r\\nUID:1")
        ['SUMMARY:Reserved for Jane Doe', 'UID:1']
    """
    unfolded = _FOLD.sub("", text)
    return [line for line in re.split(r"\r?\n|\r", unfolded) if line.strip()]


def check_structure(lines: list[str]) -> None:
    """
    Validate BEGIN/END nesting of an unfolded feed.

    Raises:
        ParseError: If the feed has no VCALENDAR root, an END does not match the
            innermost open block, or a block is never terminated.
    """
    stack: list[str] = []
    saw_calendar = False

    for lineno, line in enumerate(lines, start=1):
        name, sep, value = line.partition(":")
        if not sep:
            continue
        keyword = name.split(";", 1)[0].strip().upper()
        block = value.strip().upper()

        if keyword == "BEGIN":
            if not stack and block != "VCALENDAR":
                raise ParseError(f"Line {lineno}: {block} block outside of VCALENDAR")
            if block == "VCALENDAR":
                saw_calendar = True
            stack.append(block)
        elif keyword == "END":
            if not stack:
                raise ParseError(f"Line {lineno}: END:{block} without matching BEGIN")
            if stack[-1] != block:
                raise ParseError(f"Line {lineno}: END:{block} closes unterminated {stack[-1]} block")
            stack.pop()

    if stack:
        raise ParseError(f"Unterminated {stack[-1]} block at end of feed")
    if not saw_calendar:
        raise ParseError("Feed contains no VCALENDAR block")


def _resolve_zone(name: Optional[str]) -> Optional[tzinfo]:
    if not name:
        return None
    try:
        return ZoneInfo(str(name).strip())
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("unknown_feed_timezone", timezone=str(name))
        return None


def _to_datetime(value: Any, tz: tzinfo) -> datetime:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=tz)
        return value
    if isinstance(value, date):
        return start_of_day(value, tz)
    raise ValueError(f"unsupported date value {value!r}")


def _text(component: Any, key: str) -> Optional[str]:
    value = component.get(key)
    if value is None:
        return None
    if isinstance(value, list):
        value = value[0] if value else None
        if value is None:
            return None
    return str(value)


def _build_event(component: Any, index: int, tz: tzinfo) -> RawCalendarEvent:
    uid = (_text(component, "UID") or "").strip()
    if not uid:
        raise ParseError("missing UID", index=index)

    if "DTSTART" not in component:
        raise ParseError("missing or unparsable DTSTART", uid=uid, index=index)

    try:
        start = _to_datetime(component.decoded("DTSTART"), tz)
        if "DTEND" in component:
            end = _to_datetime(component.decoded("DTEND"), tz)
        elif "DURATION" in component:
            duration = component.decoded("DURATION")
            if not isinstance(duration, timedelta):
                raise ValueError("DURATION is not a time span")
            end = start + duration
        else:
            raise ParseError("missing or unparsable DTEND", uid=uid, index=index)
    except (ValueError, TypeError, KeyError) as err:
        raise ParseError(f"unparsable date: {err}", uid=uid, index=index) from err

    if end <= start:
        raise ParseError("end is not after start", uid=uid, index=index)

    return RawCalendarEvent(
        uid=uid,
        summary=_text(component, "SUMMARY") or "",
        description=_text(component, "DESCRIPTION"),
        start=start,
        end=end,
        location=_text(component, "LOCATION"),
        url=_text(component, "URL"),
        status=(_text(component, "STATUS") or "").upper() or None,
    )


def _iter_events(calendars: list[Any], tz_default: tzinfo) -> Iterator[RawCalendarEvent | ParseError]:
    index = 0
    for calendar in calendars:
        tz = _resolve_zone(_text(calendar, "X-WR-TIMEZONE")) or tz_default
        for component in calendar.walk("VEVENT"):
            try:
                yield _build_event(component, index, tz)
            except ParseError as err:
                logger.warning("event_parse_warning", index=index, uid=err.uid, reason=str(err))
                yield err
            index += 1


def parse_calendar(
    text: str, default_tz: Optional[str] = None
) -> Iterator[RawCalendarEvent | ParseError]:
    """
    Parse a feed into RawCalendarEvents.

    The document structure is validated eagerly; events are then produced
    lazily in feed order. A malformed event does not stop the stream: it is
    yielded as a ParseError carrying its index (and UID when known) so the
    caller can record it as a warning and carry on.

    All-day dates and floating date-times are placed in the feed's
    X-WR-TIMEZONE, else default_tz, else UTC.

    Args:
        text (str): Raw feed body.
        default_tz (Optional[str]): IANA zone name used when the feed names none.

    Returns:
        Iterator[RawCalendarEvent | ParseError]: Events and per-event warnings.

    Raises:
        ParseError: If the feed as a whole is malformed.
    """
    if not text or not text.strip():
        raise ParseError("Feed is empty")

    check_structure(unfold_lines(text))

    try:
        calendars = Calendar.from_ical(text, multiple=True)
    except ValueError as err:
        raise ParseError(f"Malformed calendar: {err}") from err

    tz_default = _resolve_zone(default_tz) or timezone.utc
    return _iter_events(calendars, tz_default)
