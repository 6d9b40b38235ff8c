"""
Shared fixtures for the sync-ics test suite.

Tests run against a file-backed SQLite database with the "rental" schema
translated away, so no PostgreSQL server is needed.
"""

from __future__ import annotations

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ALLOWED_ORIGINS", "*")

from datetime import datetime, timezone  # noqa: E402
from decimal import Decimal  # noqa: E402
from typing import Any, Callable, Generator, Optional  # noqa: E402
from uuid import UUID, uuid4  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import create_engine, func, insert, select  # noqa: E402
from sqlalchemy.engine import Engine  # noqa: E402

from sync_ics.config import SCHEMA, SyncSettings  # noqa: E402
from sync_ics.models.base import Base  # noqa: E402
from sync_ics.models.bookings import Booking  # noqa: E402
from sync_ics.normalizers.platforms import (  # noqa: E402
    BookingStatus,
    CanonicalBookingDraft,
    Platform,
)


@pytest.fixture
def db_engine(tmp_path: Any) -> Generator[Engine, None, None]:
    """Empty bookings store in a temporary SQLite file."""
    raw_engine = create_engine(
        f"sqlite:///{tmp_path / 'bookings.db'}",
        connect_args={"check_same_thread": False},
    )
    engine = raw_engine.execution_options(schema_translate_map={SCHEMA: None})
    Base.metadata.create_all(engine)
    yield engine
    raw_engine.dispose()


@pytest.fixture
def property_id() -> UUID:
    return uuid4()


@pytest.fixture
def sync_settings() -> SyncSettings:
    """Fast settings: no backoff-heavy retries, sequential sources."""
    return SyncSettings(
        fetch_timeout=2.0,
        fetch_retries=0,
        deadline=10.0,
        max_concurrent_sources=1,
    )


@pytest.fixture
def make_draft() -> Callable[..., CanonicalBookingDraft]:
    """Factory for booking drafts with sensible defaults."""

    def _make(
        event_uid: str = "evt-1@airbnb.com",
        check_in: Optional[datetime] = None,
        check_out: Optional[datetime] = None,
        guest_name: str = "Jane Doe",
        platform: Platform = Platform.AIRBNB,
        status: BookingStatus = BookingStatus.CONFIRMED,
        **extra: Any,
    ) -> CanonicalBookingDraft:
        return CanonicalBookingDraft(
            event_uid=event_uid,
            guest_name=guest_name,
            check_in=check_in or datetime(2030, 7, 1, tzinfo=timezone.utc),
            check_out=check_out or datetime(2030, 7, 5, tzinfo=timezone.utc),
            platform=platform,
            status=status,
            **extra,
        )

    return _make


@pytest.fixture
def insert_manual_booking(db_engine: Engine) -> Callable[..., int]:
    """Insert a booking entered by hand (no event_uid) and return its id."""

    def _insert(property_id: UUID, check_in: datetime, check_out: datetime) -> int:
        now = datetime.now(timezone.utc)
        with db_engine.begin() as conn:
            result = conn.execute(
                insert(Booking).values(
                    property_id=property_id,
                    event_uid=None,
                    booking_platform="manual",
                    guest_name="Walk-in Guest",
                    check_in=check_in,
                    check_out=check_out,
                    status="confirmed",
                    total_amount=Decimal("300.00"),
                    created_at=now,
                    updated_at=now,
                )
            )
            return int(result.inserted_primary_key[0])

    return _insert


@pytest.fixture
def fetch_bookings(db_engine: Engine) -> Callable[[UUID], list[dict[str, Any]]]:
    """Read back every booking of a property, ordered by check-in."""

    def _fetch(property_id: UUID) -> list[dict[str, Any]]:
        with db_engine.connect() as conn:
            rows = conn.execute(
                select(Booking.__table__)
                .where(Booking.property_id == property_id)
                .order_by(Booking.check_in)
            ).mappings()
            return [dict(row) for row in rows]

    return _fetch


@pytest.fixture
def count_bookings(db_engine: Engine) -> Callable[[], int]:
    def _count() -> int:
        with db_engine.connect() as conn:
            return int(conn.execute(select(func.count()).select_from(Booking)).scalar_one())

    return _count


def _vevent(event: dict[str, Any]) -> list[str]:
    lines = ["BEGIN:VEVENT"]
    for key in ("start", "end"):
        value = event.get(key)
        if value is None:
            continue
        prop = "DTSTART" if key == "start" else "DTEND"
        if len(value) == 8:
            lines.append(f"{prop};VALUE=DATE:{value}")
        else:
            lines.append(f"{prop}:{value}")
    if event.get("uid") is not None:
        lines.append(f"UID:{event['uid']}")
    if event.get("summary") is not None:
        lines.append(f"SUMMARY:{event['summary']}")
    if event.get("description") is not None:
        lines.append(f"DESCRIPTION:{event['description']}")
    lines.extend(event.get("extra", []))
    lines.append("END:VEVENT")
    return lines


@pytest.fixture
def build_feed() -> Callable[..., str]:
    """
    Build an iCalendar document from event dicts.

    Each dict takes uid, start, end, summary and optionally description and
    extra (raw content lines). 8-character start/end values are DATE values.
    """

    def _build(events: list[dict[str, Any]], timezone_name: Optional[str] = None) -> str:
        lines = [
            "BEGIN:VCALENDAR",
            "VERSION:2.0",
            "PRODID:-//sync-ics tests//EN",
            "CALSCALE:GREGORIAN",
        ]
        if timezone_name:
            lines.append(f"X-WR-TIMEZONE:{timezone_name}")
        for event in events:
            lines.extend(_vevent(event))
        lines.append("END:VCALENDAR")
        return "\r\n".join(lines) + "\r\n"

    return _build
