"""
Integration tests for booking queries and writes.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable
from uuid import UUID

import pytest
from sqlalchemy.engine import Engine

from sync_ics.db.readers.bookings import (
    find_overlapping_booking,
    get_booking_by_event_uid,
    lock_property,
)
from sync_ics.db.writers.bookings import insert_booking, update_booking


def utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def booking_values(event_uid: str, check_in: datetime, check_out: datetime, status: str = "confirmed") -> dict:
    return {
        "event_uid": event_uid,
        "guest_name": "Guest",
        "check_in": check_in,
        "check_out": check_out,
        "booking_platform": "airbnb",
        "status": status,
    }


@pytest.mark.integration
def test_insert_and_read_back_by_event_uid(db_engine: Engine, property_id: UUID) -> None:
    now = utc(2025, 7, 1)
    with db_engine.begin() as conn:
        lock_property(conn, property_id)
        booking_id = insert_booking(
            conn, property_id, booking_values("u1", utc(2030, 1, 1), utc(2030, 1, 3)), now
        )

    with db_engine.connect() as conn:
        row = get_booking_by_event_uid(conn, "u1")
        missing = get_booking_by_event_uid(conn, "nope")

    assert row is not None
    assert row["id"] == booking_id
    assert row["property_id"] == property_id
    assert missing is None


@pytest.mark.integration
def test_update_booking_changes_only_given_columns(db_engine: Engine, property_id: UUID) -> None:
    with db_engine.begin() as conn:
        booking_id = insert_booking(
            conn, property_id, booking_values("u1", utc(2030, 1, 1), utc(2030, 1, 3)), utc(2025, 1, 1)
        )
        update_booking(conn, booking_id, {"guest_name": "Renamed"}, utc(2025, 2, 1))

    with db_engine.connect() as conn:
        row = get_booking_by_event_uid(conn, "u1")

    assert row is not None
    assert row["guest_name"] == "Renamed"
    assert row["created_at"].replace(tzinfo=None) == datetime(2025, 1, 1)
    assert row["updated_at"].replace(tzinfo=None) == datetime(2025, 2, 1)


@pytest.mark.integration
def test_find_overlapping_booking_ignores_cancelled_and_excluded(
    db_engine: Engine, property_id: UUID, insert_manual_booking: Callable[..., int]
) -> None:
    with db_engine.begin() as conn:
        active_id = insert_booking(
            conn, property_id, booking_values("a", utc(2030, 1, 1), utc(2030, 1, 5)), utc(2025, 1, 1)
        )
        insert_booking(
            conn,
            property_id,
            booking_values("c", utc(2030, 2, 1), utc(2030, 2, 5), status="cancelled"),
            utc(2025, 1, 1),
        )
    manual_id = insert_manual_booking(property_id, utc(2030, 3, 1), utc(2030, 3, 4))

    with db_engine.connect() as conn:
        hit = find_overlapping_booking(conn, property_id, utc(2030, 1, 4), utc(2030, 1, 6))
        excluded = find_overlapping_booking(
            conn, property_id, utc(2030, 1, 4), utc(2030, 1, 6), exclude_id=active_id
        )
        cancelled = find_overlapping_booking(conn, property_id, utc(2030, 2, 2), utc(2030, 2, 3))
        touching = find_overlapping_booking(conn, property_id, utc(2030, 1, 5), utc(2030, 1, 7))
        manual = find_overlapping_booking(conn, property_id, utc(2030, 3, 3), utc(2030, 3, 5))

    assert hit is not None and hit["event_uid"] == "a"
    assert excluded is None
    assert cancelled is None
    assert touching is None
    assert manual is not None and manual["id"] == manual_id and manual["event_uid"] is None
