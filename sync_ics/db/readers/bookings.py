from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import or_, select, text
from sqlalchemy.engine import Connection

from sync_ics.models.bookings import Booking


def lock_property(conn: Connection, property_id: UUID) -> None:
    """
    Serialize booking writes for one property until the transaction ends.

    On PostgreSQL this takes a transaction-scoped advisory lock keyed on the
    property, making the overlap check and the following write atomic with
    respect to concurrent syncs of the same property. Other properties hash
    to other keys and do not contend. SQLite serializes writers on its own.

    Args:
        conn (Connection): Connection inside an open transaction.
        property_id (UUID): Property whose bookings are about to change.
    """
    if conn.dialect.name != "postgresql":
        return
    conn.execute(
        text("SELECT pg_advisory_xact_lock(hashtextextended(:key, 0))"),
        {"key": f"bookings:{property_id}"},
    )


def get_booking_by_event_uid(conn: Connection, event_uid: str) -> Optional[dict[str, Any]]:
    """
    Fetch the booking imported from the given calendar event, if any.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        event_uid (str): Calendar event UID.

    Returns:
        Optional[dict[str, Any]]: Booking row as a dict, or None if not found.
    """
    row = conn.execute(
        select(Booking.__table__).where(Booking.event_uid == event_uid)
    ).mappings().fetchone()
    return dict(row) if row else None


def find_overlapping_booking(
    conn: Connection,
    property_id: UUID,
    check_in: datetime,
    check_out: datetime,
    exclude_id: Optional[int] = None,
) -> Optional[dict[str, Any]]:
    """
    Find a non-cancelled booking of the property overlapping [check_in, check_out).

    Manual bookings count. Stays that only touch (one checks out the day the
    other checks in) do not overlap.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        property_id (UUID): Property to search.
        check_in (datetime): Interval start (UTC).
        check_out (datetime): Interval end (UTC).
        exclude_id (Optional[int]): Booking id to ignore, normally the row being updated.

    Returns:
        Optional[dict[str, Any]]: The first conflicting booking, or None.
    """
    stmt = (
        select(Booking.id, Booking.event_uid, Booking.check_in, Booking.check_out)
        .where(
            Booking.property_id == property_id,
            or_(Booking.status.is_(None), Booking.status != "cancelled"),
            Booking.check_in < check_out,
            Booking.check_out > check_in,
        )
        .order_by(Booking.check_in)
        .limit(1)
    )
    if exclude_id is not None:
        stmt = stmt.where(Booking.id != exclude_id)

    row = conn.execute(stmt).mappings().fetchone()
    return dict(row) if row else None


def list_feed_event_uids(
    conn: Connection,
    property_id: UUID,
    platform: str,
    check_out_after: datetime,
) -> list[str]:
    """
    List event UIDs of feed-imported bookings for one property and platform.

    Only stays that end after check_out_after are returned; past stays drop
    out of platform feeds as a matter of course.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        property_id (UUID): Property to search.
        platform (str): Booking platform the rows were imported from.
        check_out_after (datetime): Lower bound on check_out (UTC).

    Returns:
        list[str]: Event UIDs ordered by check-in.
    """
    result = conn.execute(
        select(Booking.event_uid)
        .where(
            Booking.property_id == property_id,
            Booking.booking_platform == platform,
            Booking.event_uid.is_not(None),
            Booking.check_out > check_out_after,
        )
        .order_by(Booking.check_in)
    )
    return list(result.scalars().all())
