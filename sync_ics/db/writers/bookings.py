from datetime import datetime
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import insert, update
from sqlalchemy.engine import Connection

from sync_ics.models.bookings import Booking

logger = structlog.get_logger(__name__)


def insert_booking(
    conn: Connection, property_id: UUID, values: dict[str, Any], now: datetime
) -> int:
    """
    Insert a feed-imported booking.

    Args:
        conn (Connection): Connection inside an open transaction.
        property_id (UUID): Property the booking belongs to.
        values (dict[str, Any]): Column values, including event_uid.
        now (datetime): Timestamp for created_at/updated_at.

    Returns:
        int: Primary key of the new row.
    """
    row = {**values, "property_id": property_id, "created_at": now, "updated_at": now}
    result = conn.execute(insert(Booking).values(row))
    booking_id = int(result.inserted_primary_key[0])
    logger.debug("booking_inserted", booking_id=booking_id, event_uid=values.get("event_uid"))
    return booking_id


def update_booking(
    conn: Connection, booking_id: int, changes: dict[str, Any], now: datetime
) -> None:
    """
    Apply changed columns to an existing booking and bump updated_at.

    created_at and property_id are never part of an update.

    Args:
        conn (Connection): Connection inside an open transaction.
        booking_id (int): Primary key of the row to update.
        changes (dict[str, Any]): Only the columns whose values differ.
        now (datetime): Timestamp for updated_at.
    """
    if not changes:
        return
    conn.execute(
        update(Booking).where(Booking.id == booking_id).values(**changes, updated_at=now)
    )
    logger.debug("booking_updated", booking_id=booking_id, fields=sorted(changes))
