"""SQLAlchemy model for property bookings."""

from sqlalchemy import Column, DateTime, Index, Integer, Numeric, String, Text, Uuid
from sqlalchemy.sql import func

from sync_ics.config import SCHEMA
from sync_ics.models.base import Base


class Booking(Base):
    """
    ORM model for a property booking.

    Feed-imported bookings carry the calendar event UID in event_uid, which is
    unique across the table and is the reconciliation key. Bookings entered by
    hand have no event_uid and booking_platform="manual"; calendar sync never
    reads them for matching and never writes them.

    Status is one of confirmed, pending, cancelled (plus checked_in and
    checked_out, which only the host-facing application sets). Cancelled rows
    are ignored by the overlap check.
    """

    __tablename__ = "bookings"
    __table_args__ = (
        Index("ix_bookings_property_dates", "property_id", "check_in", "check_out"),
        {"schema": SCHEMA},
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    property_id = Column(Uuid, nullable=False, index=True)
    event_uid = Column(String(500), nullable=True, unique=True)
    booking_platform = Column(String(50), nullable=False, server_default="manual")
    guest_name = Column(String(255), nullable=False)
    contact_email = Column(String(255), nullable=True)
    check_in = Column(DateTime(timezone=True), nullable=False)
    check_out = Column(DateTime(timezone=True), nullable=False)
    status = Column(String(20), nullable=False, server_default="confirmed")
    notes = Column(Text, nullable=True)
    total_amount = Column(Numeric(10, 2), nullable=True)
    reservation_url = Column(Text, nullable=True)
    guest_phone_last4 = Column(String(4), nullable=True)
    listing_name = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
