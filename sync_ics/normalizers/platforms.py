"""
Per-platform normalization of raw calendar events into booking drafts.

Each booking platform formats its exported events differently. Platforms are
a closed set; normalize_event() dispatches to one strategy function per
platform, with the generic strategy as the default. Strategies raise
NormalizationError for placeholder events (blocked/unavailable time) so they
are skipped rather than stored.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Callable, Optional

import structlog

from sync_ics.errors import NormalizationError
from sync_ics.ical.parser import RawCalendarEvent

logger = structlog.get_logger(__name__)


class Platform(str, Enum):
    AIRBNB = "airbnb"
    VRBO = "vrbo"
    BOOKING = "booking"
    OTHER = "other"

    @classmethod
    def parse(cls, value: str | None) -> "Platform":
        """Map a free-form platform label to a Platform, defaulting to OTHER."""
        label = (value or "").strip().lower()
        if label in ("booking.com", "bookingcom"):
            label = "booking"
        try:
            return cls(label)
        except ValueError:
            return cls.OTHER


class BookingStatus(str, Enum):
    CONFIRMED = "confirmed"
    PENDING = "pending"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class CanonicalBookingDraft:
    """Platform-independent booking computed from one feed event."""

    event_uid: str
    guest_name: str
    check_in: datetime
    check_out: datetime
    platform: Platform
    status: BookingStatus
    notes: Optional[str] = None
    contact_email: Optional[str] = None
    total_amount: Optional[Decimal] = None
    reservation_url: Optional[str] = None
    guest_phone_last4: Optional[str] = None
    listing_name: Optional[str] = None


# Summaries that mark unavailable time rather than a guest stay
_PLACEHOLDER = re.compile(r"\b(not available|unavailable|blocked|closed)\b", re.IGNORECASE)

_AIRBNB_RESERVED_FOR = re.compile(r"^\s*reserved\s+for\s+(.+?)\s*$", re.IGNORECASE)
_VRBO_SUMMARY = re.compile(r"^\s*(.+?)\s+-\s+vrbo\b", re.IGNORECASE)
_BOOKING_SUMMARY = re.compile(r"^\s*(.+?)\s+-\s+booking\.com\b", re.IGNORECASE)

_DESCRIPTION_NAME = re.compile(r"^\s*(?:guest|name|guest name)\s*[:\-]\s*(.+?)\s*$", re.IGNORECASE)
_EMAIL = re.compile(r"[\w.+-]+@[\w-]+(?:\.[\w-]+)+")
_AMOUNT = re.compile(
    r"\b(?:total(?:\s+(?:amount|price|payout))?|amount|payout)\s*[:\-]\s*[^\d\n]{0,4}([\d.,]+)",
    re.IGNORECASE,
)
_AIRBNB_URL = re.compile(r"https?://(?:www\.)?airbnb\.[a-z.]+/\S+", re.IGNORECASE)
_PHONE_LINE = re.compile(r"phone|tel|contact", re.IGNORECASE)
_LAST4 = re.compile(r"(\d{4})\s*$")
_LISTING = re.compile(r"^\s*listing\s*[:\-]\s*(.+?)\s*$", re.IGNORECASE)


def _lines(text: Optional[str]) -> list[str]:
    return [line.strip() for line in (text or "").splitlines() if line.strip()]


def _clean_notes(description: Optional[str]) -> Optional[str]:
    notes = (description or "").strip()
    return notes or None


def _name_from_description(description: Optional[str]) -> Optional[str]:
    for line in _lines(description):
        match = _DESCRIPTION_NAME.match(line)
        if match and match.group(1):
            return match.group(1)
    return None


def _fallback_name(event: RawCalendarEvent) -> str:
    """Labelled name in the description, then the whole summary, then the UID."""
    return _name_from_description(event.description) or event.summary.strip() or event.uid


def _contact_email(description: Optional[str]) -> Optional[str]:
    match = _EMAIL.search(description or "")
    return match.group(0) if match else None


def _total_amount(description: Optional[str]) -> Optional[Decimal]:
    match = _AMOUNT.search(description or "")
    if not match:
        return None
    raw = match.group(1).rstrip(".,")
    # "1,234.50" and "1.234,50" both occur in exports
    if "," in raw and "." in raw:
        if raw.rfind(".") > raw.rfind(","):
            raw = raw.replace(",", "")
        else:
            raw = raw.replace(".", "").replace(",", ".")
    elif "," in raw:
        head, _, tail = raw.rpartition(",")
        raw = f"{head.replace(',', '')}.{tail}" if len(tail) == 2 else raw.replace(",", "")
    try:
        return Decimal(raw).quantize(Decimal("0.01"))
    except InvalidOperation:
        return None


def _reject_placeholder(event: RawCalendarEvent, platform: Platform) -> None:
    if _PLACEHOLDER.search(event.summary):
        raise NormalizationError(f"{platform.value} placeholder event: {event.summary.strip()!r}")


def _draft(
    event: RawCalendarEvent,
    platform: Platform,
    guest_name: str,
    status: BookingStatus,
    **extra: Optional[str],
) -> CanonicalBookingDraft:
    if event.status == "CANCELLED":
        status = BookingStatus.CANCELLED
    return CanonicalBookingDraft(
        event_uid=event.uid,
        guest_name=guest_name,
        check_in=event.start,
        check_out=event.end,
        platform=platform,
        status=status,
        notes=_clean_notes(event.description),
        contact_email=_contact_email(event.description),
        total_amount=_total_amount(event.description),
        **extra,
    )


def _airbnb_details(event: RawCalendarEvent) -> dict[str, Optional[str]]:
    reservation_url = None
    phone_last4 = None
    listing_name = None

    for line in _lines(event.description):
        url_match = _AIRBNB_URL.search(line)
        if url_match:
            reservation_url = url_match.group(0)
        if phone_last4 is None and _PHONE_LINE.search(line):
            last4 = _LAST4.search(line)
            if last4:
                phone_last4 = last4.group(1)
        listing_match = _LISTING.match(line)
        if listing_name is None and listing_match:
            listing_name = listing_match.group(1)

    if reservation_url is None and event.url:
        reservation_url = event.url
    location = (event.location or "").strip()
    if listing_name is None and location and location.lower() != "unknown":
        listing_name = location

    return {
        "reservation_url": reservation_url,
        "guest_phone_last4": phone_last4,
        "listing_name": listing_name,
    }


def normalize_airbnb(event: RawCalendarEvent) -> CanonicalBookingDraft:
    """
    Airbnb: "Reserved for <name>" carries the guest; "Not available" and
    "Blocked" mark host-blocked nights.
    """
    _reject_placeholder(event, Platform.AIRBNB)

    match = _AIRBNB_RESERVED_FOR.match(event.summary)
    guest_name = match.group(1) if match else _fallback_name(event)
    text = f"{event.summary}\n{event.description or ''}".lower()
    status = BookingStatus.CANCELLED if "cancelled" in text else BookingStatus.CONFIRMED
    return _draft(event, Platform.AIRBNB, guest_name, status, **_airbnb_details(event))


def _vrbo_status(description: Optional[str]) -> BookingStatus:
    text = (description or "").lower()
    if "cancelled" in text:
        return BookingStatus.CANCELLED
    if "pending" in text:
        return BookingStatus.PENDING
    return BookingStatus.CONFIRMED


def normalize_vrbo(event: RawCalendarEvent) -> CanonicalBookingDraft:
    """VRBO: "<name> - VRBO Booking"; status comes from the description."""
    _reject_placeholder(event, Platform.VRBO)

    match = _VRBO_SUMMARY.match(event.summary)
    guest_name = match.group(1) if match else _fallback_name(event)
    return _draft(event, Platform.VRBO, guest_name, _vrbo_status(event.description))


def normalize_booking_com(event: RawCalendarEvent) -> CanonicalBookingDraft:
    """Booking.com: "<name> - Booking.com Reservation"; cancellation shows in the summary."""
    _reject_placeholder(event, Platform.BOOKING)

    match = _BOOKING_SUMMARY.match(event.summary)
    guest_name = match.group(1) if match else _fallback_name(event)
    status = (
        BookingStatus.CANCELLED
        if "cancelled" in event.summary.lower()
        else BookingStatus.CONFIRMED
    )
    return _draft(event, Platform.BOOKING, guest_name, status)


def normalize_generic(event: RawCalendarEvent) -> CanonicalBookingDraft:
    """Unknown platforms: the summary is taken verbatim as the guest name."""
    guest_name = event.summary if event.summary.strip() else event.uid
    return _draft(event, Platform.OTHER, guest_name, BookingStatus.CONFIRMED)


_NORMALIZERS: dict[Platform, Callable[[RawCalendarEvent], CanonicalBookingDraft]] = {
    Platform.AIRBNB: normalize_airbnb,
    Platform.VRBO: normalize_vrbo,
    Platform.BOOKING: normalize_booking_com,
}


def normalize_event(event: RawCalendarEvent, platform: Platform | str) -> CanonicalBookingDraft:
    """
    Map a raw feed event to a canonical booking draft.

    Args:
        event (RawCalendarEvent): Parsed event.
        platform (Platform | str): Platform of the feed the event came from.

    Returns:
        CanonicalBookingDraft: Draft ready for reconciliation.

    Raises:
        NormalizationError: If the event is a placeholder or has no usable UID.
    """
    if not event.uid.strip():
        raise NormalizationError("event has no UID")

    if not isinstance(platform, Platform):
        platform = Platform.parse(platform)

    normalizer = _NORMALIZERS.get(platform, normalize_generic)
    return normalizer(event)
