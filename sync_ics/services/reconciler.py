"""
Booking reconciler: makes stored feed bookings match the latest drafts.

Upserts are keyed by event_uid and run one draft per transaction, so a draft
that violates an invariant is rejected on its own while the rest of the batch
is still applied. The reconciler never deletes or cancels a booking because
its event is missing from a feed; find_vanished_event_uids() only reports
such rows.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Iterable, Optional
from uuid import UUID

import structlog
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import DataError, IntegrityError

from sync_ics.db.readers.bookings import (
    find_overlapping_booking,
    get_booking_by_event_uid,
    list_feed_event_uids,
    lock_property,
)
from sync_ics.db.writers.bookings import insert_booking, update_booking
from sync_ics.errors import ReconciliationError
from sync_ics.metrics import bookings_written
from sync_ics.normalizers.platforms import BookingStatus, CanonicalBookingDraft
from sync_ics.utils.datetime import as_utc, utc_now

logger = structlog.get_logger(__name__)

# Columns a feed is allowed to change on an existing booking
MUTABLE_COLUMNS = (
    "guest_name",
    "contact_email",
    "check_in",
    "check_out",
    "booking_platform",
    "status",
    "notes",
    "total_amount",
    "reservation_url",
    "guest_phone_last4",
    "listing_name",
)

# Column widths of rental.bookings
GUEST_NAME_MAX = 255
CONTACT_EMAIL_MAX = 255
EVENT_UID_MAX = 500
TOTAL_AMOUNT_MAX = Decimal("99999999.99")


class ReconcileOutcome(str, Enum):
    INSERTED = "inserted"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


@dataclass(frozen=True)
class ReconcileResult:
    """Result of reconciling one draft: an outcome, or the error that rejected it."""

    event_uid: str
    outcome: Optional[ReconcileOutcome] = None
    error: Optional[ReconciliationError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def draft_values(draft: CanonicalBookingDraft) -> dict[str, Any]:
    """
    Column values for a draft, with dates in UTC.

    Free-text values are fitted to their columns: long guest names are cut,
    and an email or amount that cannot be stored is dropped.
    """
    contact_email = draft.contact_email
    if contact_email is not None and len(contact_email) > CONTACT_EMAIL_MAX:
        contact_email = None
    total_amount = draft.total_amount
    if total_amount is not None and abs(total_amount) > TOTAL_AMOUNT_MAX:
        total_amount = None

    return {
        "event_uid": draft.event_uid,
        "guest_name": draft.guest_name[:GUEST_NAME_MAX],
        "contact_email": contact_email,
        "check_in": as_utc(draft.check_in),
        "check_out": as_utc(draft.check_out),
        "booking_platform": draft.platform.value,
        "status": draft.status.value,
        "notes": draft.notes,
        "total_amount": total_amount,
        "reservation_url": draft.reservation_url,
        "guest_phone_last4": draft.guest_phone_last4,
        "listing_name": draft.listing_name,
    }


def _same(current: Any, new: Any) -> bool:
    if current is None or new is None:
        return current is None and new is None
    if isinstance(new, datetime):
        return as_utc(current) == new
    if isinstance(new, Decimal):
        return Decimal(str(current)) == new
    return bool(current == new)


def diff_booking(existing: dict[str, Any], values: dict[str, Any]) -> dict[str, Any]:
    """
    Return the mutable columns whose new value differs from the stored one.

    Stored datetimes may come back naive (SQLite) and are compared in UTC.
    """
    return {
        column: values[column]
        for column in MUTABLE_COLUMNS
        if not _same(existing.get(column), values[column])
    }


def _check_overlap(
    conn: Connection,
    property_id: UUID,
    values: dict[str, Any],
    exclude_id: Optional[int] = None,
) -> None:
    conflict = find_overlapping_booking(
        conn, property_id, values["check_in"], values["check_out"], exclude_id=exclude_id
    )
    if conflict is None:
        return
    other = conflict["event_uid"] or f"manual booking #{conflict['id']}"
    raise ReconciliationError(
        f"{values['check_in']:%Y-%m-%d}..{values['check_out']:%Y-%m-%d} overlaps {other}",
        event_uid=values["event_uid"],
    )


def _needs_overlap_check(existing: dict[str, Any], changes: dict[str, Any]) -> bool:
    if changes.get("status", existing.get("status")) == BookingStatus.CANCELLED.value:
        return False
    if "check_in" in changes or "check_out" in changes:
        return True
    return existing.get("status") == BookingStatus.CANCELLED.value and "status" in changes


def reconcile_draft(
    conn: Connection, property_id: UUID, draft: CanonicalBookingDraft
) -> ReconcileOutcome:
    """
    Upsert one draft inside the caller's transaction.

    Args:
        conn (Connection): Connection inside an open transaction.
        property_id (UUID): Property the feed belongs to.
        draft (CanonicalBookingDraft): Normalized booking.

    Returns:
        ReconcileOutcome: Whether the row was inserted, updated or left unchanged.

    Raises:
        ReconciliationError: If the event UID belongs to another property or the
            stay would overlap another active booking of this property.
    """
    if len(draft.event_uid) > EVENT_UID_MAX:
        raise ReconciliationError(
            f"event UID is longer than {EVENT_UID_MAX} characters", event_uid=draft.event_uid[:80]
        )

    lock_property(conn, property_id)
    values = draft_values(draft)
    existing = get_booking_by_event_uid(conn, draft.event_uid)

    if existing is None:
        if draft.status != BookingStatus.CANCELLED:
            _check_overlap(conn, property_id, values)
        insert_booking(conn, property_id, values, utc_now())
        return ReconcileOutcome.INSERTED

    if existing["property_id"] != property_id:
        raise ReconciliationError(
            "event UID is already attached to another property", event_uid=draft.event_uid
        )

    changes = diff_booking(existing, values)
    if not changes:
        return ReconcileOutcome.UNCHANGED

    if _needs_overlap_check(existing, changes):
        _check_overlap(conn, property_id, values, exclude_id=existing["id"])

    update_booking(conn, existing["id"], changes, utc_now())
    return ReconcileOutcome.UPDATED


def _apply(
    engine: Engine, property_id: UUID, draft: CanonicalBookingDraft, dry_run: bool
) -> ReconcileOutcome:
    if not dry_run:
        with engine.begin() as conn:
            return reconcile_draft(conn, property_id, draft)

    with engine.connect() as conn:
        trans = conn.begin()
        try:
            return reconcile_draft(conn, property_id, draft)
        finally:
            trans.rollback()


def reconcile_drafts(
    engine: Engine,
    property_id: UUID | str,
    drafts: Iterable[CanonicalBookingDraft],
    dry_run: bool = False,
    should_stop: Optional[Callable[[], bool]] = None,
) -> list[ReconcileResult]:
    """
    Reconcile a batch of drafts for one property, in order.

    Each draft is applied in its own transaction. A ReconciliationError, a
    constraint violation or a value the store refuses rejects that draft only;
    other database errors (connection loss and the like) propagate.

    Args:
        engine (Engine): SQLAlchemy engine.
        property_id (UUID | str): Property the drafts belong to.
        drafts (Iterable[CanonicalBookingDraft]): Drafts in feed order.
        dry_run (bool): If True, compute outcomes and roll every write back.
        should_stop (Optional[Callable[[], bool]]): Polled before each draft;
            returning True abandons the rest of the batch.

    Returns:
        list[ReconcileResult]: One result per draft processed.
    """
    property_id = UUID(str(property_id))
    results: list[ReconcileResult] = []

    for draft in drafts:
        if should_stop is not None and should_stop():
            logger.warning("reconcile_interrupted", property_id=str(property_id))
            break

        platform = draft.platform.value
        try:
            outcome = _apply(engine, property_id, draft, dry_run)
        except ReconciliationError as err:
            logger.warning(
                "booking_rejected",
                property_id=str(property_id),
                event_uid=draft.event_uid,
                reason=str(err),
            )
            bookings_written.labels(platform=platform, outcome="rejected").inc()
            results.append(ReconcileResult(event_uid=draft.event_uid, error=err))
            continue
        except (IntegrityError, DataError) as err:
            logger.warning(
                "booking_constraint_violation",
                property_id=str(property_id),
                event_uid=draft.event_uid,
                error=str(err.orig),
            )
            message = (
                "conflicts with an existing booking"
                if isinstance(err, IntegrityError)
                else "value rejected by the bookings store"
            )
            bookings_written.labels(platform=platform, outcome="rejected").inc()
            results.append(
                ReconcileResult(
                    event_uid=draft.event_uid,
                    error=ReconciliationError(message, event_uid=draft.event_uid),
                )
            )
            continue

        bookings_written.labels(platform=platform, outcome=outcome.value).inc()
        results.append(ReconcileResult(event_uid=draft.event_uid, outcome=outcome))

    if dry_run:
        logger.info("[DRY RUN] Reconciled %d drafts without writing", len(results))

    return results


def find_vanished_event_uids(
    engine: Engine,
    property_id: UUID | str,
    platform: str,
    seen_uids: Iterable[str],
    now: Optional[datetime] = None,
) -> list[str]:
    """
    Report stored feed bookings whose event no longer appears in the feed.

    Only current and future stays are considered. Nothing is modified: a
    shrinking feed window is not proof that a reservation was cancelled.

    Args:
        engine (Engine): SQLAlchemy engine.
        property_id (UUID | str): Property to inspect.
        platform (str): Platform whose feed was just read.
        seen_uids (Iterable[str]): Every UID present in that feed, including placeholders.
        now (Optional[datetime]): Reference time (default: current UTC time).

    Returns:
        list[str]: Event UIDs present in the store but absent from the feed.
    """
    seen = set(seen_uids)
    with engine.connect() as conn:
        stored = list_feed_event_uids(
            conn, UUID(str(property_id)), platform, as_utc(now or utc_now())
        )
    return [uid for uid in stored if uid not in seen]
