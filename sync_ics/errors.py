"""
Exception taxonomy for the calendar sync pipeline.

Each pipeline stage raises its own error type so the orchestrator can decide
whether a failure ends the whole source or only the current event:

    FetchError           -> source fails (network, HTTP status, size, timeout)
    ParseError           -> source fails when raised for the whole feed;
                            recorded as a warning when yielded for one event
    NormalizationError   -> event is a placeholder and is skipped
    ReconciliationError  -> event write rejected, rest of the batch continues
"""

from __future__ import annotations


class SyncError(Exception):
    """Base class for every error raised by the sync pipeline."""


class FetchError(SyncError):
    """
    Transport-level failure while retrieving a feed.

    Attributes:
        status_code: HTTP status if a response was received, else None
        retryable: True for timeouts, 429 and 5xx responses
    """

    def __init__(self, message: str, status_code: int | None = None, retryable: bool = False):
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable


class ParseError(SyncError):
    """
    Malformed feed or malformed single event.

    Attributes:
        uid: Event UID when known (per-event errors only)
        index: Zero-based position of the event in the feed (per-event errors only)
    """

    def __init__(self, message: str, uid: str | None = None, index: int | None = None):
        super().__init__(message)
        self.uid = uid
        self.index = index

    def describe(self) -> str:
        if self.index is None:
            return str(self)
        label = self.uid or f"#{self.index}"
        return f"Skipped event {label}: {self}"


class NormalizationError(SyncError):
    """Event is a non-booking placeholder (blocked/unavailable) and must not be stored."""


class ReconciliationError(SyncError):
    """A single booking write violated a store invariant."""

    def __init__(self, message: str, event_uid: str):
        super().__init__(message)
        self.event_uid = event_uid

    def describe(self) -> str:
        return f"Failed to upsert booking {self.event_uid}: {self}"
