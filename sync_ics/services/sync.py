"""Property-level calendar sync orchestrator."""

from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from concurrent.futures import TimeoutError as FuturesTimeout
from enum import Enum
from typing import Any, Callable, Optional, Sequence
from uuid import UUID

import structlog
from pydantic import ValidationError
from sqlalchemy.engine import Engine

from sync_ics.config import SyncSettings
from sync_ics.errors import FetchError, NormalizationError, ParseError
from sync_ics.ical.parser import RawCalendarEvent, parse_calendar
from sync_ics.metrics import events_skipped, source_syncs, sync_duration, sync_runs
from sync_ics.network.fetcher import fetch_feed, redact_url
from sync_ics.normalizers.platforms import CanonicalBookingDraft, Platform, normalize_event
from sync_ics.schemas.sync import CalendarSource, SourceSyncResult, SyncReport
from sync_ics.services.reconciler import (
    ReconcileOutcome,
    find_vanished_event_uids,
    reconcile_drafts,
)

logger = structlog.get_logger(__name__)

Fetcher = Callable[..., str]

RETRY_BACKOFF_SECONDS = 1.0


class SourceState(str, Enum):
    FETCHING = "fetching"
    PARSING = "parsing"
    NORMALIZING = "normalizing"
    RECONCILING = "reconciling"
    DONE = "done"


class SyncCancelled(Exception):
    """Raised inside a source pipeline once the run deadline has passed."""


class CalendarSyncOrchestrator:
    """
    Runs fetch -> parse -> normalize -> reconcile for every source of a property.

    Sources run concurrently on a bounded thread pool under one deadline for the
    whole run. Each source writes its result into its own slot, so a failing or
    slow source never affects the others, and sync() always returns a report.

    Example:
        >>> orchestrator = CalendarSyncOrchestrator(engine, SyncSettings.from_env())
        >>> report = orchestrator.sync(property_id)
        >>> report.total_processed
        12
    """

    def __init__(
        self,
        engine: Engine,
        settings: SyncSettings,
        fetcher: Fetcher = fetch_feed,
    ):
        self.engine = engine
        self.settings = settings
        self.fetcher = fetcher

    def resolve_sources(
        self,
        sources: Optional[Sequence[CalendarSource]] = None,
        platform: Optional[Platform] = None,
    ) -> list[CalendarSource]:
        """
        Use the request's sources, else the configured default feeds.

        Args:
            sources: Sources supplied with the request, if any.
            platform: Optional platform filter applied after resolution.

        Returns:
            list[CalendarSource]: Sources to sync, in order.
        """
        if sources:
            resolved = list(sources)
        else:
            resolved = []
            for default in self.settings.configured_sources():
                try:
                    resolved.append(
                        CalendarSource(
                            name=default.name, platform=default.platform, url=default.url
                        )
                    )
                except ValidationError:
                    logger.warning(
                        "default_source_invalid",
                        source=default.name,
                        url=redact_url(default.url or ""),
                    )

        if platform is not None:
            resolved = [source for source in resolved if source.platform == platform]
        return resolved

    def sync(
        self,
        property_id: UUID | str,
        sources: Optional[Sequence[CalendarSource]] = None,
        platform: Optional[Platform] = None,
    ) -> SyncReport:
        """
        Sync every source of a property and aggregate one report.

        Sources still running when the deadline passes are told to stop and
        reported as failed with a timeout error; finished sources keep their
        results.

        Args:
            property_id (UUID | str): Property whose bookings are synced.
            sources (Optional[Sequence[CalendarSource]]): Explicit sources; the
                configured defaults are used when empty.
            platform (Optional[Platform]): Only sync sources of this platform.

        Returns:
            SyncReport: Per-source results plus totals and wall-clock time.
        """
        started = time.monotonic()
        property_id = UUID(str(property_id))
        resolved = self.resolve_sources(sources, platform)

        logger.info(
            "sync_started",
            property_id=str(property_id),
            sources=len(resolved),
            platform=platform.value if platform else "all",
        )

        slots: list[Optional[SourceSyncResult]] = [None] * len(resolved)
        cancelled = threading.Event()
        deadline_at = started + self.settings.deadline

        if resolved:
            workers = max(1, min(self.settings.max_concurrent_sources, len(resolved)))
            pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="ics-sync")
            futures = {
                pool.submit(
                    self._run_source, property_id, source, cancelled, deadline_at
                ): index
                for index, source in enumerate(resolved)
            }
            try:
                for future in as_completed(futures, timeout=self.settings.deadline):
                    index = futures[future]
                    try:
                        slots[index] = future.result()
                    except Exception as e:
                        logger.exception(
                            "source_crashed", source=resolved[index].name, error=str(e)
                        )
                        slots[index] = self._failed(resolved[index], f"Unexpected error: {e}")
            except FuturesTimeout:
                cancelled.set()
                logger.warning(
                    "sync_deadline_exceeded",
                    property_id=str(property_id),
                    deadline=self.settings.deadline,
                    unfinished=sum(1 for slot in slots if slot is None),
                )
            finally:
                pool.shutdown(wait=False, cancel_futures=True)

        for index, slot in enumerate(slots):
            if slot is None:
                slots[index] = self._failed(
                    resolved[index],
                    f"Timed out: sync deadline of {self.settings.deadline:g}s "
                    "exceeded before this source finished",
                )

        results = [slot for slot in slots if slot is not None]
        elapsed = time.monotonic() - started
        report = SyncReport(
            property_id=property_id,
            platform=platform.value if platform else "all",
            success=all(result.success for result in results),
            total_processed=sum(result.bookings_processed for result in results),
            total_errors=sum(len(result.errors) for result in results),
            processing_time=int(elapsed * 1000),
            sources=results,
        )

        for result in results:
            source_syncs.labels(platform=result.platform.value, state=result.state).inc()
        sync_duration.observe(elapsed)
        sync_runs.labels(outcome=_run_outcome(results)).inc()

        logger.info(
            "sync_completed",
            property_id=str(property_id),
            total_processed=report.total_processed,
            total_errors=report.total_errors,
            processing_time_ms=report.processing_time,
        )
        return report

    def _failed(self, source: CalendarSource, message: str) -> SourceSyncResult:
        return SourceSyncResult(
            name=source.name, platform=source.platform, success=False, errors=[message]
        )

    def _run_source(
        self,
        property_id: UUID,
        source: CalendarSource,
        cancelled: threading.Event,
        deadline_at: float,
    ) -> SourceSyncResult:
        """Run one source's pipeline; every failure ends up in the returned result."""
        result = SourceSyncResult(name=source.name, platform=source.platform)
        log = logger.bind(
            property_id=str(property_id), source=source.name, platform=source.platform.value
        )
        state = SourceState.FETCHING

        def enter(next_state: SourceState) -> SourceState:
            if cancelled.is_set():
                raise SyncCancelled(f"cancelled before {next_state.value}")
            log.debug("source_state", state=next_state.value)
            return next_state

        try:
            state = enter(SourceState.FETCHING)
            text = self._fetch(source, cancelled, deadline_at, log)

            state = enter(SourceState.PARSING)
            events: list[RawCalendarEvent] = []
            for item in parse_calendar(text, default_tz=self.settings.default_timezone):
                if isinstance(item, ParseError):
                    result.errors.append(item.describe())
                    events_skipped.labels(
                        platform=source.platform.value, reason="malformed"
                    ).inc()
                else:
                    events.append(item)

            state = enter(SourceState.NORMALIZING)
            drafts: list[CanonicalBookingDraft] = []
            for event in events:
                try:
                    drafts.append(normalize_event(event, source.platform))
                except NormalizationError as err:
                    result.skipped += 1
                    events_skipped.labels(
                        platform=source.platform.value, reason="placeholder"
                    ).inc()
                    log.debug("event_skipped", event_uid=event.uid, reason=str(err))

            state = enter(SourceState.RECONCILING)
            for reconciled in reconcile_drafts(
                self.engine,
                property_id,
                drafts,
                dry_run=self.settings.dry_run,
                should_stop=cancelled.is_set,
            ):
                if reconciled.error is not None:
                    result.errors.append(reconciled.error.describe())
                    continue
                result.bookings_processed += 1
                if reconciled.outcome == ReconcileOutcome.INSERTED:
                    result.inserted += 1
                elif reconciled.outcome == ReconcileOutcome.UPDATED:
                    result.updated += 1
                else:
                    result.unchanged += 1

            if cancelled.is_set():
                raise SyncCancelled("cancelled while reconciling")

            if self.settings.vanished_booking_policy == "report":
                result.vanished = find_vanished_event_uids(
                    self.engine,
                    property_id,
                    source.platform.value,
                    seen_uids=[event.uid for event in events],
                )
                if result.vanished:
                    log.warning("bookings_missing_from_feed", event_uids=result.vanished)

        except FetchError as e:
            result.success = False
            result.errors.append(str(e))
            log.warning("source_fetch_failed", error=str(e))
        except ParseError as e:
            result.success = False
            result.errors.append(f"Parse error: {e}")
            log.warning("source_parse_failed", error=str(e))
        except SyncCancelled:
            result.success = False
            result.errors.append(
                f"Timed out: sync deadline exceeded while {state.value} this source"
            )
            log.warning("source_cancelled", state=state.value)
        except Exception as e:
            result.success = False
            result.errors.append(f"Unexpected error while {state.value}: {e}")
            log.exception("source_failed", state=state.value, error=str(e))

        log.info(
            "source_done",
            state=SourceState.DONE.value,
            outcome=result.state,
            processed=result.bookings_processed,
            inserted=result.inserted,
            updated=result.updated,
            skipped=result.skipped,
            errors=len(result.errors),
        )
        return result

    def _fetch(
        self,
        source: CalendarSource,
        cancelled: threading.Event,
        deadline_at: float,
        log: Any,
    ) -> str:
        """Fetch with the configured retries, never past the run deadline."""
        attempts = 1 + max(0, self.settings.fetch_retries)

        for attempt in range(1, attempts + 1):
            remaining = deadline_at - time.monotonic()
            if remaining <= 0:
                raise SyncCancelled("deadline reached before fetch")
            try:
                return self.fetcher(
                    source.url,
                    timeout=min(self.settings.fetch_timeout, remaining),
                    max_bytes=self.settings.max_feed_bytes,
                    platform=source.platform.value,
                )
            except FetchError as e:
                backoff = RETRY_BACKOFF_SECONDS * attempt
                out_of_time = time.monotonic() + backoff >= deadline_at
                if not e.retryable or attempt == attempts or out_of_time:
                    raise
                log.warning("feed_fetch_retry", attempt=attempt, error=str(e))
                if cancelled.wait(backoff):
                    raise SyncCancelled("cancelled during fetch backoff")

        raise FetchError("no fetch attempts were made")


def _run_outcome(results: list[SourceSyncResult]) -> str:
    if all(result.success for result in results):
        return "success"
    if any(result.success for result in results):
        return "partial"
    return "failed"
