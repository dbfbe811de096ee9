"""Sync services: cooldown → credentials → read → fetch → merge → write.

Each service reads the persisted catalog before it calls the external
fetcher and writes only after the merge succeeded, so any failure leaves
the previous catalog untouched.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from clubsite.config import GoogleConfig, SyncConfig
from clubsite.cooldown import CooldownGate
from clubsite.core.logging import set_trigger_context
from clubsite.core.telemetry import get_tracer
from clubsite.errors import SyncError
from clubsite.models import EventCatalog, ResourceCatalog
from clubsite.providers.google_calendar import CalendarFetcher
from clubsite.providers.google_drive import DriveFetcher
from clubsite.reconcile import (
    CalendarStats,
    DriveStats,
    reconcile_calendar,
    reconcile_drive,
)
from clubsite.storage import JsonCatalogStore
from clubsite.timestamps import isoformat_z, utcnow

logger = logging.getLogger(__name__)

# Calendar sync is gated globally, not per caller.
EVENTS_COOLDOWN_KEY = "events"
TRIGGER_SCHEDULER = "scheduler"
TRIGGER_MANUAL = "manual"


@dataclass
class EventSyncOutcome:
    fetched: int
    stats: CalendarStats
    synced_at: str
    trigger: str


@dataclass
class DriveSyncOutcome:
    listed: int
    stats: DriveStats
    synced_at: str
    trigger: str


def _trigger(trusted: bool) -> str:
    return TRIGGER_SCHEDULER if trusted else TRIGGER_MANUAL


class EventSyncService:
    """Mirror upcoming Google Calendar events into ``events.json``."""

    def __init__(
        self,
        *,
        store: JsonCatalogStore,
        fetcher: CalendarFetcher,
        google: GoogleConfig,
        sync: SyncConfig,
        gate: CooldownGate,
        clock: Callable[[], datetime] = utcnow,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ) -> None:
        self._store = store
        self._fetcher = fetcher
        self._google = google
        self._sync = sync
        self._gate = gate
        self._clock = clock
        self._id_factory = id_factory

    async def sync(self, *, trusted: bool = False) -> EventSyncOutcome:
        """Run one calendar sync.

        The cooldown is recorded only after a successful write, so a failed
        attempt may be retried immediately.

        Raises:
            RateLimited: If called again within the cooldown (untrusted callers)
            ConfigError: If calendar id or API key is missing
            NotFoundError, UpstreamError: If the calendar fetch fails
            CatalogError: If ``events.json`` exists but is unreadable
        """
        trigger = _trigger(trusted)
        set_trigger_context(trigger)
        logger.info("Events sync triggered by %s", trigger)

        with get_tracer().start_as_current_span("clubsite.sync.events") as span:
            span.set_attribute("sync.trigger", trigger)
            started = self._gate.check(EVENTS_COOLDOWN_KEY, trusted=trusted)
            calendar_id, api_key = self._google.require_calendar()

            catalog = await self._store.load_events()
            try:
                fetched = await self._fetcher.list_upcoming_events(
                    calendar_id=calendar_id,
                    api_key=api_key,
                    limit=self._sync.calendar_max_results,
                )
            except SyncError:
                logger.exception("Calendar fetch failed; events catalog left unchanged")
                raise

            now = self._clock()
            result = reconcile_calendar(
                catalog.events, fetched, id_factory=self._id_factory, now=now
            )
            synced_at = isoformat_z(now)
            await self._store.save_events(
                EventCatalog(last_synced_at=synced_at, events=result.events)
            )
            self._gate.record(EVENTS_COOLDOWN_KEY, started)

            span.set_attribute("sync.fetched", len(fetched))
            span.set_attribute("sync.total", result.stats.total)

        logger.info(
            "Events sync complete: fetched=%d total=%d new=%d updated=%d removed=%d manual=%d",
            len(fetched),
            result.stats.total,
            result.stats.new,
            result.stats.updated,
            result.stats.removed,
            result.stats.manual,
        )
        return EventSyncOutcome(
            fetched=len(fetched), stats=result.stats, synced_at=synced_at, trigger=trigger
        )


class DriveSyncService:
    """Mirror the watched Drive folder into ``resources.json``."""

    def __init__(
        self,
        *,
        store: JsonCatalogStore,
        fetcher: DriveFetcher,
        google: GoogleConfig,
        gate: CooldownGate,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._fetcher = fetcher
        self._google = google
        self._gate = gate
        self._clock = clock

    async def sync(self, *, caller: str = "unknown", trusted: bool = False) -> DriveSyncOutcome:
        """Run one Drive sync for *caller*.

        The cooldown for *caller* starts as soon as the attempt passes the
        gate, whether or not the sync then succeeds.

        Raises:
            RateLimited: If *caller* synced within the cooldown (untrusted callers)
            ConfigError: If folder id or service account key is missing/malformed
            AuthRejectedError, NotFoundError, UpstreamError: If the listing fails
            CatalogError: If ``resources.json`` exists but is unreadable
        """
        trigger = _trigger(trusted)
        set_trigger_context(trigger)
        logger.info("Drive sync triggered by %s (caller=%s)", trigger, caller)

        with get_tracer().start_as_current_span("clubsite.sync.drive") as span:
            span.set_attribute("sync.trigger", trigger)
            started = self._gate.check(caller, trusted=trusted)
            self._gate.record(caller, started)
            folder_id, service_account_info = self._google.require_drive()

            catalog = await self._store.load_resources()
            try:
                listed = await self._fetcher.list_folder(
                    folder_id=folder_id, service_account_info=service_account_info
                )
            except SyncError:
                logger.exception("Drive listing failed; resources catalog left unchanged")
                raise

            now = self._clock()
            result = reconcile_drive(catalog.resources, listed, now=now)
            synced_at = isoformat_z(now)
            await self._store.save_resources(
                ResourceCatalog(last_updated=synced_at, resources=result.resources)
            )

            span.set_attribute("sync.listed", len(listed))
            span.set_attribute("sync.total", result.stats.total_resources)

        logger.info(
            "Drive sync complete: listed=%d total=%d new=%d removed=%d manual=%d",
            len(listed),
            result.stats.total_resources,
            result.stats.new,
            result.stats.removed,
            result.stats.manual_resources,
        )
        return DriveSyncOutcome(
            listed=len(listed), stats=result.stats, synced_at=synced_at, trigger=trigger
        )
