"""Service wiring and FastAPI dependency functions.

``build_services()`` assembles the catalog store, fetch collaborators,
cooldown gates and sync services from a ``SiteConfig``.  The app factory
stores the result on ``app.state.services``; route handlers reach it through
the dependency functions below, which tests may override.
"""

from __future__ import annotations

import logging
import secrets
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from fastapi import Depends, Request

from clubsite.config import SiteConfig
from clubsite.cooldown import CooldownGate
from clubsite.providers.google_calendar import CalendarFetcher, GoogleCalendarLister
from clubsite.providers.google_drive import DriveFetcher, GoogleDriveLister
from clubsite.storage import JsonCatalogStore
from clubsite.sync import DriveSyncService, EventSyncService

logger = logging.getLogger(__name__)


@dataclass
class SiteServices:
    """Everything a request handler or CLI command needs, built once per process."""

    config: SiteConfig
    store: JsonCatalogStore
    events: EventSyncService
    drive: DriveSyncService
    closers: list[Callable[[], Awaitable[None]]] = field(default_factory=list)

    async def aclose(self) -> None:
        for close in self.closers:
            try:
                await close()
            except Exception:
                logger.warning("Failed to close service resource", exc_info=True)
        self.closers.clear()


def build_services(
    config: SiteConfig,
    *,
    calendar_fetcher: CalendarFetcher | None = None,
    drive_fetcher: DriveFetcher | None = None,
    events_gate: CooldownGate | None = None,
    drive_gate: CooldownGate | None = None,
) -> SiteServices:
    """Assemble the sync services; injected collaborators replace the Google clients."""
    closers: list[Callable[[], Awaitable[None]]] = []
    if calendar_fetcher is None:
        calendar_lister = GoogleCalendarLister()
        closers.append(calendar_lister.aclose)
        calendar_fetcher = calendar_lister
    if drive_fetcher is None:
        drive_lister = GoogleDriveLister()
        closers.append(drive_lister.aclose)
        drive_fetcher = drive_lister

    window = config.sync.cooldown_seconds
    store = JsonCatalogStore(config.data_dir)
    return SiteServices(
        config=config,
        store=store,
        events=EventSyncService(
            store=store,
            fetcher=calendar_fetcher,
            google=config.google,
            sync=config.sync,
            gate=events_gate or CooldownGate(window),
        ),
        drive=DriveSyncService(
            store=store,
            fetcher=drive_fetcher,
            google=config.google,
            gate=drive_gate or CooldownGate(window),
        ),
        closers=closers,
    )


def get_services(request: Request) -> SiteServices:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise RuntimeError("SiteServices not initialized")
    return services


def get_store(services: SiteServices = Depends(get_services)) -> JsonCatalogStore:
    return services.store


def get_event_sync_service(services: SiteServices = Depends(get_services)) -> EventSyncService:
    return services.events


def get_drive_sync_service(services: SiteServices = Depends(get_services)) -> DriveSyncService:
    return services.drive


def is_trusted_caller(request: Request, services: SiteServices = Depends(get_services)) -> bool:
    """True when the request presents ``Authorization: Bearer <cron secret>``."""
    secret = services.config.sync.cron_secret
    if not secret:
        return False
    header = request.headers.get("authorization", "")
    return secrets.compare_digest(header.encode(), f"Bearer {secret}".encode())


def caller_key(request: Request) -> str:
    """Identify the caller for per-caller cooldowns."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip() or "unknown"
    if request.client is not None and request.client.host:
        return request.client.host
    return "unknown"
