"""Event catalog endpoints: calendar sync trigger and upcoming-event listing."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query

from clubsite.api.deps import get_event_sync_service, get_store, is_trusted_caller
from clubsite.api.models import ApiMeta, ApiResponse, CatalogItem, EventSyncResponse, EventSyncStats
from clubsite.browse import DEFAULT_UPCOMING_LIMIT, upcoming_events
from clubsite.reconcile import sort_events
from clubsite.storage import JsonCatalogStore
from clubsite.sync import EventSyncService
from clubsite.timestamps import utcnow

router = APIRouter(prefix="/api/events", tags=["events"])
logger = logging.getLogger(__name__)


@router.post("/sync", response_model=EventSyncResponse)
async def sync_events(
    service: EventSyncService = Depends(get_event_sync_service),
    trusted: bool = Depends(is_trusted_caller),
) -> EventSyncResponse:
    """Mirror upcoming Google Calendar events into the events catalog.

    Called by the scheduler (with the cron bearer token, no cooldown) or by
    the site's manual sync button (one run per cooldown window).
    """
    outcome = await service.sync(trusted=trusted)
    return EventSyncResponse(
        synced=outcome.fetched,
        message=f"Successfully synced {outcome.fetched} events from Google Calendar",
        triggered_by=outcome.trigger,
        last_synced_at=outcome.synced_at,
        stats=EventSyncStats.from_stats(outcome.stats),
    )


@router.get("", response_model=ApiResponse[list[CatalogItem]])
async def list_events(
    upcoming: bool = Query(default=True, description="Only events starting after now"),
    limit: int | None = Query(default=DEFAULT_UPCOMING_LIMIT, ge=1, le=500),
    store: JsonCatalogStore = Depends(get_store),
) -> ApiResponse[list[CatalogItem]]:
    catalog = await store.load_events()
    if upcoming:
        events = upcoming_events(catalog.events, now=utcnow(), limit=limit)
    else:
        events = sort_events(catalog.events)
        if limit is not None:
            events = events[:limit]
    return ApiResponse[list[CatalogItem]](
        data=[event.to_json() for event in events],
        meta=ApiMeta(lastSyncedAt=catalog.last_synced_at, total=len(catalog.events)),
    )
