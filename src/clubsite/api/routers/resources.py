"""Resource catalog endpoints: Drive sync trigger, filtered listing, tag index."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query, Request

from clubsite.api.deps import caller_key, get_drive_sync_service, get_store, is_trusted_caller
from clubsite.api.models import (
    ApiMeta,
    ApiResponse,
    CatalogItem,
    DriveSyncResponse,
    DriveSyncStats,
    PaginatedResponse,
    PaginationMeta,
)
from clubsite.browse import (
    DEFAULT_RESOURCES_PER_PAGE,
    ResourceSort,
    all_tags,
    filter_resources,
    paginate,
)
from clubsite.models import ResourceCategory
from clubsite.storage import JsonCatalogStore
from clubsite.sync import DriveSyncService

router = APIRouter(prefix="/api/resources", tags=["resources"])
logger = logging.getLogger(__name__)


@router.post("/google-drive-sync", response_model=DriveSyncResponse)
async def sync_google_drive(
    request: Request,
    service: DriveSyncService = Depends(get_drive_sync_service),
    trusted: bool = Depends(is_trusted_caller),
) -> DriveSyncResponse:
    """Regenerate the Drive-sourced part of the resources catalog."""
    outcome = await service.sync(caller=caller_key(request), trusted=trusted)
    return DriveSyncResponse(
        message=f"Synced {outcome.listed} resources from Google Drive",
        triggered_by=outcome.trigger,
        last_updated=outcome.synced_at,
        stats=DriveSyncStats.from_stats(outcome.stats),
    )


@router.get("", response_model=PaginatedResponse[CatalogItem])
async def list_resources(
    category: ResourceCategory | None = Query(default=None),
    tag: list[str] | None = Query(default=None, description="Match any of these tags"),
    q: str | None = Query(default=None, description="Search title, description and tags"),
    sort: ResourceSort = Query(default=ResourceSort.NEWEST),
    page: int = Query(default=1, ge=1),
    per_page: int = Query(default=DEFAULT_RESOURCES_PER_PAGE, ge=1, le=100),
    store: JsonCatalogStore = Depends(get_store),
) -> PaginatedResponse[CatalogItem]:
    catalog = await store.load_resources()
    selected = filter_resources(
        catalog.resources, category=category, tags=tag or (), query=q, sort=sort
    )
    window = paginate(selected, page, per_page)
    return PaginatedResponse[CatalogItem](
        data=[resource.to_json() for resource in window.items],
        meta=PaginationMeta(
            total=window.total,
            offset=window.offset,
            limit=window.per_page,
            page=window.page,
            total_pages=window.total_pages,
        ),
    )


@router.get("/tags", response_model=ApiResponse[list[str]])
async def list_resource_tags(
    store: JsonCatalogStore = Depends(get_store),
) -> ApiResponse[list[str]]:
    catalog = await store.load_resources()
    tags = all_tags(catalog.resources)
    return ApiResponse[list[str]](data=tags, meta=ApiMeta(lastUpdated=catalog.last_updated))
