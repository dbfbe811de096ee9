"""Pydantic response models for the clubsite API.

Successful catalog reads follow ``{"data": T, "meta": {...}}``.  Sync
triggers answer with the flat ``{"success": ..., ...}`` bodies the site's
sync buttons and the scheduler already consume.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from clubsite.reconcile import CalendarStats, DriveStats


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ---------------------------------------------------------------------------
# Base response wrappers
# ---------------------------------------------------------------------------


class ApiMeta(BaseModel):
    """Extensible metadata bag attached to every API response."""

    model_config = {"extra": "allow"}


class ApiResponse[T](BaseModel):
    """Generic API response wrapper."""

    data: T
    meta: ApiMeta = Field(default_factory=ApiMeta)


class PaginationMeta(_CamelModel):
    """Pagination metadata for list endpoints."""

    total: int
    offset: int
    limit: int
    page: int
    total_pages: int = Field(alias="totalPages")


class PaginatedResponse[T](BaseModel):
    data: list[T]
    meta: PaginationMeta


# ---------------------------------------------------------------------------
# Sync responses
# ---------------------------------------------------------------------------


class SyncFailure(BaseModel):
    """Error body for every failed sync or read request."""

    success: bool = False
    error: str
    code: str
    details: str | None = None
    cooldown: int | None = None


class EventSyncStats(_CamelModel):
    total: int
    from_calendar: int = Field(alias="fromCalendar")
    manual: int
    new: int
    updated: int
    removed: int
    suspect_removals: list[str] = Field(default_factory=list, alias="suspectRemovals")

    @classmethod
    def from_stats(cls, stats: CalendarStats) -> EventSyncStats:
        return cls(
            total=stats.total,
            from_calendar=stats.from_calendar,
            manual=stats.manual,
            new=stats.new,
            updated=stats.updated,
            removed=stats.removed,
            suspect_removals=list(stats.suspect_removals),
        )


class EventSyncResponse(_CamelModel):
    success: bool = True
    synced: int
    message: str
    triggered_by: str = Field(alias="triggeredBy")
    last_synced_at: str = Field(alias="lastSyncedAt")
    stats: EventSyncStats


class DriveSyncStats(_CamelModel):
    drive_resources: int = Field(alias="driveResources")
    manual_resources: int = Field(alias="manualResources")
    total_resources: int = Field(alias="totalResources")
    new: int
    updated: int
    removed: int

    @classmethod
    def from_stats(cls, stats: DriveStats) -> DriveSyncStats:
        return cls(
            drive_resources=stats.drive_resources,
            manual_resources=stats.manual_resources,
            total_resources=stats.total_resources,
            new=stats.new,
            updated=stats.updated,
            removed=stats.removed,
        )


class DriveSyncResponse(_CamelModel):
    success: bool = True
    message: str
    triggered_by: str = Field(alias="triggeredBy")
    last_updated: str = Field(alias="lastUpdated")
    stats: DriveSyncStats


CatalogItem = dict[str, Any]
