"""Read-side helpers behind the catalog listing endpoints."""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from clubsite.models import CalendarRecord, DriveResource, ResourceCategory
from clubsite.reconcile import sort_events, sort_resources
from clubsite.timestamps import parse_timestamp

DEFAULT_UPCOMING_LIMIT = 6
DEFAULT_RESOURCES_PER_PAGE = 12


class ResourceSort(StrEnum):
    NEWEST = "newest"
    OLDEST = "oldest"


@dataclass
class Page[T]:
    items: list[T]
    page: int
    per_page: int
    total: int
    total_pages: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.per_page


def upcoming_events(
    events: Iterable[CalendarRecord], *, now: datetime, limit: int | None = DEFAULT_UPCOMING_LIMIT
) -> list[CalendarRecord]:
    """Events starting strictly after *now*, soonest first."""
    upcoming = []
    for event in events:
        starts = parse_timestamp(event.starts_at)
        if starts is not None and starts > now:
            upcoming.append(event)
    ordered = sort_events(upcoming)
    return ordered if limit is None else ordered[:limit]


def filter_resources(
    resources: Iterable[DriveResource],
    *,
    category: ResourceCategory | None = None,
    tags: Sequence[str] = (),
    query: str | None = None,
    sort: ResourceSort = ResourceSort.NEWEST,
) -> list[DriveResource]:
    """Filter by category, any-of *tags* and a free-text *query*, then sort by upload date."""
    selected = list(resources)
    if category is not None:
        selected = [r for r in selected if r.category == category]
    if tags:
        wanted = set(tags)
        selected = [r for r in selected if wanted.intersection(r.tag_list)]
    if query:
        needle = query.lower()
        selected = [
            r
            for r in selected
            if needle in (r.title or "").lower()
            or needle in (r.description or "").lower()
            or any(needle in tag.lower() for tag in r.tag_list)
        ]

    ordered = sort_resources(selected)
    if sort == ResourceSort.OLDEST:
        # Keep unparseable dates last in both directions.
        dated = [r for r in ordered if parse_timestamp(r.uploaded_at) is not None]
        undated = [r for r in ordered if parse_timestamp(r.uploaded_at) is None]
        ordered = [*reversed(dated), *undated]
    return ordered


def all_tags(resources: Iterable[DriveResource]) -> list[str]:
    return sorted({tag for resource in resources for tag in resource.tag_list})


def paginate[T](
    items: Sequence[T], page: int, per_page: int = DEFAULT_RESOURCES_PER_PAGE
) -> Page[T]:
    """Slice *items* for *page*, clamping the page number into range."""
    if per_page < 1:
        raise ValueError("per_page must be at least 1")
    total = len(items)
    total_pages = math.ceil(total / per_page)
    current = max(1, min(page, total_pages))
    start = (current - 1) * per_page
    return Page(
        items=list(items[start : start + per_page]),
        page=current,
        per_page=per_page,
        total=total,
        total_pages=total_pages,
    )
