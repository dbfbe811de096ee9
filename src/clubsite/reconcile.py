"""Merge freshly fetched external records into a persisted catalog.

Both reconcilers are pure: they take the previous catalog contents and the
fetch results and return the merged list plus bookkeeping stats.  Reading and
writing the catalog files is the sync service's job.

Calendar merge (``reconcile_calendar``):
    manual records are kept as-is, external records still present upstream
    keep their local ``id`` but take the fetched fields, external records no
    longer present are dropped, unseen fetched records get a fresh ``id``.
    Output is sorted ascending by ``startsAt``.

Drive merge (``reconcile_drive``):
    manual resources are kept as-is, every prior Drive resource is discarded
    and regenerated from the current folder listing.  Output is sorted
    descending by ``uploadedAt``.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime

from clubsite.classify import (
    clean_file_name,
    determine_category,
    extract_tags,
    file_extension,
    format_file_size,
    generate_description,
)
from clubsite.models import (
    CalendarRecord,
    DriveFile,
    DriveResource,
    ExternalOrigin,
    ResourceSource,
)
from clubsite.timestamps import isoformat_z, parse_timestamp, utcnow

logger = logging.getLogger(__name__)

DRIVE_ID_PREFIX = "gdrive-"
DRIVE_AUTHOR = "Google Drive"


def _new_internal_id() -> str:
    return str(uuid.uuid4())


@dataclass
class CalendarStats:
    total: int = 0
    from_calendar: int = 0
    manual: int = 0
    new: int = 0
    updated: int = 0
    removed: int = 0
    # External ids dropped while their start time is still ahead; these may be
    # fetch truncation rather than upstream deletion.
    suspect_removals: list[str] = field(default_factory=list)


@dataclass
class CalendarReconciliation:
    events: list[CalendarRecord]
    stats: CalendarStats


@dataclass
class DriveStats:
    drive_resources: int = 0
    manual_resources: int = 0
    total_resources: int = 0
    new: int = 0
    updated: int = 0
    removed: int = 0


@dataclass
class DriveReconciliation:
    resources: list[DriveResource]
    stats: DriveStats


def _ascending_key(value: str | None) -> tuple[bool, float]:
    parsed = parse_timestamp(value)
    if parsed is None:
        return (True, 0.0)
    return (False, parsed.timestamp())


def _descending_key(value: str | None) -> tuple[bool, float]:
    parsed = parse_timestamp(value)
    if parsed is None:
        return (True, 0.0)
    return (False, -parsed.timestamp())


def sort_events(events: Iterable[CalendarRecord]) -> list[CalendarRecord]:
    """Stable ascending sort by ``starts_at``; unparseable dates go last."""
    return sorted(events, key=lambda event: _ascending_key(event.starts_at))


def sort_resources(resources: Iterable[DriveResource]) -> list[DriveResource]:
    """Stable descending sort by ``uploaded_at``; unparseable dates go last."""
    return sorted(resources, key=lambda resource: _descending_key(resource.uploaded_at))


def reconcile_calendar(
    previous: Sequence[CalendarRecord],
    fetched: Sequence[CalendarRecord],
    *,
    id_factory: Callable[[], str] = _new_internal_id,
    now: datetime | None = None,
) -> CalendarReconciliation:
    """Merge *fetched* calendar events into the *previous* event list.

    Parameters
    ----------
    previous:
        Events read from the persisted catalog, manual and external mixed.
    fetched:
        Upcoming events returned by the calendar lister.  Every record is
        expected to carry an external id; records without one are skipped.
    id_factory:
        Produces the internal id for externally created events seen for the
        first time.
    now:
        Reference time for flagging suspicious removals.  Defaults to the
        current UTC time.
    """
    reference = now or utcnow()

    manual: list[CalendarRecord] = []
    prior_external: list[tuple[str, CalendarRecord]] = []
    for record in previous:
        origin = record.provenance
        if isinstance(origin, ExternalOrigin):
            prior_external.append((origin.external_id, record))
        else:
            manual.append(record)

    upstream: dict[str, CalendarRecord] = {}
    for record in fetched:
        origin = record.provenance
        if not isinstance(origin, ExternalOrigin):
            logger.warning("Skipping fetched event without an external id: %s", record.title)
            continue
        upstream[origin.external_id] = record

    updated: list[CalendarRecord] = []
    seen: set[str] = set()
    stats = CalendarStats()
    for external_id, prior in prior_external:
        current = upstream.get(external_id)
        if current is None or external_id in seen:
            stats.removed += 1
            if current is None:
                starts = parse_timestamp(prior.starts_at)
                if starts is not None and starts > reference:
                    stats.suspect_removals.append(external_id)
            continue
        internal_id = prior.internal_id or id_factory()
        updated.append(current.model_copy(update={"internal_id": internal_id}))
        seen.add(external_id)

    created = [
        record.model_copy(update={"internal_id": id_factory()})
        for external_id, record in upstream.items()
        if external_id not in seen
    ]

    merged = sort_events([*manual, *updated, *created])

    stats.total = len(merged)
    stats.manual = len(manual)
    stats.updated = len(updated)
    stats.new = len(created)
    stats.from_calendar = len(updated) + len(created)
    if stats.suspect_removals:
        logger.warning(
            "Dropped %d future calendar event(s) missing from the fetch; "
            "check for truncation: %s",
            len(stats.suspect_removals),
            ", ".join(stats.suspect_removals),
        )
    return CalendarReconciliation(events=merged, stats=stats)


def drive_file_to_resource(file: DriveFile, *, now: datetime | None = None) -> DriveResource:
    """Derive a catalog resource from a raw Drive file descriptor."""
    name = file.name
    category = determine_category(file.mime_type, name)
    description = (file.description or "").strip()
    return DriveResource(
        id=f"{DRIVE_ID_PREFIX}{file.id}",
        title=clean_file_name(name or "Untitled"),
        description=description or generate_description(name, category),
        category=category,
        tags=extract_tags(name),
        file_type=file_extension(name),
        file_size=format_file_size(file.size),
        download_url=file.web_content_link or file.web_view_link or "",
        author=DRIVE_AUTHOR,
        uploaded_at=file.modified_time or isoformat_z(now or utcnow()),
        source=ResourceSource.GOOGLE_DRIVE,
    )


def reconcile_drive(
    previous: Sequence[DriveResource],
    listed: Sequence[DriveFile],
    *,
    now: datetime | None = None,
) -> DriveReconciliation:
    """Replace every Drive-sourced resource in *previous* with *listed* files.

    Manual resources pass through untouched.  A file that left the folder is
    simply absent from the result; there is no soft delete.
    """
    manual = [resource for resource in previous if not resource.is_drive_sourced]
    prior_drive_ids = {resource.id for resource in previous if resource.is_drive_sourced}

    derived: dict[str, DriveResource] = {}
    for file in listed:
        resource = drive_file_to_resource(file, now=now)
        derived[resource.id] = resource

    merged = sort_resources([*manual, *derived.values()])

    stats = DriveStats(
        drive_resources=len(derived),
        manual_resources=len(manual),
        total_resources=len(merged),
        new=sum(1 for resource_id in derived if resource_id not in prior_drive_ids),
        updated=sum(1 for resource_id in derived if resource_id in prior_drive_ids),
        removed=sum(1 for resource_id in prior_drive_ids if resource_id not in derived),
    )
    return DriveReconciliation(resources=merged, stats=stats)
