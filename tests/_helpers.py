"""Record builders and fake fetch collaborators shared across test modules."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from clubsite.errors import SyncError
from clubsite.models import CalendarRecord, DriveFile, DriveResource

SERVICE_ACCOUNT_INFO: dict[str, Any] = {
    "type": "service_account",
    "client_email": "site-sync@club-site.iam.gserviceaccount.com",
    "token_uri": "https://oauth2.googleapis.com/token",
}
SERVICE_ACCOUNT_JSON = json.dumps(SERVICE_ACCOUNT_INFO)
CALENDAR_ID = "club@group.calendar.google.com"
CRON_SECRET = "cron-secret"


class FakeClock:
    """Monotonic clock stand-in that only moves when told to."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@dataclass
class FakeCalendarFetcher:
    events: list[CalendarRecord] = field(default_factory=list)
    error: SyncError | None = None
    calls: list[dict[str, Any]] = field(default_factory=list)

    async def list_upcoming_events(
        self, *, calendar_id: str, api_key: str, limit: int = 50
    ) -> list[CalendarRecord]:
        self.calls.append({"calendar_id": calendar_id, "api_key": api_key, "limit": limit})
        if self.error is not None:
            raise self.error
        return list(self.events)


@dataclass
class FakeDriveFetcher:
    files: list[DriveFile] = field(default_factory=list)
    error: SyncError | None = None
    calls: list[dict[str, Any]] = field(default_factory=list)

    async def list_folder(
        self, *, folder_id: str, service_account_info: dict[str, Any]
    ) -> list[DriveFile]:
        self.calls.append({"folder_id": folder_id, "service_account_info": service_account_info})
        if self.error is not None:
            raise self.error
        return list(self.files)


def external_event(
    external_id: str,
    starts_at: str,
    *,
    internal_id: str = "unassigned",
    title: str | None = None,
    **extra: Any,
) -> CalendarRecord:
    return CalendarRecord.model_validate(
        {
            "id": internal_id,
            "title": title or f"Event {external_id}",
            "startsAt": starts_at,
            "calendarEventId": external_id,
            **extra,
        }
    )


def manual_event(internal_id: str, starts_at: str, **extra: Any) -> CalendarRecord:
    return CalendarRecord.model_validate(
        {"id": internal_id, "title": f"Manual {internal_id}", "startsAt": starts_at, **extra}
    )


def drive_file(
    file_id: str,
    name: str,
    *,
    modified: str | None = "2025-01-01T00:00:00.000Z",
    mime_type: str = "",
    size: int | None = None,
    **extra: Any,
) -> DriveFile:
    return DriveFile.model_validate(
        {
            "id": file_id,
            "name": name,
            "mimeType": mime_type,
            "size": size,
            "modifiedTime": modified,
            "webViewLink": f"https://drive.google.com/file/d/{file_id}/view",
            **extra,
        }
    )


def manual_resource(resource_id: str, uploaded_at: str, **extra: Any) -> DriveResource:
    return DriveResource.model_validate(
        {
            "id": resource_id,
            "title": f"Resource {resource_id}",
            "category": "document",
            "tags": [],
            "uploadedAt": uploaded_at,
            **extra,
        }
    )


def write_json(path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")


def read_json(path) -> Any:
    return json.loads(path.read_text(encoding="utf-8"))
