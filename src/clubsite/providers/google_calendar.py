"""Google Calendar fetch collaborator.

Lists upcoming events from a public Google Calendar with an API key and maps
them onto ``CalendarRecord`` values carrying the Google event id as their
external id.  Only events starting after "now" are returned, so an event
that has passed simply stops appearing in the fetch.
"""

from __future__ import annotations

import logging
import re
import uuid
from collections.abc import Callable
from datetime import datetime
from typing import Any, Protocol
from urllib.parse import quote

import httpx

from clubsite.errors import UpstreamError
from clubsite.models import CalendarRecord
from clubsite.providers.google import (
    DEFAULT_TIMEOUT_SECONDS,
    decode_json_object,
    raise_for_google_status,
)
from clubsite.timestamps import isoformat_z, utcnow

logger = logging.getLogger(__name__)

GOOGLE_CALENDAR_API_BASE_URL = "https://www.googleapis.com/calendar/v3"
DEFAULT_MAX_RESULTS = 50
UNTITLED_EVENT = "Untitled Event"

_RSVP_URL_RE = re.compile(r"RSVP:\s*(https?://\S+)", re.IGNORECASE)
_ANY_URL_RE = re.compile(r"(https?://\S+)")


class CalendarFetcher(Protocol):
    """Anything that can list upcoming calendar events."""

    async def list_upcoming_events(
        self,
        *,
        calendar_id: str,
        api_key: str,
        limit: int = DEFAULT_MAX_RESULTS,
    ) -> list[CalendarRecord]: ...


def extract_rsvp_url(description: str | None) -> str | None:
    """Find the RSVP link in an event description.

    Prefers an explicit ``RSVP: <url>`` marker and falls back to the first URL.
    """
    if not description:
        return None
    match = _RSVP_URL_RE.search(description) or _ANY_URL_RE.search(description)
    if match:
        return match.group(1).strip()
    return None


def is_all_day_event(payload: dict[str, Any]) -> bool:
    start = payload.get("start") or {}
    return bool(start.get("date")) and not start.get("dateTime")


def google_event_to_record(
    payload: dict[str, Any],
    *,
    id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
) -> CalendarRecord | None:
    """Map a Google Calendar event resource to a ``CalendarRecord``.

    Returns ``None`` for payloads without an event id.
    """
    event_id = payload.get("id")
    if not isinstance(event_id, str) or not event_id.strip():
        return None

    start = payload.get("start") or {}
    end = payload.get("end") or {}
    description = payload.get("description") or None

    fields: dict[str, Any] = {
        "id": id_factory(),
        "title": payload.get("summary") or UNTITLED_EVENT,
        "startsAt": start.get("dateTime") or start.get("date") or "",
        "endsAt": end.get("dateTime") or end.get("date"),
        "location": payload.get("location") or None,
        "description": description,
        "rsvpUrl": extract_rsvp_url(description),
        "calendarEventId": event_id,
    }
    return CalendarRecord.model_validate(
        {key: value for key, value in fields.items() if value is not None}
    )


class GoogleCalendarLister:
    """Read-only Google Calendar API v3 client keyed by API key."""

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._owns_http_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(timeout=DEFAULT_TIMEOUT_SECONDS)
        self._clock = clock

    async def aclose(self) -> None:
        if self._owns_http_client:
            await self._http_client.aclose()

    async def list_upcoming_events(
        self,
        *,
        calendar_id: str,
        api_key: str,
        limit: int = DEFAULT_MAX_RESULTS,
    ) -> list[CalendarRecord]:
        """Return up to *limit* events starting from now, ordered by start time.

        Raises:
            NotFoundError: If the calendar does not exist or is not public
            UpstreamError: On any other API or transport failure
        """
        if limit < 1:
            raise ValueError("limit must be at least 1")

        url = f"{GOOGLE_CALENDAR_API_BASE_URL}/calendars/{quote(calendar_id, safe='')}/events"
        params: dict[str, Any] = {
            "key": api_key,
            "timeMin": isoformat_z(self._clock()),
            "maxResults": min(limit, 2500),
            "singleEvents": "true",
            "orderBy": "startTime",
        }
        try:
            response = await self._http_client.get(
                url, params=params, headers={"Accept": "application/json"}
            )
        except httpx.HTTPError as exc:
            raise UpstreamError(f"Google Calendar request failed: {type(exc).__name__}") from exc

        raise_for_google_status(response, service="Google Calendar", target=calendar_id)
        payload = decode_json_object(response, service="Google Calendar")

        items = payload.get("items")
        if not isinstance(items, list):
            raise UpstreamError(
                "Google Calendar events response missing items array",
                status_code=response.status_code,
            )

        records: list[CalendarRecord] = []
        for item in items:
            if not isinstance(item, dict):
                continue
            record = google_event_to_record(item)
            if record is None:
                logger.warning("Skipping Google Calendar item without an id")
                continue
            records.append(record)

        logger.info("Fetched %d upcoming event(s) from Google Calendar", len(records))
        return records
