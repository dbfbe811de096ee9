"""Catalog record models.

Two record families share the same reconciliation shape:

- ``CalendarRecord``: a club event, either authored by hand or mirrored from
  the public Google Calendar.  Provenance is exposed as a discriminated
  variant (``ManualOrigin`` / ``ExternalOrigin``) instead of a nullable id.
- ``DriveResource``: a learning resource, either catalogued by hand or
  derived from a file in the watched Google Drive folder.

Field names are snake_case in Python and camelCase on disk/over the wire, so
the JSON files stay readable by the site's page layer unchanged.  Unknown
keys on hand-authored records are kept and written back.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


@dataclass(frozen=True)
class ManualOrigin:
    """Record authored locally; reconciliation never removes it."""


@dataclass(frozen=True)
class ExternalOrigin:
    """Record mirrored from the external calendar under ``external_id``."""

    external_id: str


Provenance = ManualOrigin | ExternalOrigin


class _CatalogModel(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True, coerce_numbers_to_str=True)

    def to_json(self) -> dict[str, Any]:
        """Serialize with on-disk (camelCase) keys.

        Only keys the record was read or built with are written, so a
        hand-authored record round-trips with the same keys and values,
        explicit nulls included.
        """
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)


class CalendarRecord(_CatalogModel):
    """A single event entry in ``events.json``."""

    internal_id: str | None = Field(default=None, alias="id")
    title: str | None = None
    starts_at: str | None = Field(default=None, alias="startsAt")
    ends_at: str | None = Field(default=None, alias="endsAt")
    location: str | None = None
    description: str | None = None
    rsvp_url: str | None = Field(default=None, alias="rsvpUrl")
    external_id: str | None = Field(default=None, alias="calendarEventId")

    @property
    def provenance(self) -> Provenance:
        if self.external_id:
            return ExternalOrigin(self.external_id)
        return ManualOrigin()


class ResourceCategory(StrEnum):
    PRESENTATION = "presentation"
    DOCUMENT = "document"
    VIDEO = "video"
    TEMPLATE = "template"
    DATASET = "dataset"
    CODE = "code"
    OTHER = "other"


class ResourceSource(StrEnum):
    MANUAL = "manual"
    GOOGLE_DRIVE = "google-drive"


class DriveResource(_CatalogModel):
    """A single entry in ``resources.json``.

    Resources without a ``source`` predate Drive sync and count as manual.
    Hand-authored entries are loosely typed: a missing title, a null tag list
    or a category outside ``ResourceCategory`` is carried as written.
    """

    id: str | None = None
    title: str | None = ""
    description: str | None = ""
    category: ResourceCategory | str | None = ResourceCategory.OTHER
    tags: list[str] | None = Field(default_factory=list)
    file_type: str | None = Field(default=None, alias="fileType")
    file_size: str | None = Field(default=None, alias="fileSize")
    download_url: str | None = Field(default=None, alias="downloadUrl")
    embed_url: str | None = Field(default=None, alias="embedUrl")
    github_path: str | None = Field(default=None, alias="githubPath")
    thumbnail: str | None = None
    author: str | None = None
    course: str | None = None
    uploaded_at: str | None = Field(default="", alias="uploadedAt")
    last_modified: str | None = Field(default=None, alias="lastModified")
    downloads: int | float | str | None = None
    views: int | float | str | None = None
    source: ResourceSource | str | None = None

    @field_validator("category", mode="before")
    @classmethod
    def _known_category(cls, value: Any) -> Any:
        if isinstance(value, str):
            try:
                return ResourceCategory(value)
            except ValueError:
                return value
        return value

    @field_validator("source", mode="before")
    @classmethod
    def _known_source(cls, value: Any) -> Any:
        if isinstance(value, str):
            try:
                return ResourceSource(value)
            except ValueError:
                return value
        return value

    @property
    def tag_list(self) -> list[str]:
        return self.tags or []

    @property
    def is_drive_sourced(self) -> bool:
        return self.source == ResourceSource.GOOGLE_DRIVE


class DriveFile(BaseModel):
    """Raw file descriptor returned by the Drive folder lister."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str = Field(min_length=1)
    name: str = ""
    mime_type: str = Field(default="", alias="mimeType")
    size: int | None = None
    modified_time: str | None = Field(default=None, alias="modifiedTime")
    web_view_link: str | None = Field(default=None, alias="webViewLink")
    web_content_link: str | None = Field(default=None, alias="webContentLink")
    description: str | None = None


class EventCatalog(_CatalogModel):
    """On-disk envelope of ``events.json``."""

    last_synced_at: str | None = Field(default=None, alias="lastSyncedAt")
    events: list[CalendarRecord] = Field(default_factory=list)

    def model_post_init(self, context: Any) -> None:
        self.model_fields_set.add("events")


class ResourceCatalog(_CatalogModel):
    """On-disk envelope of ``resources.json``."""

    last_updated: str | None = Field(default=None, alias="lastUpdated")
    resources: list[DriveResource] = Field(default_factory=list)

    def model_post_init(self, context: Any) -> None:
        self.model_fields_set.add("resources")
