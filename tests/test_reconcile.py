"""Tests for the calendar and Drive merge rules."""

from __future__ import annotations

import itertools
from datetime import UTC, datetime

import pytest

from clubsite.models import (
    CalendarRecord,
    ExternalOrigin,
    ManualOrigin,
    ResourceCategory,
    ResourceSource,
)
from clubsite.reconcile import (
    DRIVE_AUTHOR,
    drive_file_to_resource,
    reconcile_calendar,
    reconcile_drive,
    sort_events,
    sort_resources,
)
from tests._helpers import drive_file, external_event, manual_event, manual_resource

pytestmark = pytest.mark.unit

NOW = datetime(2025, 1, 1, 12, 0, tzinfo=UTC)


def _ids(prefix: str = "new"):
    counter = itertools.count(1)
    return lambda: f"{prefix}-{next(counter)}"


# ---------------------------------------------------------------------------
# Calendar
# ---------------------------------------------------------------------------


class TestReconcileCalendar:
    def test_worked_example(self):
        previous = [
            external_event("ev1", "2025-01-01", internal_id="a"),
            manual_event("b", "2025-01-05"),
        ]
        fetched = [external_event("ev1", "2025-01-10"), external_event("ev2", "2025-01-02")]

        result = reconcile_calendar(previous, fetched, id_factory=_ids(), now=NOW)

        assert [e.internal_id for e in result.events] == ["new-1", "b", "a"]
        assert [e.external_id for e in result.events] == ["ev2", None, "ev1"]
        assert result.events[2].starts_at == "2025-01-10"
        assert result.stats.total == 3
        assert result.stats.manual == 1
        assert result.stats.from_calendar == 2
        assert result.stats.new == 1
        assert result.stats.updated == 1
        assert result.stats.removed == 0

    def test_idempotent_for_unchanged_upstream(self):
        previous = [manual_event("m1", "2025-02-01")]
        fetched = [
            external_event("ev1", "2025-01-10"),
            external_event("ev2", "2025-01-20"),
        ]

        first = reconcile_calendar(previous, fetched, id_factory=_ids("first"), now=NOW)
        second = reconcile_calendar(first.events, fetched, id_factory=_ids("second"), now=NOW)

        assert [e.to_json() for e in second.events] == [e.to_json() for e in first.events]
        assert second.stats.new == 0
        assert second.stats.updated == 2

    def test_manual_records_pass_through_unchanged(self):
        manual = manual_event("m1", "2025-03-01", location="Room 101", customField="kept")
        result = reconcile_calendar([manual], [], id_factory=_ids(), now=NOW)

        assert result.events == [manual]
        assert result.events[0].to_json()["customField"] == "kept"
        assert isinstance(result.events[0].provenance, ManualOrigin)

    def test_identity_continuity_takes_fetched_fields(self):
        previous = [external_event("ev1", "2025-01-10", internal_id="keep-me", title="Old")]
        fetched = [
            external_event("ev1", "2025-01-11", title="New", location="Hall", rsvpUrl="https://x")
        ]

        result = reconcile_calendar(previous, fetched, id_factory=_ids(), now=NOW)

        [event] = result.events
        assert event.internal_id == "keep-me"
        assert event.title == "New"
        assert event.starts_at == "2025-01-11"
        assert event.location == "Hall"
        assert event.provenance == ExternalOrigin("ev1")

    def test_deleted_upstream_event_is_dropped(self):
        previous = [
            external_event("gone", "2024-12-01", internal_id="x"),
            external_event("ev1", "2025-01-10", internal_id="y"),
        ]
        result = reconcile_calendar(
            previous, [external_event("ev1", "2025-01-10")], id_factory=_ids(), now=NOW
        )

        assert [e.internal_id for e in result.events] == ["y"]
        assert result.stats.removed == 1
        assert result.stats.suspect_removals == []

    def test_future_event_missing_from_fetch_is_flagged(self, caplog):
        previous = [external_event("future", "2025-06-01T18:00:00Z", internal_id="x")]

        with caplog.at_level("WARNING", logger="clubsite.reconcile"):
            result = reconcile_calendar(previous, [], id_factory=_ids(), now=NOW)

        assert result.events == []
        assert result.stats.removed == 1
        assert result.stats.suspect_removals == ["future"]
        assert "future" in caplog.text

    def test_duplicate_external_ids_collapse_to_one_record(self):
        previous = [
            external_event("ev1", "2025-01-10", internal_id="first"),
            external_event("ev1", "2025-01-10", internal_id="second"),
        ]
        fetched = [
            external_event("ev1", "2025-01-10", title="A"),
            external_event("ev1", "2025-01-10", title="B"),
        ]

        result = reconcile_calendar(previous, fetched, id_factory=_ids(), now=NOW)

        [event] = result.events
        assert event.internal_id == "first"
        assert event.title == "B"
        assert result.stats.removed == 1

    def test_fetched_record_without_external_id_is_skipped(self):
        result = reconcile_calendar(
            [], [manual_event("stray", "2025-01-10")], id_factory=_ids(), now=NOW
        )
        assert result.events == []
        assert result.stats.new == 0

    def test_output_sorted_with_invalid_dates_last(self):
        previous = [
            manual_event("bad", "not-a-date"),
            manual_event("late", "2025-03-01"),
            manual_event("early", "2025-01-01T09:00:00Z"),
        ]
        result = reconcile_calendar(previous, [], id_factory=_ids(), now=NOW)
        assert [e.internal_id for e in result.events] == ["early", "late", "bad"]

    def test_manual_event_without_start_is_kept_last(self):
        undated = CalendarRecord.model_validate({"id": "tbd", "title": "TBD"})
        previous = [undated, manual_event("early", "2025-01-01T09:00:00Z")]

        result = reconcile_calendar(previous, [], id_factory=_ids(), now=NOW)

        assert [e.internal_id for e in result.events] == ["early", "tbd"]
        assert result.events[1].to_json() == {"id": "tbd", "title": "TBD"}

    def test_prior_external_event_without_id_gets_one(self):
        prior = CalendarRecord.model_validate({"calendarEventId": "ev1", "startsAt": "2025-01-10"})

        result = reconcile_calendar(
            [prior], [external_event("ev1", "2025-01-10")], id_factory=_ids(), now=NOW
        )

        assert [e.internal_id for e in result.events] == ["new-1"]
        assert result.stats.updated == 1


class TestSortEvents:
    def test_sort_is_stable_for_equal_starts(self):
        events = [manual_event("one", "2025-01-01"), manual_event("two", "2025-01-01")]
        assert [e.internal_id for e in sort_events(events)] == ["one", "two"]

    def test_timezones_compare_as_instants(self):
        events = [
            manual_event("utc", "2025-01-01T10:00:00Z"),
            manual_event("offset", "2025-01-01T09:00:00-05:00"),
        ]
        assert [e.internal_id for e in sort_events(events)] == ["utc", "offset"]


# ---------------------------------------------------------------------------
# Drive
# ---------------------------------------------------------------------------


class TestDriveFileToResource:
    def test_derives_fields_from_file(self):
        file = drive_file(
            "abc",
            "COSC290_Intro_to_ML_2024.pptx",
            modified="2024-09-01T10:00:00.000Z",
            size=2_465_792,
            webContentLink="https://drive.google.com/uc?id=abc&export=download",
        )

        resource = drive_file_to_resource(file)

        assert resource.id == "gdrive-abc"
        assert resource.title == "Cosc290 Intro To Ml 2024"
        assert resource.category == ResourceCategory.PRESENTATION
        assert resource.tags == ["ml", "intro", "COSC290", "2024"]
        assert resource.file_type == "pptx"
        assert resource.file_size == "2.35 MB"
        assert resource.download_url == "https://drive.google.com/uc?id=abc&export=download"
        assert resource.author == DRIVE_AUTHOR
        assert resource.uploaded_at == "2024-09-01T10:00:00.000Z"
        assert resource.source == ResourceSource.GOOGLE_DRIVE
        assert resource.description == "Presentation slides on Cosc290 Intro To Ml 2024"

    def test_falls_back_to_view_link_and_now(self):
        file = drive_file("abc", "notes", modified=None)
        resource = drive_file_to_resource(file, now=NOW)

        assert resource.download_url == "https://drive.google.com/file/d/abc/view"
        assert resource.uploaded_at == "2025-01-01T12:00:00.000Z"
        assert resource.file_type == "file"

    def test_drive_description_wins_over_generated(self):
        file = drive_file("abc", "notes.pdf", description="  Week 3 reading  ")
        assert drive_file_to_resource(file).description == "Week 3 reading"

    def test_nameless_file_uses_fallback_only_for_title(self):
        resource = drive_file_to_resource(drive_file("abc", ""))

        assert resource.title == "Untitled"
        assert resource.description == "Resource file: "
        assert resource.category == ResourceCategory.OTHER
        assert resource.tags == []
        assert resource.file_type == "file"


class TestReconcileDrive:
    def test_manual_resources_survive_and_drive_is_regenerated(self):
        previous = [
            manual_resource("res-1", "2024-01-01T00:00:00.000Z"),
            manual_resource("res-2", "2024-06-01T00:00:00.000Z", source="manual"),
            manual_resource("gdrive-old", "2024-03-01T00:00:00.000Z", source="google-drive"),
            manual_resource("gdrive-keep", "2024-03-01T00:00:00.000Z", source="google-drive"),
        ]
        listed = [
            drive_file("keep", "slides.pptx", modified="2024-05-01T00:00:00.000Z"),
            drive_file("fresh", "data.csv", modified="2024-07-01T00:00:00.000Z"),
        ]

        result = reconcile_drive(previous, listed, now=NOW)

        assert [r.id for r in result.resources] == [
            "gdrive-fresh",
            "res-2",
            "gdrive-keep",
            "res-1",
        ]
        assert result.stats.drive_resources == 2
        assert result.stats.manual_resources == 2
        assert result.stats.total_resources == 4
        assert result.stats.new == 1
        assert result.stats.updated == 1
        assert result.stats.removed == 1

    def test_empty_listing_removes_all_drive_resources(self):
        previous = [
            manual_resource("res-1", "2024-01-01T00:00:00.000Z"),
            manual_resource("gdrive-a", "2024-03-01T00:00:00.000Z", source="google-drive"),
        ]
        result = reconcile_drive(previous, [], now=NOW)

        assert [r.id for r in result.resources] == ["res-1"]
        assert result.stats.removed == 1

    def test_idempotent_for_unchanged_folder(self):
        listed = [drive_file("a", "a.pdf"), drive_file("b", "b.pdf")]
        first = reconcile_drive([], listed, now=NOW)
        second = reconcile_drive(first.resources, listed, now=NOW)

        assert [r.to_json() for r in second.resources] == [r.to_json() for r in first.resources]

    def test_duplicate_file_ids_are_deduped(self):
        listed = [drive_file("a", "old.pdf"), drive_file("a", "new.pdf")]
        result = reconcile_drive([], listed, now=NOW)

        [resource] = result.resources
        assert resource.title == "New"


class TestSortResources:
    def test_newest_first_invalid_last(self):
        resources = [
            manual_resource("undated", ""),
            manual_resource("old", "2023-01-01T00:00:00.000Z"),
            manual_resource("new", "2025-01-01T00:00:00.000Z"),
        ]
        assert [r.id for r in sort_resources(resources)] == ["new", "old", "undated"]
