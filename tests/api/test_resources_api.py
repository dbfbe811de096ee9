"""Tests for the resource endpoints."""

from __future__ import annotations

import pytest

from clubsite.errors import AuthRejectedError, ConfigError, NotFoundError
from tests._helpers import CRON_SECRET, drive_file, manual_resource, read_json, write_json

pytestmark = pytest.mark.unit


def _seed(services, resources):
    write_json(
        services.store.resources_path,
        {"lastUpdated": "2025-01-01T00:00:00.000Z", "resources": [r.to_json() for r in resources]},
    )


# ---------------------------------------------------------------------------
# POST /api/resources/google-drive-sync
# ---------------------------------------------------------------------------


class TestDriveSyncEndpoint:
    async def test_success_body(self, client, drive_fetcher, services):
        _seed(services, [manual_resource("res-1", "2024-01-01T00:00:00.000Z")])
        drive_fetcher.files = [
            drive_file("f1", "COSC290_Intro_to_ML_2024.pptx", size=1024),
            drive_file("f2", "iris.csv"),
        ]

        response = await client.post("/api/resources/google-drive-sync")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Synced 2 resources from Google Drive"
        assert body["triggeredBy"] == "manual"
        assert body["stats"] == {
            "driveResources": 2,
            "manualResources": 1,
            "totalResources": 3,
            "new": 2,
            "updated": 0,
            "removed": 0,
        }
        saved = read_json(services.store.resources_path)
        assert saved["lastUpdated"] == body["lastUpdated"]
        derived = next(r for r in saved["resources"] if r["id"] == "gdrive-f1")
        assert derived["category"] == "presentation"
        assert derived["source"] == "google-drive"
        assert derived["fileSize"] == "1 KB"

    async def test_cooldown_keyed_by_forwarded_address(self, client):
        first = {"X-Forwarded-For": "198.51.100.7, 10.0.0.1"}
        assert (
            await client.post("/api/resources/google-drive-sync", headers=first)
        ).status_code == 200

        again = await client.post("/api/resources/google-drive-sync", headers=first)
        other = await client.post(
            "/api/resources/google-drive-sync", headers={"X-Forwarded-For": "203.0.113.9"}
        )

        assert again.status_code == 429
        assert again.json()["cooldown"] == 60
        assert other.status_code == 200

    async def test_cron_secret_waives_cooldown(self, client):
        headers = {"Authorization": f"Bearer {CRON_SECRET}"}
        await client.post("/api/resources/google-drive-sync", headers=headers)

        response = await client.post("/api/resources/google-drive-sync", headers=headers)

        assert response.status_code == 200
        assert response.json()["triggeredBy"] == "scheduler"

    @pytest.mark.parametrize(
        ("error", "status", "code"),
        [
            (ConfigError("Invalid service account credentials format"), 500, "CONFIG_ERROR"),
            (
                AuthRejectedError("Service account authentication failed.", status_code=401),
                401,
                "AUTH_REJECTED",
            ),
            (NotFoundError("Google Drive folder not found: folder-1"), 404, "NOT_FOUND"),
        ],
    )
    async def test_failures(self, client, drive_fetcher, services, error, status, code):
        _seed(services, [manual_resource("res-1", "2024-01-01T00:00:00.000Z")])
        before = services.store.resources_path.read_text(encoding="utf-8")
        drive_fetcher.error = error

        response = await client.post("/api/resources/google-drive-sync")

        assert response.status_code == status
        body = response.json()
        assert body["success"] is False
        assert body["code"] == code
        assert body["error"] == error.message
        assert services.store.resources_path.read_text(encoding="utf-8") == before

    async def test_missing_drive_configuration(self, client, services):
        services.config.google.service_account_key = None

        response = await client.post("/api/resources/google-drive-sync")

        assert response.status_code == 500
        assert "GOOGLE_SERVICE_ACCOUNT_KEY" in response.json()["error"]


# ---------------------------------------------------------------------------
# GET /api/resources
# ---------------------------------------------------------------------------


class TestListResources:
    @pytest.fixture(autouse=True)
    def _catalog(self, services):
        _seed(
            services,
            [
                manual_resource(
                    f"r{n:02d}",
                    f"2024-01-{n:02d}T00:00:00.000Z",
                    category="dataset" if n % 3 == 0 else "document",
                    tags=["ml"] if n % 2 == 0 else ["stats"],
                )
                for n in range(1, 26)
            ],
        )

    async def test_default_page(self, client):
        response = await client.get("/api/resources")

        assert response.status_code == 200
        body = response.json()
        assert len(body["data"]) == 12
        assert body["data"][0]["id"] == "r25"
        assert body["meta"] == {
            "total": 25,
            "offset": 0,
            "limit": 12,
            "page": 1,
            "totalPages": 3,
        }

    async def test_filters_and_oldest_sort(self, client):
        response = await client.get(
            "/api/resources",
            params={"category": "dataset", "tag": "ml", "sort": "oldest", "per_page": 2},
        )

        body = response.json()
        assert [r["id"] for r in body["data"]] == ["r06", "r12"]
        assert body["meta"]["total"] == 4
        assert body["meta"]["totalPages"] == 2

    async def test_repeated_tag_matches_any(self, client):
        response = await client.get(
            "/api/resources", params=[("tag", "ml"), ("tag", "stats"), ("per_page", 100)]
        )
        assert response.json()["meta"]["total"] == 25

    async def test_search_query(self, client):
        response = await client.get("/api/resources", params={"q": "resource r07"})
        assert [r["id"] for r in response.json()["data"]] == ["r07"]

    async def test_page_past_end_is_clamped(self, client):
        response = await client.get("/api/resources", params={"page": 99})
        body = response.json()
        assert body["meta"]["page"] == 3
        assert body["meta"]["offset"] == 24
        assert [r["id"] for r in body["data"]] == ["r01"]

    @pytest.mark.parametrize(
        "params",
        [{"category": "podcast"}, {"sort": "random"}, {"page": 0}, {"per_page": 0}],
    )
    async def test_invalid_query_is_422(self, client, params):
        response = await client.get("/api/resources", params=params)
        assert response.status_code == 422

    async def test_tags(self, client):
        response = await client.get("/api/resources/tags")
        body = response.json()
        assert body["data"] == ["ml", "stats"]
        assert body["meta"] == {"lastUpdated": "2025-01-01T00:00:00.000Z"}
