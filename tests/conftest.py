"""Shared fixtures for the clubsite test suite."""

from __future__ import annotations

from collections.abc import AsyncIterator
from pathlib import Path

import httpx
import pytest

from clubsite.api.app import create_app
from clubsite.api.deps import SiteServices, build_services
from clubsite.config import GoogleConfig, SiteConfig, SyncConfig
from clubsite.cooldown import CooldownGate
from clubsite.core.logging import _trigger_context
from tests._helpers import (
    CALENDAR_ID,
    CRON_SECRET,
    SERVICE_ACCOUNT_JSON,
    FakeCalendarFetcher,
    FakeClock,
    FakeDriveFetcher,
)


@pytest.fixture(autouse=True)
def _reset_trigger_context():
    token = _trigger_context.set(None)
    yield
    _trigger_context.reset(token)


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    return tmp_path / "data"


@pytest.fixture
def site_config(data_dir: Path) -> SiteConfig:
    return SiteConfig(
        data_dir=data_dir,
        cors_origins=["http://localhost:3000"],
        sync=SyncConfig(cooldown_seconds=60, calendar_max_results=50, cron_secret=CRON_SECRET),
        google=GoogleConfig(
            calendar_id=CALENDAR_ID,
            calendar_api_key="calendar-api-key",
            drive_folder_id="folder-1",
            service_account_key=SERVICE_ACCOUNT_JSON,
        ),
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def calendar_fetcher() -> FakeCalendarFetcher:
    return FakeCalendarFetcher()


@pytest.fixture
def drive_fetcher() -> FakeDriveFetcher:
    return FakeDriveFetcher()


@pytest.fixture
def services(
    site_config: SiteConfig,
    calendar_fetcher: FakeCalendarFetcher,
    drive_fetcher: FakeDriveFetcher,
    clock: FakeClock,
) -> SiteServices:
    return build_services(
        site_config,
        calendar_fetcher=calendar_fetcher,
        drive_fetcher=drive_fetcher,
        events_gate=CooldownGate(site_config.sync.cooldown_seconds, clock=clock),
        drive_gate=CooldownGate(site_config.sync.cooldown_seconds, clock=clock),
    )


@pytest.fixture
async def client(services: SiteServices) -> AsyncIterator[httpx.AsyncClient]:
    app = create_app(services=services)
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://test"
    ) as http_client:
        yield http_client
