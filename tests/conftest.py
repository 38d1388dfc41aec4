"""Pytest configuration and fixtures."""

# pylint: disable=redefined-outer-name

from __future__ import annotations

import os

from typing import TYPE_CHECKING

import pytest
import pytest_asyncio

from calendar_client.auth.credential_store import MemoryCredentialStore
from calendar_client.client import CalendarClient
from calendar_client.config import ClientSettings, clear_settings

from tests.constants import BASE_URL
from tests.fakes import FakeCalendarService


if TYPE_CHECKING:
    from collections.abc import AsyncIterator


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch: pytest.MonkeyPatch, tmp_path):
    """Keep user config files and CALENDAR_CLIENT_* env vars out of tests."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("APPDATA", str(tmp_path))
    for key in [k for k in os.environ if k.startswith("CALENDAR_CLIENT_")]:
        monkeypatch.delenv(key)
    clear_settings()
    yield
    clear_settings()


@pytest.fixture()
def service() -> FakeCalendarService:
    """A fake service with working login, refresh and identity routes."""
    fake = FakeCalendarService()
    fake.on_json("POST", "/login", {"accessToken": "T1", "refreshToken": "R1"})
    fake.on_json("POST", "/auth/refresh", {"accessToken": "T2", "refreshToken": "R2"})
    fake.on_json("GET", "/identity", {"organizationId": "org-1", "email": "a@b.com"})
    return fake


@pytest.fixture()
def store() -> MemoryCredentialStore:
    """Create an empty memory credential store."""
    return MemoryCredentialStore()


@pytest.fixture()
def settings() -> ClientSettings:
    """Settings pointing at the fake service."""
    return ClientSettings(api={"base_url": BASE_URL}, credentials={"backend": "memory"})


@pytest_asyncio.fixture
async def client(
    settings: ClientSettings,
    store: MemoryCredentialStore,
    service: FakeCalendarService,
) -> AsyncIterator[CalendarClient]:
    """A client wired to the fake service and the memory store."""
    async with CalendarClient(settings, store=store, transport=service.transport) as c:
        yield c
