"""Shared test fixtures for the gstbooks test suite."""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from gstbooks.infrastructure.cache.credential_cache import MemoryCredentialCache
from gstbooks.infrastructure.external.books_api_client import BooksApiClient

VALID_GSTIN = "27AAAAA0000A1Z5"


class FakeClock:
    """Settable clock for expiry tests."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture(scope="session")
def event_loop():
    """Use a single event loop for the entire test session."""
    loop = asyncio.new_event_loop()
    yield loop
    loop.close()


@pytest.fixture
def now() -> datetime:
    return datetime(2025, 5, 10, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock(now) -> FakeClock:
    return FakeClock(now)


@pytest.fixture
def cache() -> MemoryCredentialCache:
    return MemoryCredentialCache(in_flight_ttl=60)


@pytest.fixture
def client() -> AsyncMock:
    """Books API client double; every coroutine method is an AsyncMock."""
    return AsyncMock(spec=BooksApiClient)


@pytest.fixture
def credential_payload():
    """Factory for a credential record the way the backend returns it (camelCase)."""

    def _make(**overrides) -> dict:
        data = {
            "_id": "cred-1",
            "organizationId": "org-1",
            "gstin": VALID_GSTIN,
            "email": "accounts@example.com",
            "stateCd": "27",
            "authStatus": "PENDING",
        }
        data.update(overrides)
        return data

    return _make


@pytest.fixture
def authenticated_payload(credential_payload):
    """Factory for an AUTHENTICATED credential whose token expires at ``expiry``."""

    def _make(expiry: datetime, **overrides) -> dict:
        data = credential_payload(
            authStatus="AUTHENTICATED",
            authToken={"authToken": "tok-abc", "expiry": expiry.isoformat()},
        )
        data.update(overrides)
        return data

    return _make
