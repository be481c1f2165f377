# dailyloop/conftest.py
from datetime import datetime, timedelta, timezone

import pytest

from dailyloop.core.metrics import METRICS
from dailyloop.features.progress.service import ProgressService
from dailyloop.features.progress.store import InMemoryProgressStore, reset_store


class FrozenClock:
    """Deterministic clock for the progress engine; advance it explicitly."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now

    def set(self, moment: datetime) -> datetime:
        self.now = moment
        return self.now


@pytest.fixture(scope="function", autouse=True)
def isolated_environment(monkeypatch):
    """
    Keep tests on the in-memory store regardless of the developer's .env.

    Tests that exercise the SQL store configure their own SQLite URL.
    """
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("TEST_DATABASE_URL", raising=False)
    reset_store()
    METRICS.reset()
    yield
    reset_store()


@pytest.fixture
def clock():
    return FrozenClock(datetime(2024, 3, 4, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def store():
    return InMemoryProgressStore()


@pytest.fixture
def service(store, clock):
    return ProgressService(store, clock=clock, zone="UTC", max_attempts=3)


@pytest.fixture
def client(service):
    """TestClient wired to the fixture service (in-memory store, frozen clock)."""
    from fastapi.testclient import TestClient

    from dailyloop.api.progress import get_progress_service
    from dailyloop.main import app

    app.dependency_overrides[get_progress_service] = lambda: service
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
