"""
Shared test fixtures for the plantcare test suite.

Provides:
- A controllable clock
- In-memory repository, ledger and plant service wired together
- A FastAPI TestClient using the in-memory repository

Async code is driven with ``asyncio.run`` inside each test, one event loop
per test.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from plantcare.core.dependencies import get_ledger, get_plant_service, get_repository
from plantcare.main import app
from plantcare.plants.service import PlantService
from plantcare.watering.ledger import WateringLedger
from plantcare.watering.memory_repository import InMemoryWateringRepository

logging.getLogger("plantcare").setLevel(logging.WARNING)

NOW = datetime(2024, 3, 10, 9, 30, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def repo():
    """Fresh in-memory repository per test."""
    return InMemoryWateringRepository()


@pytest.fixture()
def ledger(repo, clock):
    return WateringLedger(repo, clock=clock)


@pytest.fixture()
def plant_service(repo, ledger, clock):
    return PlantService(repo, ledger=ledger, clock=clock)


@pytest.fixture()
def client(repo, ledger, plant_service):
    """TestClient bound to the test's repository and clock (lifespan not started)."""
    app.dependency_overrides[get_repository] = lambda: repo
    app.dependency_overrides[get_ledger] = lambda: ledger
    app.dependency_overrides[get_plant_service] = lambda: plant_service
    yield TestClient(app)
    app.dependency_overrides.clear()
