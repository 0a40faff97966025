"""Pytest fixtures for metabolic tests."""

from __future__ import annotations

import asyncio
import tempfile
from datetime import date, datetime, timedelta, timezone
from pathlib import Path

import pytest

from metabolic.config import Settings
from metabolic.db import InMemoryStore, RecordKind, SQLiteStore
from metabolic.tracking.service import MetabolicService

# Fixed "now" for every service under test
NOW = datetime(2026, 1, 20, 18, 0, tzinfo=timezone.utc)
TODAY = NOW.date()


@pytest.fixture
def settings():
    """Default settings in UTC."""
    return Settings()


@pytest.fixture
def store():
    """Empty in-memory store."""
    return InMemoryStore()


@pytest.fixture
def service(store, settings):
    """Service over the in-memory store with a fixed clock."""
    return MetabolicService(store, settings, clock=lambda: NOW)


@pytest.fixture
def sqlite_store():
    """Create a temporary SQLite store with schema."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = Path(f.name)

    db = SQLiteStore(db_path)
    db.initialize_schema()

    yield db

    # Cleanup
    db_path.unlink(missing_ok=True)


def at(day: date, hour: int = 12) -> datetime:
    """UTC timestamp on ``day``."""
    return datetime(day.year, day.month, day.day, hour, tzinfo=timezone.utc)


def seed_history(store, days: int = 20, start: date = date(2026, 1, 1)) -> None:
    """One weigh-in and one 2200 kcal meal per day, weight drifting down."""

    async def run():
        for i in range(days):
            day = start + timedelta(days=i)
            await store.create(
                RecordKind.WEIGHT_LOG, {"recorded_at": at(day, 7), "weight_kg": 80.0 - 0.05 * i}
            )
            await store.create(RecordKind.MEAL, {
                "eaten_at": at(day, 12),
                "total_calories": 2200,
                "total_protein": 140,
                "total_carbs": 220,
                "total_fat": 70,
            })

    asyncio.run(run())
