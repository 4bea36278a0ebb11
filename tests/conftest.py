"""Shared fixtures: a throwaway SQLite database per test."""

from __future__ import annotations

import pytest
import pytest_asyncio

from carpark.database import build_engine, init_db
from carpark.ledger import ParkingLedger
from carpark.store import SessionStore


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'carpark.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def store(engine) -> SessionStore:
    return SessionStore(engine, timeout=5.0)


@pytest.fixture
def ledger(store) -> ParkingLedger:
    return ParkingLedger(store, rate_per_hour=7.50)
