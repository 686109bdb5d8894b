"""
Shared fixtures for the AgentDash test suite.

Every storage-touching test runs once per backend ("json" and "sqlite"),
each against a fresh data directory under pytest's tmp_path.
"""
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from agentdash.config import StorageConfig
from agentdash.db import crud
from agentdash.db.backends import create_backend
from agentdash.main import create_app


class FakeClock:
    """Stand-in for ``crud._now``: every call advances by ``step``."""

    def __init__(self, start: datetime, step: timedelta = timedelta(seconds=1)) -> None:
        self.current = start
        self.step = step

    def __call__(self) -> datetime:
        self.current += self.step
        return self.current


@pytest.fixture(params=["json", "sqlite"])
def storage_config(request, tmp_path):
    return StorageConfig(data_dir=tmp_path / "data", backend=request.param)


@pytest_asyncio.fixture
async def backend(storage_config):
    b = create_backend(storage_config)
    await b.open()
    yield b
    await b.close()


@pytest_asyncio.fixture
async def storage(storage_config):
    s = await crud.open_storage(storage_config)
    yield s
    await s.close()


@pytest.fixture
def clock(monkeypatch):
    fake = FakeClock(datetime(2025, 3, 14, 9, 0, tzinfo=timezone.utc))
    monkeypatch.setattr(crud, "_now", fake)
    return fake


@pytest.fixture
def client(storage_config):
    with TestClient(create_app(storage_config)) as c:
        yield c
