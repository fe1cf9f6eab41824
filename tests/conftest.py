"""Shared fixtures for the cloudevent test suite."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
import pytest_asyncio
from sqlalchemy.pool import StaticPool

from cloudevent.events import TYPE_STATUS, CloudEventHeader
from cloudevent.storage.clickhouse.connection import (
    SQLAlchemyIndexStore,
    create_all,
    create_engine,
)
from cloudevent.storage.object_store import InMemoryObjectStore

VEHICLE_DID = "did:erc721:153:0xbA5738a18d83D41847dfFbDC6101d37C69c9B0cF:42"
DEVICE_DID = "did:erc721:153:0xbA5738a18d83D41847dfFbDC6101d37C69c9B0cF:7"
SOURCE_ADDRESS = "0xConnectionLicense"


# ---------------------------------------------------------------------------
# Headers
# ---------------------------------------------------------------------------

def _make_header(**kw) -> CloudEventHeader:
    """Header with realistic defaults; keyword arguments override."""
    defaults = dict(
        id="evt-1",
        source=SOURCE_ADDRESS,
        producer=DEVICE_DID,
        subject=VEHICLE_DID,
        time=datetime(2024, 3, 1, 12, 0, 0, 250_000, tzinfo=timezone.utc),
        type=TYPE_STATUS,
        data_content_type="application/json",
        data_version="v2",
    )
    defaults.update(kw)
    return CloudEventHeader(**defaults)


@pytest.fixture
def make_header():
    """Factory for headers with realistic defaults."""
    return _make_header


@pytest.fixture
def header() -> CloudEventHeader:
    return _make_header()


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------

class CountingObjectStore(InMemoryObjectStore):
    """In-memory object store that records every fetch."""

    def __init__(self) -> None:
        super().__init__()
        self.gets: list[str] = []
        self.puts: list[str] = []

    async def get_object(self, key: str) -> bytes:
        self.gets.append(key)
        return await super().get_object(key)

    async def put_object(self, key: str, data: bytes) -> None:
        self.puts.append(key)
        await super().put_object(key, data)


class FailingObjectStore(InMemoryObjectStore):
    """Object store whose reads fail with a transport error."""

    async def get_object(self, key: str) -> bytes:
        raise ConnectionError("connection reset by peer")


@pytest.fixture
def object_store() -> CountingObjectStore:
    return CountingObjectStore()


@pytest.fixture
def failing_object_store() -> FailingObjectStore:
    return FailingObjectStore()


@pytest_asyncio.fixture
async def index_store():
    """Index store on a fresh in-memory SQLite database."""
    engine = create_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    await create_all(engine)
    store = SQLAlchemyIndexStore(engine)
    yield store
    await store.dispose()

