"""
Shared fixtures: a file-backed SQLite catalog per test and an in-memory VOD provider.
"""
import os

# Keep the module-level engine off PostgreSQL; tests build their own engines.
os.environ.setdefault("VODMIRROR_DATABASE_URL_OVERRIDE", "sqlite+aiosqlite://")
os.environ.pop("VODMIRROR_VOD_ACCESS_KEY_ID", None)
os.environ.pop("VODMIRROR_VOD_ACCESS_KEY_SECRET", None)

import pytest
import pytest_asyncio

from vodmirror.core.database import build_engine, build_session_factory, init_db
from vodmirror.services.cache.url_cache import UrlCache
from vodmirror.services.catalog.catalog_store import CatalogStore

from fakes import FakeRemoteClient


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    # A file database: concurrent sessions need separate connections
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'catalog.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return build_session_factory(db_engine)


@pytest.fixture
def store(session_factory):
    return CatalogStore(session_factory)


@pytest.fixture
def remote():
    return FakeRemoteClient()


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def url_cache(clock):
    return UrlCache(ttl_seconds=30 * 60, clock=clock)
