import random
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from playroom.create_sqlite_engine import serialize_writes
from playroom.crud import CreateData
from playroom.models.basic_authentication_models import IdentityModel
from playroom.services.memory_store import MemorySessionStore
from playroom.session.bootstrap import SessionBootstrap


@pytest.fixture()
def alice() -> IdentityModel:
    return IdentityModel(identity_id="alice", display_name="Alice")


@pytest.fixture()
def bob() -> IdentityModel:
    return IdentityModel(identity_id="bob", display_name="Bob")


@pytest.fixture()
def carol() -> IdentityModel:
    return IdentityModel(identity_id="carol", display_name="Carol")


@pytest.fixture()
def store() -> MemorySessionStore:
    return MemorySessionStore()


@pytest.fixture()
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture()
def bootstrap(store, rng) -> SessionBootstrap:
    return SessionBootstrap(store, rng=rng)


@pytest.fixture()
def redis() -> MagicMock:
    """Redis client double: publish is awaited, pubsub() is a plain call."""
    client = MagicMock()
    client.publish = AsyncMock(return_value=1)
    return client


@pytest_asyncio.fixture()
async def Session(tmp_path):
    engine = serialize_writes(create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'playroom.sqlite3'}"))
    await CreateData.create_table(engine)
    yield async_sessionmaker(
        autocommit=False,
        class_=AsyncSession,
        autoflush=True,
        expire_on_commit=False,
        bind=engine,
    )
    await engine.dispose()
