from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from pathlib import Path

import pytest

from vigil_bot.core.resolver import IdentityResolver
from vigil_bot.messenger.models import PlatformUpdate
from vigil_bot.storage.database import Database
from vigil_bot.storage.message_repo import MessageRepository
from tests.fakes import FakeAdapter, FakeBackend, make_update


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
async def db(tmp_path: Path) -> AsyncIterator[Database]:
    database = Database(str(tmp_path / "vigil.db"))
    await database.initialize()
    try:
        yield database
    finally:
        await database.close()


@pytest.fixture
def resolver(db: Database) -> IdentityResolver:
    return IdentityResolver(db)


@pytest.fixture
def messages(db: Database) -> MessageRepository:
    return MessageRepository(db)


@pytest.fixture
def adapter() -> FakeAdapter:
    return FakeAdapter()


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def update_factory() -> Callable[..., PlatformUpdate]:
    return make_update
