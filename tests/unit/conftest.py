"""Shared fixtures for unit tests."""

from __future__ import annotations

from collections.abc import AsyncIterator

import pytest
from fakes import FakeProvider

from whalewatch.storage.database import Database


@pytest.fixture
async def db(tmp_path) -> AsyncIterator[Database]:
    database = Database(tmp_path / "whales.db")
    await database.connect()
    yield database
    await database.disconnect()


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()
