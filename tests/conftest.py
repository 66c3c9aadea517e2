from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine  # noqa: TC002

from resourcesync.adapters.sqlalchemy import SqlAlchemyDocumentStore
from resourcesync.adapters.sqlalchemy.migrations import upgrade_head
from tests.helpers.stores import FakeStore

os.environ.setdefault("DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator


@pytest.fixture
def fixed_suffix() -> Callable[[], str]:
    return lambda: "123456"


@pytest.fixture
def fake_store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def sqlite_engine() -> Iterator[Engine]:
    engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
    upgrade_head(engine=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def sqlite_store(sqlite_engine: Engine) -> SqlAlchemyDocumentStore:
    return SqlAlchemyDocumentStore(sqlite_engine, max_batch_size=3)
