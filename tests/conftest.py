from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from sqlalchemy.orm import Session, sessionmaker

from recordlink.adapters.memory import InMemoryEntityStore
from recordlink.adapters.sqlalchemy import create_all_tables, create_store_engine
from recordlink.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork, shutdown, startup
from recordlink.config import ReconcileConfig
from recordlink.domain.reconciliation import BatchUpserter, NaturalKeyUpserter, Reconciler

os.environ.setdefault("DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from sqlalchemy.engine import Engine


@pytest.fixture
def memory_store() -> InMemoryEntityStore:
    return InMemoryEntityStore()


@pytest.fixture
def reconciler_for() -> Callable[[InMemoryEntityStore], Reconciler]:
    def build(store: InMemoryEntityStore) -> Reconciler:
        upserter = BatchUpserter(store)
        return Reconciler(
            store=store,
            upserter=upserter,
            natural_key=NaturalKeyUpserter(store, upserter, ReconcileConfig()),
        )

    return build


@pytest.fixture
def sqlite_engine() -> Iterator[Engine]:
    engine = create_store_engine("sqlite+pysqlite:///:memory:")
    create_all_tables(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def sqlite_session(sqlite_engine: Engine) -> Iterator[Session]:
    session_factory = sessionmaker(bind=sqlite_engine, future=True)
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def sqlite_unit_of_work(
    sqlite_engine: Engine,
) -> Iterator[Callable[[], SqlAlchemyUnitOfWork]]:
    startup(engine=sqlite_engine, force=True)

    def factory() -> SqlAlchemyUnitOfWork:
        return SqlAlchemyUnitOfWork()

    try:
        yield factory
    finally:
        shutdown()
