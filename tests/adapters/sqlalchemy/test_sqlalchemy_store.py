from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import func, select, update

from recordlink.adapters.sqlalchemy import SqlAlchemyEntityStore, record_field_table, record_table
from recordlink.domain.model import Entity, RecordFailure, RecordSuccess
from recordlink.domain.reconciliation import StoreError
from tests.helpers.records import make_account, make_contact

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


def test_insert_assigns_ids_and_query_round_trips(sqlite_session: Session) -> None:
    store = SqlAlchemyEntityStore(sqlite_session)

    results = store.insert_batch(
        [
            Entity(kind="account", fields={"name": "Acme", "employees": 12, "active": True}),
            make_account("Globex"),
        ]
    )

    assert all(isinstance(result, RecordSuccess) for result in results)
    [acme] = store.query("account", {"name": "Acme"})
    assert acme.id == results[0].id
    assert acme.fields == {"name": "Acme", "employees": 12, "active": True}


def test_query_supports_membership_and_multiple_filters(sqlite_session: Session) -> None:
    store = SqlAlchemyEntityStore(sqlite_session)
    store.insert_batch(
        [
            Entity(kind="account", fields={"name": "Acme", "industry": "Retail"}),
            Entity(kind="account", fields={"name": "Globex", "industry": "Energy"}),
            Entity(kind="account", fields={"name": "Initech", "industry": "Retail"}),
            make_contact("Acme"),
        ]
    )

    names = store.query("account", {"name": ["Acme", "Globex", "Hooli"]})
    retail = store.query("account", {"industry": "Retail", "name": ["Acme", "Globex"]})

    assert sorted(entity.get("name") for entity in names) == ["Acme", "Globex"]
    assert [entity.get("name") for entity in retail] == ["Acme"]


def test_query_matches_exactly(sqlite_session: Session) -> None:
    store = SqlAlchemyEntityStore(sqlite_session)
    store.insert_batch(
        [make_account("Doe"), Entity(kind="account", fields={"name": "1", "rank": 1})]
    )

    assert store.query("account", {"name": "doe"}) == []
    assert store.query("account", {"name": 1}) == []
    assert len(store.query("account", {"rank": 1})) == 1


def test_update_merges_fields_and_refreshes_index(sqlite_session: Session) -> None:
    store = SqlAlchemyEntityStore(sqlite_session)
    [inserted] = store.insert_batch([Entity(kind="account", fields={"name": "Acme"})])
    assert isinstance(inserted, RecordSuccess)

    [updated] = store.update_batch(
        [Entity(kind="account", fields={"name": "Acme Corp", "status": "Updated"}, id=inserted.id)]
    )

    assert isinstance(updated, RecordSuccess)
    assert updated.id == inserted.id
    assert store.query("account", {"name": "Acme"}) == []
    [entity] = store.query("account", {"name": "Acme Corp"})
    assert entity.fields == {"name": "Acme Corp", "status": "Updated"}


def test_batch_failures_are_per_record(sqlite_session: Session) -> None:
    store = SqlAlchemyEntityStore(sqlite_session, unique_fields={"account": ["name"]})
    store.insert_batch([make_account("Acme")])

    results = store.insert_batch([make_account("Globex"), make_account("Acme")])
    missing = store.update_batch([Entity(kind="account", fields={"name": "X"}, id="missing")])

    assert isinstance(results[0], RecordSuccess)
    assert isinstance(results[1], RecordFailure)
    assert "duplicate" in results[1].error
    assert isinstance(missing[0], RecordFailure)
    assert sorted(entity.get("name") for entity in store.query("account", {})) == [
        "Acme",
        "Globex",
    ]


def test_delete_removes_record_and_field_rows(sqlite_session: Session) -> None:
    store = SqlAlchemyEntityStore(sqlite_session)
    [inserted] = store.insert_batch([make_account("Acme")])
    assert isinstance(inserted, RecordSuccess)

    results = store.delete_batch([inserted.id, "missing"])

    assert [result.ok for result in results] == [True, False]
    assert store.query("account", {}) == []
    remaining = sqlite_session.execute(select(func.count()).select_from(record_field_table))
    assert remaining.scalar_one() == 0


def test_query_failure_raises_store_error(sqlite_session: Session) -> None:
    store = SqlAlchemyEntityStore(sqlite_session)
    record_field_table.drop(sqlite_session.connection())

    with pytest.raises(StoreError):
        store.query("account", {"name": "Acme"})


def test_query_returns_oldest_record_first(sqlite_session: Session) -> None:
    store = SqlAlchemyEntityStore(sqlite_session)
    [newer, older] = store.insert_batch([make_account("Doe"), make_account("Doe")])
    assert isinstance(newer, RecordSuccess)
    assert isinstance(older, RecordSuccess)
    sqlite_session.execute(
        update(record_table)
        .where(record_table.c.id == older.id)
        .values(created_at=datetime(2000, 1, 1, tzinfo=UTC))
    )

    first = [entity.id for entity in store.query("account", {"name": "Doe"})]
    second = [entity.id for entity in store.query("account", {"name": ["Doe"]})]

    assert first == [older.id, newer.id]
    assert second == first
