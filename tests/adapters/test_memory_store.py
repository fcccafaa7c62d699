from __future__ import annotations

from recordlink.adapters.memory import InMemoryEntityStore
from recordlink.domain.model import Entity, RecordFailure, RecordSuccess
from tests.helpers.records import make_account, make_contact


def test_query_matches_scalar_and_membership_filters() -> None:
    store = InMemoryEntityStore(
        [
            make_account("Acme", entity_id="A1"),
            make_account("Globex", entity_id="A2"),
            make_account("Initech", entity_id="A3"),
            make_contact("Acme"),
        ]
    )

    by_name = store.query("account", {"name": "Acme"})
    by_names = store.query("account", {"name": ["Acme", "Initech", "Hooli"]})

    assert [entity.id for entity in by_name] == ["A1"]
    assert sorted(entity.id or "" for entity in by_names) == ["A1", "A3"]


def test_query_results_are_copies() -> None:
    store = InMemoryEntityStore([make_account("Acme", entity_id="A1")])

    [result] = store.query("account", {"name": "Acme"})
    result.set("name", "Changed")

    stored = store.get("A1")
    assert stored is not None
    assert stored.get("name") == "Acme"


def test_insert_rejects_entities_with_ids() -> None:
    store = InMemoryEntityStore()

    [result] = store.insert_batch([make_account("Acme", entity_id="A1")])

    assert isinstance(result, RecordFailure)
    assert store.all() == []


def test_unique_fields_reject_duplicates_within_one_batch() -> None:
    store = InMemoryEntityStore(unique_fields={"account": ["name"]})

    results = store.insert_batch([make_account("Acme"), make_account("Acme")])

    assert isinstance(results[0], RecordSuccess)
    assert isinstance(results[1], RecordFailure)
    assert len(store.all("account")) == 1


def test_update_refuses_kind_mismatch() -> None:
    store = InMemoryEntityStore([make_account("Acme", entity_id="A1")])

    [result] = store.update_batch([Entity(kind="contact", fields={"lastName": "X"}, id="A1")])

    assert isinstance(result, RecordFailure)
    assert "account" in result.error
