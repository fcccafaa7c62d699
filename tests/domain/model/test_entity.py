from __future__ import annotations

import pytest

from recordlink.domain.model import (
    Entity,
    EntityKind,
    RecordFailure,
    RecordSuccess,
    failures,
    has_failures,
)


def test_entity_identity_is_assigned_once() -> None:
    entity = Entity(kind=EntityKind.ACCOUNT, fields={"name": "Acme"})
    assert not entity.is_persisted

    entity.assign_id("A1")
    entity.assign_id("A1")

    assert entity.is_persisted
    with pytest.raises(ValueError, match="already has id"):
        entity.assign_id("A2")
    assert entity.id == "A1"


def test_entity_copy_does_not_share_fields() -> None:
    entity = Entity(kind=EntityKind.CASE, fields={"subject": "Broken"}, id="C1")

    clone = entity.copy()
    clone.set("subject", "Fixed")

    assert entity.get("subject") == "Broken"
    assert clone.id == "C1"


def test_entity_kind_compares_as_string() -> None:
    assert Entity(kind=EntityKind.LEAD).kind == "lead"


def test_failures_report_positions() -> None:
    results = [RecordSuccess("A1"), RecordFailure("bad"), RecordSuccess("A2"), RecordFailure("x")]

    assert has_failures(results)
    assert [position for position, _ in failures(results)] == [1, 3]
    assert not has_failures([RecordSuccess("A1")])
