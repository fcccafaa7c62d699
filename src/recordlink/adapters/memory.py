"""Dictionary-backed entity store.

Useful for tests and dry runs. Records every call in ``calls`` so round trips
can be asserted, and can enforce unique key fields per kind the way a real store
would reject duplicates.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from recordlink.domain.model import Entity, RecordFailure, RecordSuccess
from recordlink.domain.ports import is_membership

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from recordlink.domain.model import EntityId, FieldValue, RecordResult
    from recordlink.domain.ports import FieldFilters, FilterValue

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class StoreCall:
    operation: str
    kind: str | None
    size: int


def _new_id() -> EntityId:
    return str(uuid.uuid4())


class InMemoryEntityStore:
    """Keep copies of entities keyed by id; callers never share state with the store."""

    def __init__(
        self,
        initial: Iterable[Entity] = (),
        *,
        unique_fields: Mapping[str, Sequence[str]] | None = None,
    ) -> None:
        self._records: dict[EntityId, Entity] = {}
        self._unique_fields = {kind: tuple(names) for kind, names in (unique_fields or {}).items()}
        self.calls: list[StoreCall] = []
        for entity in initial:
            self.seed(entity)

    def seed(self, entity: Entity) -> EntityId:
        """Place ``entity`` in the store without logging a call, keeping its id if set."""
        entity_id = entity.id or _new_id()
        entity.assign_id(entity_id)
        self._records[entity_id] = entity.copy()
        return entity_id

    def get(self, entity_id: EntityId) -> Entity | None:
        record = self._records.get(entity_id)
        return record.copy() if record is not None else None

    def all(self, kind: str | None = None) -> list[Entity]:
        return [
            record.copy()
            for record in self._records.values()
            if kind is None or record.kind == kind
        ]

    def calls_for(self, operation: str) -> list[StoreCall]:
        return [call for call in self.calls if call.operation == operation]

    def query(self, kind: str, filters: FieldFilters) -> list[Entity]:
        self.calls.append(StoreCall("query", kind, len(filters)))
        return [
            record.copy()
            for record in self._records.values()
            if record.kind == kind and _matches(record, filters)
        ]

    def insert_batch(self, entities: Sequence[Entity]) -> list[RecordResult]:
        self.calls.append(StoreCall("insert", _batch_kind(entities), len(entities)))
        results: list[RecordResult] = []
        for entity in entities:
            if entity.id is not None:
                results.append(RecordFailure("entity already has an id", entity=entity))
                continue
            conflict = self._unique_conflict(entity)
            if conflict is not None:
                results.append(RecordFailure(conflict, entity=entity))
                continue
            entity_id = _new_id()
            self._records[entity_id] = Entity(
                kind=entity.kind, fields=dict(entity.fields), id=entity_id
            )
            results.append(RecordSuccess(entity_id))
        return results

    def update_batch(self, entities: Sequence[Entity]) -> list[RecordResult]:
        self.calls.append(StoreCall("update", _batch_kind(entities), len(entities)))
        results: list[RecordResult] = []
        for entity in entities:
            stored = self._records.get(entity.id) if entity.id is not None else None
            if stored is None or entity.id is None:
                results.append(RecordFailure("no such record", entity=entity, id=entity.id))
                continue
            if stored.kind != entity.kind:
                results.append(
                    RecordFailure(f"record is a {stored.kind}", entity=entity, id=entity.id)
                )
                continue
            conflict = self._unique_conflict(entity)
            if conflict is not None:
                results.append(RecordFailure(conflict, entity=entity, id=entity.id))
                continue
            stored.update(entity.fields)
            results.append(RecordSuccess(entity.id))
        return results

    def delete_batch(self, ids: Sequence[EntityId]) -> list[RecordResult]:
        self.calls.append(StoreCall("delete", None, len(ids)))
        results: list[RecordResult] = []
        for entity_id in ids:
            if self._records.pop(entity_id, None) is None:
                results.append(RecordFailure("no such record", id=entity_id))
            else:
                results.append(RecordSuccess(entity_id))
        return results

    def _unique_conflict(self, entity: Entity) -> str | None:
        for name in self._unique_fields.get(entity.kind, ()):
            if not entity.has(name):
                continue
            value = entity.get(name)
            for record in self._records.values():
                if (
                    record.kind == entity.kind
                    and record.id != entity.id
                    and record.has(name)
                    and _same(record.get(name), value)
                ):
                    return f"duplicate {entity.kind}.{name}={value!r}"
        return None


def _matches(record: Entity, filters: FieldFilters) -> bool:
    return all(
        record.has(name) and _value_matches(record.get(name), expected)
        for name, expected in filters.items()
    )


def _value_matches(value: FieldValue, expected: FilterValue) -> bool:
    if is_membership(expected):
        return any(_same(value, candidate) for candidate in expected)  # type: ignore[union-attr]
    return _same(value, expected)  # type: ignore[arg-type]


def _same(value: FieldValue, expected: FieldValue) -> bool:
    # 1, 1.0 and True are different values to a store
    return type(value) is type(expected) and value == expected


def _batch_kind(entities: Sequence[Entity]) -> str | None:
    kinds = {entity.kind for entity in entities}
    return kinds.pop() if len(kinds) == 1 else None


if TYPE_CHECKING:
    from recordlink.domain.ports import EntityStore

    _store_check: EntityStore = InMemoryEntityStore()
