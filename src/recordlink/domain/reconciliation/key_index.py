"""In-memory lookup from a natural-key field to an entity identifier.

Replaces nested entity-by-entity comparison with one pass over a result set, so
binding ``n`` children against ``m`` parents costs ``O(n + m)``.

Keys compare by type as well as value: ``True``, ``1`` and ``1.0`` are three
different keys, matching how stores compare serialized field values.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from recordlink.domain.model import Entity, EntityId, FieldValue

type KeySlot = tuple[type, FieldValue]

log = logging.getLogger(__name__)


def key_slot(value: FieldValue) -> KeySlot:
    """Hashable form of a key value that keeps equal values of different types apart."""
    return (type(value), value)


class ParentIndex(Mapping["FieldValue", "EntityId"]):
    """Mapping of key value to identifier holding at most one id per key.

    Insertion never overrides an existing key: the first entity seen wins.
    """

    __slots__ = ("_ids", "key_field")

    def __init__(self, key_field: str) -> None:
        self.key_field = key_field
        self._ids: dict[KeySlot, EntityId] = {}

    def __getitem__(self, key: FieldValue) -> EntityId:
        return self._ids[key_slot(key)]

    def __iter__(self) -> Iterator[FieldValue]:
        return (value for _, value in self._ids)

    def __len__(self) -> int:
        return len(self._ids)

    def __repr__(self) -> str:
        return f"ParentIndex(key_field={self.key_field!r}, ids={dict(self.items())!r})"

    def add(self, entity: Entity) -> bool:
        """Index ``entity``; return ``False`` if it was skipped."""
        if entity.id is None or not entity.has(self.key_field):
            return False
        key = entity.get(self.key_field)
        slot = key_slot(key)
        if slot in self._ids:
            if self._ids[slot] != entity.id:
                log.debug(
                    "Duplicate %s=%r: keeping %s, ignoring %s",
                    self.key_field,
                    key,
                    self._ids[slot],
                    entity.id,
                )
            return False
        self._ids[slot] = entity.id
        return True

    def extend(self, entities: Iterable[Entity]) -> int:
        return sum(1 for entity in entities if self.add(entity))

    def missing(self, keys: Iterable[FieldValue]) -> list[FieldValue]:
        """Return the keys without an identifier, keeping their order."""
        return [key for key in keys if key_slot(key) not in self._ids]


def build_key_index(entities: Iterable[Entity], key_field: str) -> ParentIndex:
    """Build a :class:`ParentIndex` over ``entities`` keyed by ``key_field``.

    Entities lacking an id or the key field are skipped. On duplicate keys the
    first entity in iteration order wins.
    """

    index = ParentIndex(key_field)
    index.extend(entities)
    return index
