"""
Generic record entity:
a kind, a field-value mapping and a store-assigned identity.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping

type EntityId = str
type FieldValue = str | int | float | bool | None


@dataclass(eq=False, kw_only=True)
class Entity:
    """A record of ``kind`` with arbitrary fields.

    ``id`` is ``None`` until the store persists the entity. Once assigned it never
    changes; use :meth:`assign_id` rather than setting the attribute directly.
    """

    kind: str
    fields: dict[str, FieldValue] = field(default_factory=dict["str", "FieldValue"])
    id: EntityId | None = None

    @property
    def is_persisted(self) -> bool:
        return self.id is not None

    def get(self, name: str, default: FieldValue = None) -> FieldValue:
        return self.fields.get(name, default)

    def has(self, name: str) -> bool:
        return name in self.fields

    def set(self, name: str, value: FieldValue) -> None:
        self.fields[name] = value

    def update(self, values: Mapping[str, FieldValue]) -> None:
        self.fields.update(values)

    def assign_id(self, entity_id: EntityId) -> None:
        """Record the identifier handed out by the store."""
        if self.id is not None and self.id != entity_id:
            raise ValueError(f"{self.kind} entity already has id {self.id!r}")
        self.id = entity_id

    def forget_id(self) -> None:
        """Drop an identifier whose insert was rolled back."""
        self.id = None

    def copy(self) -> Entity:
        return Entity(kind=self.kind, fields=dict(self.fields), id=self.id)
