"""Value types shared by the reconciliation components."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from recordlink.domain.model import Entity, EntityId, RecordResult

    from .key_index import ParentIndex


@dataclass(frozen=True, slots=True, kw_only=True)
class Relation:
    """How children point at their parents.

    ``child_key_field`` on the child is compared by exact equality against
    ``parent_key_field`` on parents of ``parent_kind``. The resolved parent id is
    written to ``parent_ref_field`` on the child (``<parent_kind>_id`` by default).
    """

    child_key_field: str
    parent_kind: str
    parent_key_field: str = "name"
    parent_ref_field: str | None = None

    @property
    def ref_field(self) -> str:
        return self.parent_ref_field or f"{self.parent_kind}_id"


@dataclass(frozen=True, slots=True)
class StagedChild:
    """A child bound to an existing parent, ready for upsert."""

    entity: Entity
    parent_id: EntityId


@dataclass(slots=True)
class ReconcileResult:
    """Outcome of binding one batch of children to their parents."""

    children: list[StagedChild] = field(default_factory=list["StagedChild"])
    created_parents: list[Entity] = field(default_factory=list["Entity"])
    index: ParentIndex | None = None

    @property
    def entities(self) -> list[Entity]:
        return [staged.entity for staged in self.children]


@dataclass(slots=True)
class SyncResult:
    """Reconciliation plus the per-child upsert results, in input order."""

    reconciled: ReconcileResult
    child_results: list[RecordResult] = field(default_factory=list["RecordResult"])

    @property
    def failed(self) -> list[tuple[Entity, RecordResult]]:
        return [
            (staged.entity, result)
            for staged, result in zip(self.reconciled.children, self.child_results, strict=True)
            if not result.ok
        ]
