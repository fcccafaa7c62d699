"""Bind incoming child entities to parent entities, creating missing parents.

The flow for one batch of children:

1) collect the distinct relation-key values (first-seen order)
2) query existing parents for all of them in one call
3) index the result by key (first match wins)
4) build a parent for every key the index does not know
5) insert all new parents in one call and index their ids
6) point every child at its parent's id

The store sees at most two calls regardless of how many children arrive.
``sync`` adds a third: the children's own upsert.

Concurrent calls that miss the same key may both create it. Callers that can
contend on a key space must serialize, or rely on the store's uniqueness rules.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from recordlink.domain.model import Entity, failures

from .contracts import ReconcileResult, StagedChild, SyncResult
from .errors import MissingRelationKey, StoreError, UnresolvedParent
from .key_index import build_key_index, key_slot

if TYPE_CHECKING:
    from collections.abc import Sequence

    from recordlink.domain.model import FieldValue
    from recordlink.domain.ports import EntityStore

    from .contracts import Relation
    from .key_index import KeySlot, ParentIndex
    from .natural_key import NaturalKeyUpserter
    from .upsert import BatchUpserter, MatchFn

log = logging.getLogger(__name__)


@dataclass(slots=True)
class Reconciler:
    """Compose store access, batch upserts and natural-key upserts."""

    store: EntityStore
    upserter: BatchUpserter
    natural_key: NaturalKeyUpserter

    def reconcile(self, children: Sequence[Entity], relation: Relation) -> ReconcileResult:
        """Resolve or create the parent of every child and bind it.

        New parents are persisted before this returns; the children are not.
        """

        if not children:
            return ReconcileResult()

        keys = _distinct_keys(children, relation)
        existing = self.store.query(
            relation.parent_kind,
            {relation.parent_key_field: keys},
        )
        index = build_key_index(existing, relation.parent_key_field)
        log.debug(
            "Found %d of %d %s keys among %d stored records",
            len(keys) - len(index.missing(keys)),
            len(keys),
            relation.parent_kind,
            len(existing),
        )

        created = self._create_parents(index.missing(keys), relation)
        index.extend(created)

        staged = [_bind(child, index, relation) for child in children]
        log.info(
            "Reconciled %d %s children: %d parents reused, %d created",
            len(children),
            relation.parent_kind,
            len(keys) - len(created),
            len(created),
        )
        return ReconcileResult(children=staged, created_parents=created, index=index)

    def sync(
        self,
        children: Sequence[Entity],
        relation: Relation,
        match: MatchFn | None = None,
    ) -> SyncResult:
        """Reconcile ``children`` and upsert them; per-child results keep input order."""

        reconciled = self.reconcile(children, relation)
        child_results = self.upserter.upsert(reconciled.entities, match) if children else []
        result = SyncResult(reconciled=reconciled, child_results=child_results)
        if result.failed:
            log.warning(
                "%d of %d children failed to persist", len(result.failed), len(child_results)
            )
        return result

    def reconcile_one(self, child: Entity, relation: Relation) -> StagedChild:
        """Bind a single child, finding or creating its parent by natural key."""

        if not child.has(relation.child_key_field):
            raise MissingRelationKey(relation.child_key_field, child)
        key = child.get(relation.child_key_field)
        outcome = self.natural_key.upsert(
            relation.parent_kind,
            relation.parent_key_field,
            key,
            marked=False,
        )
        child.set(relation.ref_field, outcome.id)
        return StagedChild(entity=child, parent_id=outcome.id)

    def _create_parents(
        self,
        missing: Sequence[FieldValue],
        relation: Relation,
    ) -> list[Entity]:
        if not missing:
            return []
        parents = [
            Entity(kind=relation.parent_kind, fields={relation.parent_key_field: key})
            for key in missing
        ]
        results = self.upserter.upsert(parents)
        failed = failures(results)
        if failed:
            raise StoreError(
                f"Failed to create {len(failed)} of {len(parents)} {relation.parent_kind} parents",
                batch=parents,
                failures=failed,
            )
        return parents


def _distinct_keys(children: Sequence[Entity], relation: Relation) -> list[FieldValue]:
    keys: dict[KeySlot, FieldValue] = {}
    for child in children:
        if not child.has(relation.child_key_field):
            raise MissingRelationKey(relation.child_key_field, child)
        value = child.get(relation.child_key_field)
        keys.setdefault(key_slot(value), value)
    return list(keys.values())


def _bind(child: Entity, index: ParentIndex, relation: Relation) -> StagedChild:
    key = child.get(relation.child_key_field)
    parent_id = index.get(key)
    if parent_id is None:
        raise UnresolvedParent(key, child)
    child.set(relation.ref_field, parent_id)
    return StagedChild(entity=child, parent_id=parent_id)
