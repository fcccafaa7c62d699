"""Split a batch into inserts and updates and submit each once.

Results are merged back into input order so ``results[i]`` answers ``entities[i]``.
Per-record failures are passed through untouched; nothing is retried here.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from recordlink.domain.model import RecordSuccess

from .errors import StoreError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from recordlink.domain.model import Entity, EntityId, RecordResult
    from recordlink.domain.ports import EntityStore

type MatchFn = Callable[[Entity], bool]

log = logging.getLogger(__name__)


def match_by_id(entity: Entity) -> bool:
    """Default match: an entity corresponds to a stored record iff it carries an id."""
    return entity.id is not None


@dataclass(slots=True)
class BatchUpserter:
    """Submit insert and update sub-batches to ``store``.

    Entities that received an id from an insert are remembered in ``assigned`` so
    the ids can be dropped again if the surrounding transaction rolls back.
    """

    store: EntityStore
    assigned: list[Entity] = field(default_factory=list["Entity"])

    def upsert(
        self,
        entities: Sequence[Entity],
        match: MatchFn | None = None,
    ) -> list[RecordResult]:
        """Route matched entities to ``update_batch`` and the rest to ``insert_batch``.

        Successful inserts assign the returned id to the entity.
        """

        matches = match or match_by_id
        update_positions: list[int] = []
        insert_positions: list[int] = []
        for position, entity in enumerate(entities):
            if matches(entity):
                if entity.id is None:
                    raise ValueError(f"Matched entity has no id to update: {entity!r}")
                update_positions.append(position)
            else:
                insert_positions.append(position)

        results: list[RecordResult | None] = [None] * len(entities)
        if insert_positions:
            batch = [entities[position] for position in insert_positions]
            inserted = _checked(self.store.insert_batch(batch), batch, "insert")
            for position, result in zip(insert_positions, inserted, strict=True):
                if isinstance(result, RecordSuccess):
                    entities[position].assign_id(result.id)
                    self.assigned.append(entities[position])
                results[position] = result
        if update_positions:
            batch = [entities[position] for position in update_positions]
            updated = _checked(self.store.update_batch(batch), batch, "update")
            for position, result in zip(update_positions, updated, strict=True):
                results[position] = result

        log.debug(
            "Upserted %d entities: %d inserts, %d updates",
            len(entities),
            len(insert_positions),
            len(update_positions),
        )
        return [result for result in results if result is not None]

    def discard_assigned(self) -> int:
        """Forget every id handed out by inserts made through this upserter."""
        count = len(self.assigned)
        for entity in self.assigned:
            entity.forget_id()
        self.assigned.clear()
        return count

    def delete(self, ids: Sequence[EntityId]) -> list[RecordResult]:
        if not ids:
            return []
        results = list(self.store.delete_batch(ids))
        if len(results) != len(ids):
            raise StoreError(
                f"Store answered {len(results)} results for a delete batch of {len(ids)}"
            )
        return results


def _checked(
    results: Sequence[RecordResult],
    batch: Sequence[Entity],
    operation: str,
) -> Sequence[RecordResult]:
    if len(results) != len(batch):
        raise StoreError(
            f"Store answered {len(results)} results for an {operation} batch of {len(batch)}",
            batch=batch,
        )
    return results
