"""Port for the external record store consumed by the reconciliation engine."""

from __future__ import annotations

from collections.abc import Collection, Mapping
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from recordlink.domain.model import Entity, EntityId, FieldValue, RecordResult

type FilterValue = FieldValue | Collection[FieldValue]
type FieldFilters = Mapping[str, FilterValue]


@runtime_checkable
class EntityStore(Protocol):
    """Minimal batch contract for a persistent record store.

    Adapter-level failures (connectivity, invalid query, permissions) raise
    ``StoreError``. Per-record failures inside a batch are reported as
    ``RecordFailure`` entries, one result per input in input order.
    """

    def query(self, kind: str, filters: FieldFilters) -> Sequence[Entity]:
        """Return every entity of ``kind`` matching all ``filters`` exactly.

        A scalar filter value means equality, a collection means membership.
        The result order is unspecified.
        """
        ...

    def insert_batch(self, entities: Sequence[Entity]) -> Sequence[RecordResult]: ...

    def update_batch(self, entities: Sequence[Entity]) -> Sequence[RecordResult]: ...

    def delete_batch(self, ids: Sequence[EntityId]) -> Sequence[RecordResult]: ...


def is_membership(value: object) -> bool:
    """Whether a filter value should be matched by membership rather than equality."""
    return isinstance(value, Collection) and not isinstance(value, (str, bytes))
