"""Error taxonomy for the reconciliation engine."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from recordlink.domain.model import Entity, FieldValue, RecordFailure


class ReconciliationError(RuntimeError):
    """Base class for engine errors."""


class StoreError(ReconciliationError):
    """The store adapter failed, or a batch the engine depends on did not fully succeed.

    ``batch`` holds the entities of the offending call (if any) and ``failures``
    the ``(position, failure)`` pairs reported for it.
    """

    def __init__(
        self,
        message: str,
        *,
        batch: Sequence[Entity] = (),
        failures: Sequence[tuple[int, RecordFailure]] = (),
    ) -> None:
        super().__init__(message)
        self.batch = tuple(batch)
        self.failures = tuple(failures)


class UnresolvedParent(ReconciliationError):
    """A child could not be bound to any parent identifier after parent creation."""

    def __init__(self, key: FieldValue, child: Entity) -> None:
        super().__init__(f"No parent identifier for key {key!r}")
        self.key = key
        self.child = child


class MissingRelationKey(ReconciliationError):
    """A child does not carry the field used to match its parent."""

    def __init__(self, field: str, child: Entity) -> None:
        super().__init__(f"Child {child!r} has no value for relation field {field!r}")
        self.field = field
        self.child = child


class InvalidTransition(ReconciliationError):
    """A natural-key upsert was driven out of order."""

    def __init__(self, state: object, action: str) -> None:
        super().__init__(f"Cannot {action} from state {state}")
        self.state = state
        self.action = action
