"""Per-record outcomes returned by batch store operations.

A batch call answers with one result per input record, in input order. A result
list containing at least one :class:`RecordFailure` is a partial batch failure;
it is reported as data rather than raised so callers can remediate per record.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .entity import Entity, EntityId


@dataclass(frozen=True, slots=True)
class RecordSuccess:
    id: EntityId

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True, slots=True)
class RecordFailure:
    error: str
    entity: Entity | None = None
    id: EntityId | None = None

    @property
    def ok(self) -> bool:
        return False


type RecordResult = RecordSuccess | RecordFailure


def has_failures(results: Sequence[RecordResult]) -> bool:
    return any(not result.ok for result in results)


def failures(results: Sequence[RecordResult]) -> list[tuple[int, RecordFailure]]:
    """Return ``(position, failure)`` pairs for every failed record."""
    return [
        (index, result) for index, result in enumerate(results) if isinstance(result, RecordFailure)
    ]
