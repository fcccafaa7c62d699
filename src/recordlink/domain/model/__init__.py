"""Domain model for generic business records."""

from __future__ import annotations

from .entity import Entity, EntityId, FieldValue
from .enums import EntityKind
from .results import RecordFailure, RecordResult, RecordSuccess, failures, has_failures

__all__ = [
    "Entity",
    "EntityId",
    "EntityKind",
    "FieldValue",
    "RecordFailure",
    "RecordResult",
    "RecordSuccess",
    "failures",
    "has_failures",
]
