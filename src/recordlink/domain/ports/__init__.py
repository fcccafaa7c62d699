"""Domain port definitions for adapters."""

from __future__ import annotations

from .store import EntityStore, FieldFilters, FilterValue, is_membership
from .unit_of_work import UnitOfWork

__all__ = [
    "EntityStore",
    "FieldFilters",
    "FilterValue",
    "UnitOfWork",
    "is_membership",
]
