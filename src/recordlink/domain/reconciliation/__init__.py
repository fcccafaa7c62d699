"""Batch reconciliation of child records against their parents.

Components, leaves first:
- ``key_index``: natural-key -> id lookup over a result set
- ``upsert``: insert/update routing with order-preserving results
- ``natural_key``: single-record find-or-create with status markers
- ``reconciler``: resolve, create and bind parents for a batch of children
"""

from __future__ import annotations

from .contracts import ReconcileResult, Relation, StagedChild, SyncResult
from .errors import (
    InvalidTransition,
    MissingRelationKey,
    ReconciliationError,
    StoreError,
    UnresolvedParent,
)
from .key_index import ParentIndex, build_key_index
from .natural_key import NaturalKeyOutcome, NaturalKeyUpsert, NaturalKeyUpserter, UpsertState
from .reconciler import Reconciler
from .upsert import BatchUpserter, MatchFn, match_by_id

__all__ = [
    "BatchUpserter",
    "InvalidTransition",
    "MatchFn",
    "MissingRelationKey",
    "NaturalKeyOutcome",
    "NaturalKeyUpsert",
    "NaturalKeyUpserter",
    "ParentIndex",
    "ReconcileResult",
    "ReconciliationError",
    "Reconciler",
    "Relation",
    "StagedChild",
    "StoreError",
    "SyncResult",
    "UnresolvedParent",
    "UpsertState",
    "build_key_index",
    "match_by_id",
]
