"""Single-record upsert keyed by a human-meaningful field.

One query decides between the two branches::

    UNQUERIED --query--> FOUND | NOT_FOUND --persist--> PERSISTED

The found branch updates the first matching record (identifier preserved); the
not-found branch inserts a new one. Each branch stamps its own marker value so
callers can tell them apart afterwards. A found record with nothing to write
(no fields, no marker) is resolved without a second round trip.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from recordlink.config.reconcile import ReconcileConfig
from recordlink.domain.model import Entity, RecordFailure, RecordSuccess

from .errors import InvalidTransition, StoreError

if TYPE_CHECKING:
    from collections.abc import Mapping

    from recordlink.domain.model import EntityId, FieldValue
    from recordlink.domain.ports import EntityStore

    from .upsert import BatchUpserter

log = logging.getLogger(__name__)


class UpsertState(StrEnum):
    UNQUERIED = "unqueried"
    FOUND = "found"
    NOT_FOUND = "not_found"
    PERSISTED = "persisted"


@dataclass(slots=True)
class NaturalKeyOutcome:
    """Terminal result of one natural-key upsert."""

    entity: Entity
    found: bool
    state: UpsertState = UpsertState.PERSISTED

    @property
    def created(self) -> bool:
        return not self.found

    @property
    def id(self) -> EntityId:
        if self.entity.id is None:
            raise StoreError("Persisted entity carries no id", batch=[self.entity])
        return self.entity.id


@dataclass(slots=True, kw_only=True)
class NaturalKeyUpsert:
    """Drive one natural-key upsert through its states."""

    store: EntityStore
    upserter: BatchUpserter
    kind: str
    key_field: str
    key_value: FieldValue
    marker_field: str | None = None
    found_marker: str = ""
    new_marker: str = ""
    state: UpsertState = UpsertState.UNQUERIED
    entity: Entity | None = field(default=None, init=False)

    def query(self) -> UpsertState:
        if self.state is not UpsertState.UNQUERIED:
            raise InvalidTransition(self.state, "query")
        matches = self.store.query(self.kind, {self.key_field: self.key_value})
        # first match wins on duplicate keys
        existing = next((match for match in matches if match.id is not None), None)
        if existing is None:
            self.entity = Entity(kind=self.kind, fields={self.key_field: self.key_value})
            self.state = UpsertState.NOT_FOUND
        else:
            if len(matches) > 1:
                log.warning(
                    "%d %s records share %s=%r; using %s",
                    len(matches),
                    self.kind,
                    self.key_field,
                    self.key_value,
                    existing.id,
                )
            self.entity = existing
            self.state = UpsertState.FOUND
        return self.state

    def resolve(self) -> NaturalKeyOutcome:
        """Accept a found record as is, without writing it back."""
        if self.state is not UpsertState.FOUND or self.entity is None:
            raise InvalidTransition(self.state, "resolve")
        self.state = UpsertState.PERSISTED
        return NaturalKeyOutcome(entity=self.entity, found=True)

    def persist(self, fields: Mapping[str, FieldValue] | None = None) -> NaturalKeyOutcome:
        if self.state not in (UpsertState.FOUND, UpsertState.NOT_FOUND) or self.entity is None:
            raise InvalidTransition(self.state, "persist")
        found = self.state is UpsertState.FOUND
        entity = self.entity
        if fields:
            entity.update(fields)
        # the natural key itself is never overwritten by caller fields
        entity.set(self.key_field, self.key_value)
        if self.marker_field is not None:
            entity.set(self.marker_field, self.found_marker if found else self.new_marker)

        [result] = self.upserter.upsert([entity])
        if isinstance(result, RecordFailure):
            raise StoreError(
                f"Failed to persist {self.kind} {self.key_field}={self.key_value!r}: "
                f"{result.error}",
                batch=[entity],
                failures=[(0, result)],
            )
        if isinstance(result, RecordSuccess) and found and result.id != entity.id:
            raise StoreError(
                f"Store changed the id of {self.kind} {entity.id} to {result.id}",
                batch=[entity],
            )
        self.state = UpsertState.PERSISTED
        return NaturalKeyOutcome(entity=entity, found=found)


@dataclass(slots=True)
class NaturalKeyUpserter:
    """Factory running natural-key upserts with configured markers."""

    store: EntityStore
    upserter: BatchUpserter
    config: ReconcileConfig = field(default_factory=ReconcileConfig)

    def begin(
        self,
        kind: str,
        key_field: str,
        key_value: FieldValue,
        *,
        marked: bool = True,
    ) -> NaturalKeyUpsert:
        return NaturalKeyUpsert(
            store=self.store,
            upserter=self.upserter,
            kind=kind,
            key_field=key_field,
            key_value=key_value,
            marker_field=self.config.marker_field if marked else None,
            found_marker=self.config.found_marker,
            new_marker=self.config.new_marker,
        )

    def upsert(
        self,
        kind: str,
        key_field: str,
        key_value: FieldValue,
        fields: Mapping[str, FieldValue] | None = None,
        *,
        marked: bool = True,
    ) -> NaturalKeyOutcome:
        operation = self.begin(kind, key_field, key_value, marked=marked)
        state = operation.query()
        if state is UpsertState.FOUND and not fields and operation.marker_field is None:
            outcome = operation.resolve()
        else:
            outcome = operation.persist(fields)
        log.debug(
            "%s %s %s=%r as %s",
            "Updated" if outcome.found else "Created",
            kind,
            key_field,
            key_value,
            outcome.id,
        )
        return outcome
