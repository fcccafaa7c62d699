"""Entity store backed by a SQLAlchemy session."""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING

from sqlalchemy import delete, select, update
from sqlalchemy.exc import DataError, IntegrityError, SQLAlchemyError

from recordlink.adapters.sqlalchemy.mappings import (
    record_field_table,
    record_table,
    serialize_value,
    utcnow,
)
from recordlink.domain.model import Entity, RecordFailure, RecordSuccess
from recordlink.domain.ports import is_membership
from recordlink.domain.reconciliation.errors import StoreError

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from sqlalchemy.orm import Session
    from sqlalchemy.sql import Select

    from recordlink.domain.model import EntityId, FieldValue, RecordResult
    from recordlink.domain.ports import FieldFilters

log = logging.getLogger(__name__)

# Errors attributable to one record; anything else aborts the batch.
_RECORD_ERRORS = (IntegrityError, DataError)


class _RecordRejected(Exception):
    """Raised inside a savepoint to reject a single record."""


class SqlAlchemyEntityStore:
    """Persist entities as JSON rows plus a per-field lookup table.

    Each record of a batch runs in its own savepoint so a rejected record does not
    undo the others. Transaction boundaries belong to the caller's session.
    """

    def __init__(
        self,
        session: Session,
        *,
        unique_fields: Mapping[str, Sequence[str]] | None = None,
    ) -> None:
        self.session = session
        self._unique_fields = {kind: tuple(names) for kind, names in (unique_fields or {}).items()}

    def query(self, kind: str, filters: FieldFilters) -> list[Entity]:
        stmt = self._select(kind, filters)
        try:
            rows = self.session.execute(stmt).all()
        except SQLAlchemyError as exc:
            raise StoreError(f"Query for {kind} failed: {exc}") from exc
        log.debug("Query %s %s returned %d rows", kind, sorted(filters), len(rows))
        return [Entity(kind=row.kind, fields=dict(row.fields), id=row.id) for row in rows]

    def insert_batch(self, entities: Sequence[Entity]) -> list[RecordResult]:
        return [self._run(entity, self._insert) for entity in entities]

    def update_batch(self, entities: Sequence[Entity]) -> list[RecordResult]:
        return [self._run(entity, self._update) for entity in entities]

    def delete_batch(self, ids: Sequence[EntityId]) -> list[RecordResult]:
        results: list[RecordResult] = []
        for entity_id in ids:
            try:
                with self.session.begin_nested():
                    self.session.execute(
                        delete(record_field_table).where(
                            record_field_table.c.record_id == entity_id
                        )
                    )
                    deleted = self.session.execute(
                        delete(record_table).where(record_table.c.id == entity_id)
                    )
                    if deleted.rowcount == 0:
                        raise _RecordRejected("no such record")
            except _RecordRejected as exc:
                results.append(RecordFailure(str(exc), id=entity_id))
            except _RECORD_ERRORS as exc:
                results.append(RecordFailure(str(exc.orig or exc), id=entity_id))
            except SQLAlchemyError as exc:
                raise StoreError(f"Delete batch failed: {exc}") from exc
            else:
                results.append(RecordSuccess(entity_id))
        return results

    def _run(self, entity: Entity, operation: _Operation) -> RecordResult:
        try:
            with self.session.begin_nested():
                entity_id = operation(entity)
        except _RecordRejected as exc:
            return RecordFailure(str(exc), entity=entity, id=entity.id)
        except _RECORD_ERRORS as exc:
            return RecordFailure(str(exc.orig or exc), entity=entity, id=entity.id)
        except SQLAlchemyError as exc:
            raise StoreError(f"Batch on {entity.kind} failed: {exc}", batch=[entity]) from exc
        return RecordSuccess(entity_id)

    def _insert(self, entity: Entity) -> EntityId:
        if entity.id is not None:
            raise _RecordRejected("entity already has an id")
        self._check_unique(entity.kind, entity.fields, exclude=None)
        entity_id = str(uuid.uuid4())
        self.session.execute(
            record_table.insert().values(id=entity_id, kind=entity.kind, fields=dict(entity.fields))
        )
        self._write_fields(entity_id, entity.fields)
        return entity_id

    def _update(self, entity: Entity) -> EntityId:
        if entity.id is None:
            raise _RecordRejected("no such record")
        row = self.session.execute(
            select(record_table.c.kind, record_table.c.fields).where(
                record_table.c.id == entity.id
            )
        ).one_or_none()
        if row is None:
            raise _RecordRejected("no such record")
        if row.kind != entity.kind:
            raise _RecordRejected(f"record is a {row.kind}")
        merged = {**row.fields, **entity.fields}
        self._check_unique(entity.kind, merged, exclude=entity.id)
        self.session.execute(
            update(record_table)
            .where(record_table.c.id == entity.id)
            .values(fields=merged, updated_at=utcnow())
        )
        self.session.execute(
            delete(record_field_table).where(record_field_table.c.record_id == entity.id)
        )
        self._write_fields(entity.id, merged)
        return entity.id

    def _write_fields(self, entity_id: EntityId, fields: Mapping[str, FieldValue]) -> None:
        if not fields:
            return
        self.session.execute(
            record_field_table.insert(),
            [
                {"record_id": entity_id, "name": name, "value": serialize_value(value)}
                for name, value in fields.items()
            ],
        )

    def _check_unique(
        self,
        kind: str,
        fields: Mapping[str, FieldValue],
        *,
        exclude: EntityId | None,
    ) -> None:
        for name in self._unique_fields.get(kind, ()):
            if name not in fields:
                continue
            stmt = (
                select(record_table.c.id)
                .join(record_field_table, record_field_table.c.record_id == record_table.c.id)
                .where(record_table.c.kind == kind)
                .where(record_field_table.c.name == name)
                .where(record_field_table.c.value == serialize_value(fields[name]))
                .limit(1)
            )
            if exclude is not None:
                stmt = stmt.where(record_table.c.id != exclude)
            if self.session.execute(stmt).scalar_one_or_none() is not None:
                raise _RecordRejected(f"duplicate {kind}.{name}={fields[name]!r}")

    @staticmethod
    def _select(kind: str, filters: FieldFilters) -> Select[tuple[str, str, dict[str, FieldValue]]]:
        stmt = select(record_table.c.id, record_table.c.kind, record_table.c.fields).where(
            record_table.c.kind == kind
        )
        for name, expected in filters.items():
            matching = select(record_field_table.c.record_id).where(
                record_field_table.c.name == name
            )
            if is_membership(expected):
                values = [serialize_value(value) for value in expected]  # type: ignore[union-attr]
                matching = matching.where(record_field_table.c.value.in_(values))
            else:
                matching = matching.where(
                    record_field_table.c.value == serialize_value(expected)  # type: ignore[arg-type]
                )
            stmt = stmt.where(record_table.c.id.in_(matching))
        # oldest first, so "first match" on duplicate keys is stable across runs
        return stmt.order_by(record_table.c.created_at, record_table.c.id)


if TYPE_CHECKING:
    from collections.abc import Callable
    from typing import cast

    from recordlink.domain.ports import EntityStore

    type _Operation = Callable[[Entity], EntityId]

    _store_check: EntityStore = SqlAlchemyEntityStore(cast("Session", object()))
