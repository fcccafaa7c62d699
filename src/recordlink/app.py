"""Application orchestration entry points."""

from __future__ import annotations

from collections.abc import Callable
from logging import getLogger
from typing import TYPE_CHECKING

from recordlink.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork, is_started, startup
from recordlink.config.env import load_environment
from recordlink.config.reconcile import ReconcileConfig, get_reconcile_config
from recordlink.domain.ports.unit_of_work import UnitOfWork
from recordlink.domain.reconciliation import (
    BatchUpserter,
    NaturalKeyUpserter,
    Reconciler,
    Relation,
)

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from recordlink.domain.model import Entity, FieldValue
    from recordlink.domain.ports import EntityStore
    from recordlink.domain.reconciliation import MatchFn, NaturalKeyOutcome, SyncResult

UnitOfWorkFactory = Callable[[], UnitOfWork]


log = getLogger(__name__)


def build_reconciler(store: EntityStore, config: ReconcileConfig | None = None) -> Reconciler:
    """Wire the reconciliation components around ``store``."""

    upserter = BatchUpserter(store)
    natural_key = NaturalKeyUpserter(store, upserter, _resolve_config(config))
    return Reconciler(store=store, upserter=upserter, natural_key=natural_key)


def relation_for(
    child_key_field: str,
    parent_kind: str,
    *,
    parent_ref_field: str | None = None,
    config: ReconcileConfig | None = None,
) -> Relation:
    """Build a :class:`Relation` using the configured parent key field."""

    effective = _resolve_config(config)
    return Relation(
        child_key_field=child_key_field,
        parent_kind=parent_kind,
        parent_key_field=effective.parent_key_field,
        parent_ref_field=parent_ref_field,
    )


def _resolve_config(config: ReconcileConfig | None) -> ReconcileConfig:
    if config is not None:
        return config
    load_environment()
    return get_reconcile_config()


def _default_unit_of_work() -> UnitOfWork:
    if not is_started():
        load_environment()
        startup()
    return SqlAlchemyUnitOfWork()


def reconcile_children(
    children: Sequence[Entity],
    relation: Relation,
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    match: MatchFn | None = None,
    config: ReconcileConfig | None = None,
    commit: bool = True,
) -> SyncResult:
    """Create missing parents, bind ``children`` and upsert them in one unit of work.

    Per-child failures are returned in the result, not raised; the transaction is
    still committed so successful records persist. Store errors roll back. Whenever
    the unit of work does not commit, ids handed out by its inserts are removed from
    the entities again so the same objects can be submitted in a later run.
    """

    factory = unit_of_work_factory or _default_unit_of_work
    log.info(
        "Starting reconciliation: children=%d, parent_kind=%s, key=%s",
        len(children),
        relation.parent_kind,
        relation.child_key_field,
    )
    with factory() as uow:
        reconciler = build_reconciler(uow.store, config)
        try:
            result = reconciler.sync(children, relation, match)
            if commit:
                uow.commit()
        except Exception:
            _discard_uncommitted(reconciler)
            raise
        if not commit:
            uow.rollback()
            _discard_uncommitted(reconciler)

    log.info(
        f"Finished reconciliation: bound={len(result.reconciled.children)}, "
        f"parents_created={len(result.reconciled.created_parents)}, "
        f"failed={len(result.failed)}, committed={commit}"
    )
    return result


def upsert_by_natural_key(
    kind: str,
    key_field: str,
    key_value: FieldValue,
    fields: Mapping[str, FieldValue] | None = None,
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    config: ReconcileConfig | None = None,
) -> NaturalKeyOutcome:
    """Find ``kind`` by ``key_field`` and update it, or create it, then commit."""

    factory = unit_of_work_factory or _default_unit_of_work
    with factory() as uow:
        reconciler = build_reconciler(uow.store, config)
        try:
            outcome = reconciler.natural_key.upsert(kind, key_field, key_value, fields)
            uow.commit()
        except Exception:
            _discard_uncommitted(reconciler)
            raise

    log.info(
        "%s %s %s=%r (%s)",
        "Updated" if outcome.found else "Created",
        kind,
        key_field,
        key_value,
        outcome.id,
    )
    return outcome


def _discard_uncommitted(reconciler: Reconciler) -> None:
    discarded = reconciler.upserter.discard_assigned()
    if discarded:
        log.info("Rolled back: cleared %d uncommitted ids", discarded)
