"""SQLAlchemy adapter package for recordlink."""

from __future__ import annotations

from .mappings import create_all_tables, metadata, record_field_table, record_table
from .store import SqlAlchemyEntityStore
from .unit_of_work import (
    SqlAlchemyUnitOfWork,
    StartupError,
    configured_engine,
    create_store_engine,
    is_started,
    shutdown,
    startup,
)

__all__ = [
    "SqlAlchemyEntityStore",
    "SqlAlchemyUnitOfWork",
    "StartupError",
    "configured_engine",
    "create_all_tables",
    "create_store_engine",
    "is_started",
    "metadata",
    "record_field_table",
    "record_table",
    "shutdown",
    "startup",
]
