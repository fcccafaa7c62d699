"""SQLAlchemy table metadata for generic records."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Final

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Dialect,
    ForeignKey,
    Index,
    MetaData,
    String,
    Table,
    TypeDecorator,
)

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

    from recordlink.domain.model import FieldValue

log = logging.getLogger(__name__)

ID_LENGTH: Final[int] = 36


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


def utcnow() -> datetime:
    return datetime.now(tz=UTC)


metadata = MetaData(
    naming_convention={
        "ix": "ix_%(column_0_label)s",
        "uq": "uq_%(table_name)s_%(column_0_label)s",
        "ck": "ck_%(table_name)s_%(constraint_name)s",
        "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
        "pk": "pk_%(table_name)s",
    }
)

record_table = Table(
    "record",
    metadata,
    Column("id", String(ID_LENGTH), primary_key=True),
    Column("kind", String, nullable=False, index=True),
    Column("fields", JSON, nullable=False),
    Column("created_at", UTCDateTime, nullable=False, default=utcnow),
    Column("updated_at", UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow),
)

# One row per (record, field) so exact-match and membership filters stay portable
# across dialects without JSON path support.
record_field_table = Table(
    "record_field",
    metadata,
    Column(
        "record_id",
        String(ID_LENGTH),
        ForeignKey("record.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("name", String, primary_key=True),
    Column("value", String, nullable=False),
    Index("ix_record_field_name_value", "name", "value"),
)


def serialize_value(value: FieldValue) -> str:
    """Serialize a field value so equal values (including type) compare equal as text."""
    return json.dumps(value, separators=(",", ":"))


def create_all_tables(engine: Engine) -> None:
    """Create database tables for the record metadata."""

    log.info("Creating all tables")
    metadata.create_all(engine)
