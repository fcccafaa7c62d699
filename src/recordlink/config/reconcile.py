"""Reconciliation defaults: natural-key field and upsert markers."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Final

from .errors import ConfigurationError

DEFAULT_PARENT_KEY_FIELD: Final[str] = "name"
DEFAULT_MARKER_FIELD: Final[str] = "status"
DEFAULT_FOUND_MARKER: Final[str] = "Updated"
DEFAULT_NEW_MARKER: Final[str] = "New"


@dataclass(frozen=True, slots=True)
class ReconcileConfig:
    """Field names and marker values used when matching by natural key.

    ``marker_field=None`` disables marking entirely.
    """

    parent_key_field: str = DEFAULT_PARENT_KEY_FIELD
    marker_field: str | None = DEFAULT_MARKER_FIELD
    found_marker: str = DEFAULT_FOUND_MARKER
    new_marker: str = DEFAULT_NEW_MARKER

    def __post_init__(self) -> None:
        if not self.parent_key_field.strip():
            raise ConfigurationError("parent_key_field must not be blank")
        if self.marker_field is not None and self.found_marker == self.new_marker:
            raise ConfigurationError("found_marker and new_marker must differ")


def get_reconcile_config() -> ReconcileConfig:
    marker_field = os.getenv("RECORDLINK_MARKER_FIELD", DEFAULT_MARKER_FIELD)
    return ReconcileConfig(
        parent_key_field=os.getenv("RECORDLINK_PARENT_KEY_FIELD", DEFAULT_PARENT_KEY_FIELD),
        marker_field=marker_field.strip() or None,
        found_marker=os.getenv("RECORDLINK_FOUND_MARKER", DEFAULT_FOUND_MARKER),
        new_marker=os.getenv("RECORDLINK_NEW_MARKER", DEFAULT_NEW_MARKER),
    )
