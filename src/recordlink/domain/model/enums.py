"""Enumerations shared across the domain model."""

from __future__ import annotations

from enum import StrEnum


class EntityKind(StrEnum):
    """Business record kinds known to the engine.

    Stores accept any kind string; these are the ones the defaults are written for.
    """

    ACCOUNT = "account"
    CONTACT = "contact"
    OPPORTUNITY = "opportunity"
    LEAD = "lead"
    CASE = "case"
