"""Application configuration helpers."""

from __future__ import annotations

from .env import load_environment
from .errors import ConfigurationError
from .reconcile import ReconcileConfig, get_reconcile_config
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config

__all__ = [
    "ConfigurationError",
    "DatabaseConfig",
    "ReconcileConfig",
    "StorageConfig",
    "get_database_config",
    "get_reconcile_config",
    "get_storage_config",
    "load_environment",
]
