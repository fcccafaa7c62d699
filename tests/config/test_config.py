from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from recordlink.config import (
    ConfigurationError,
    ReconcileConfig,
    get_database_config,
    get_reconcile_config,
    get_storage_config,
    load_environment,
)

if TYPE_CHECKING:
    from pathlib import Path


def test_reconcile_config_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "RECORDLINK_PARENT_KEY_FIELD",
        "RECORDLINK_MARKER_FIELD",
        "RECORDLINK_FOUND_MARKER",
        "RECORDLINK_NEW_MARKER",
    ):
        monkeypatch.delenv(name, raising=False)

    config = get_reconcile_config()

    assert config == ReconcileConfig()
    assert config.parent_key_field == "name"
    assert config.marker_field == "status"
    assert (config.found_marker, config.new_marker) == ("Updated", "New")


def test_reconcile_config_reads_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RECORDLINK_PARENT_KEY_FIELD", "Name")
    monkeypatch.setenv("RECORDLINK_MARKER_FIELD", " ")
    monkeypatch.setenv("RECORDLINK_FOUND_MARKER", "Seen")

    config = get_reconcile_config()

    assert config.parent_key_field == "Name"
    assert config.marker_field is None
    assert config.found_marker == "Seen"


def test_reconcile_config_rejects_identical_markers() -> None:
    with pytest.raises(ConfigurationError):
        ReconcileConfig(found_marker="Same", new_marker="Same")


def test_database_config_prefers_environment(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.setenv("DATABASE_URI", "sqlite+pysqlite:///:memory:")
    assert get_database_config().uri == "sqlite+pysqlite:///:memory:"

    monkeypatch.delenv("DATABASE_URI")
    monkeypatch.setenv("RECORDLINK_DATA_DIR", str(tmp_path))
    storage = get_storage_config()
    assert storage.resolve_data_dir() == tmp_path.resolve()
    assert get_database_config().uri.endswith("recordlink.db")


def test_load_environment_reads_dotenv_file(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.setenv("RECORDLINK_NEW_MARKER", "")
    monkeypatch.delenv("RECORDLINK_NEW_MARKER")
    env_file = tmp_path / ".env"
    env_file.write_text("RECORDLINK_NEW_MARKER=Fresh\n")

    assert load_environment(env_file)
    assert get_reconcile_config().new_marker == "Fresh"
