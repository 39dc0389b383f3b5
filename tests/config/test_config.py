from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from loadtally.config import (
    ConfigurationError,
    MissingConfigurationError,
    get_database_config,
    get_storage_config,
    get_sync_config,
    optional_env_float,
    optional_env_var,
    require_env_var,
    require_env_vars,
)

if TYPE_CHECKING:
    from pathlib import Path


def test_require_env_vars_returns_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_VAR", "value")

    result = require_env_vars(["EXAMPLE_VAR"])

    assert result["EXAMPLE_VAR"] == "value"


def test_require_env_vars_lists_every_missing_name(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("MISSING_A", raising=False)
    monkeypatch.setenv("MISSING_B", "   ")

    with pytest.raises(MissingConfigurationError) as exc:
        require_env_vars(["MISSING_B", "MISSING_A"])

    assert "MISSING_A, MISSING_B" in str(exc.value)


def test_require_env_var_handles_blank_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_VAR", "   ")

    with pytest.raises(MissingConfigurationError):
        require_env_var("EXAMPLE_VAR")


def test_optional_env_var_strips_and_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_VAR", "  padded  ")
    monkeypatch.setenv("BLANK_VAR", " ")

    assert optional_env_var("EXAMPLE_VAR") == "padded"
    assert optional_env_var("BLANK_VAR", "fallback") == "fallback"


@pytest.mark.parametrize("raw", ["soon", "0", "-5"])
def test_optional_env_float_rejects_bad_values(
    monkeypatch: pytest.MonkeyPatch, raw: str
) -> None:
    monkeypatch.setenv("EXAMPLE_TIMEOUT", raw)

    with pytest.raises(ConfigurationError):
        optional_env_float("EXAMPLE_TIMEOUT", 1.0)


def test_sync_config_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "LOADTALLY_STORE_TIMEOUT",
        "LOADTALLY_SYNC_LOCK_TTL",
        "LOADTALLY_TENANT",
        "LOADTALLY_ACTOR",
    ):
        monkeypatch.delenv(name, raising=False)

    config = get_sync_config()

    assert config.store_timeout_seconds == 15.0
    assert config.lock_ttl_seconds == 900.0
    assert config.tenant_scope == "default"
    assert config.actor is None


def test_sync_config_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LOADTALLY_STORE_TIMEOUT", "2.5")
    monkeypatch.setenv("LOADTALLY_TENANT", "store-7")
    monkeypatch.setenv("LOADTALLY_ACTOR", "dana")

    config = get_sync_config()

    assert config.store_timeout_seconds == 2.5
    assert (config.tenant_scope, config.actor) == ("store-7", "dana")


def test_database_uri_prefers_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URI", "postgresql+psycopg://db/loadtally")

    assert get_database_config().uri == "postgresql+psycopg://db/loadtally"


def test_database_uri_falls_back_to_data_dir(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.delenv("DATABASE_URI", raising=False)
    monkeypatch.setenv("LOADTALLY_DATA_DIR", str(tmp_path))

    uri = get_database_config().uri

    assert uri == f"sqlite+pysqlite:///{tmp_path.resolve() / 'loadtally.db'}"


def test_snapshot_path_defaults_under_data_dir(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.setenv("LOADTALLY_DATA_DIR", str(tmp_path))
    monkeypatch.delenv("LOADTALLY_SNAPSHOT_DIR", raising=False)

    assert get_storage_config().snapshot_path() == tmp_path.resolve() / "snapshots"
