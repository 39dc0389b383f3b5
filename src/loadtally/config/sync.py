"""Defaults for store access and reconciliation runs."""

from __future__ import annotations

from dataclasses import dataclass

from .env import optional_env_float, optional_env_var

DEFAULT_STORE_TIMEOUT_SECONDS = 15.0
DEFAULT_SYNC_LOCK_TTL_SECONDS = 900.0
DEFAULT_TENANT_SCOPE = "default"


@dataclass(frozen=True, slots=True)
class SyncConfig:
    store_timeout_seconds: float = DEFAULT_STORE_TIMEOUT_SECONDS
    lock_ttl_seconds: float = DEFAULT_SYNC_LOCK_TTL_SECONDS
    tenant_scope: str = DEFAULT_TENANT_SCOPE
    actor: str | None = None


def get_sync_config() -> SyncConfig:
    return SyncConfig(
        store_timeout_seconds=optional_env_float(
            "LOADTALLY_STORE_TIMEOUT", DEFAULT_STORE_TIMEOUT_SECONDS
        ),
        lock_ttl_seconds=optional_env_float(
            "LOADTALLY_SYNC_LOCK_TTL", DEFAULT_SYNC_LOCK_TTL_SECONDS
        ),
        tenant_scope=optional_env_var("LOADTALLY_TENANT", DEFAULT_TENANT_SCOPE)
        or DEFAULT_TENANT_SCOPE,
        actor=optional_env_var("LOADTALLY_ACTOR"),
    )
