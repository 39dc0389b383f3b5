"""Where the SQLite store and dropped ERP exports live on disk."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

APP_DIR_NAME: Final[str] = "loadtally"
DEFAULT_DB_FILENAME: Final[str] = "loadtally.db"
SNAPSHOT_DIRNAME: Final[str] = "snapshots"


@dataclass(frozen=True, slots=True)
class StorageConfig:
    data_dir: Path
    database_filename: str = DEFAULT_DB_FILENAME
    snapshot_dir: Path | None = None

    def resolve_data_dir(self) -> Path:
        return self.data_dir.expanduser().resolve()

    def ensure_data_dir(self) -> Path:
        data_dir = self.resolve_data_dir()
        data_dir.mkdir(parents=True, exist_ok=True)
        return data_dir

    def database_path(self, *, ensure: bool = True) -> Path:
        base = self.ensure_data_dir() if ensure else self.resolve_data_dir()
        return base / self.database_filename

    def database_uri(self) -> str:
        return f"sqlite+pysqlite:///{self.database_path()}"

    def snapshot_path(self) -> Path:
        """Directory scanned for ``<Category>.csv`` / ``<Category>.jsonl`` exports."""

        if self.snapshot_dir is not None:
            return self.snapshot_dir.expanduser().resolve()
        return self.resolve_data_dir() / SNAPSHOT_DIRNAME


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    uri: str


def _default_data_dir() -> Path:
    base = os.getenv("XDG_DATA_HOME")
    base_path = Path(base) if base else (Path.home() / ".local" / "share")
    return (base_path / APP_DIR_NAME).expanduser().resolve()


def get_storage_config() -> StorageConfig:
    env_dir = os.getenv("LOADTALLY_DATA_DIR")
    snapshot_dir = os.getenv("LOADTALLY_SNAPSHOT_DIR")
    return StorageConfig(
        data_dir=Path(env_dir) if env_dir else _default_data_dir(),
        snapshot_dir=Path(snapshot_dir) if snapshot_dir else None,
    )


def get_database_config(*, storage: StorageConfig | None = None) -> DatabaseConfig:
    env_uri = os.getenv("DATABASE_URI")
    if env_uri:
        return DatabaseConfig(uri=env_uri)
    storage_config = storage or get_storage_config()
    return DatabaseConfig(uri=storage_config.database_uri())


def get_database_uri() -> str:
    return get_database_config().uri
