"""Schema migrations for the inventory store."""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import TYPE_CHECKING, Final

from alembic import command
from alembic.config import Config

from loadtally.config import get_database_uri

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

MIGRATIONS_PATH: Final[Path] = Path(__file__).resolve().parent
PYPROJECT_PATH: Final[Path] = MIGRATIONS_PATH.parents[4] / "pyproject.toml"

# resolved from this module, never from the working directory
_PATH_OPTIONS: Final = frozenset({"script_location", "prepend_sys_path"})


def _extra_options() -> dict[str, str]:
    """``[tool.alembic]`` entries other than the path options, if a checkout is present."""
    if not PYPROJECT_PATH.is_file():
        return {}
    with PYPROJECT_PATH.open("rb") as handle:
        section = tomllib.load(handle).get("tool", {}).get("alembic", {})
    return {str(key): str(value) for key, value in section.items() if key not in _PATH_OPTIONS}


def alembic_config() -> Config:
    config = Config()
    config.set_main_option("script_location", str(MIGRATIONS_PATH))
    for key, value in _extra_options().items():
        config.set_main_option(key, value)
    return config


def upgrade_head(*, engine: Engine | None = None, database_uri: str | None = None) -> None:
    """Bring the schema to the latest revision.

    With ``engine`` the upgrade runs on one of its connections, so in-memory
    SQLite databases see the tables afterwards.
    """
    config = alembic_config()
    if engine is None:
        config.set_main_option("sqlalchemy.url", database_uri or get_database_uri())
        command.upgrade(config, "head")
        return
    with engine.begin() as connection:
        config.attributes["connection"] = connection
        command.upgrade(config, "head")
