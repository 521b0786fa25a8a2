"""Environment driven settings for the spendtrack service."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import cache
from pathlib import Path
from typing import Final

PACKAGE_ROOT: Final[Path] = Path(__file__).resolve().parent
DEFAULT_CATEGORIES_PATH: Final[Path] = PACKAGE_ROOT / "data" / "default_categories.yaml"
DEFAULT_SQLITE_PATH: Final[Path] = PACKAGE_ROOT / "spendtrack.db"
DEFAULT_API_PREFIX: Final[str] = "/api/v1"
DEFAULT_LOG_DIR: Final[Path] = Path("artifacts") / "logs"

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True, slots=True)
class Settings:
    """Runtime configuration resolved once per process.

    Attributes:
      database_url: SQLAlchemy URL of the backing database.
      api_prefix: Versioned prefix under which every resource route is mounted.
      cors_origins: Origins accepted by the CORS middleware.
      default_categories_path: YAML file listing the seeded default categories.
      seed_on_startup: Whether the application lifespan seeds default categories.
      log_dir: Directory receiving the JSON audit log.
    """

    database_url: str
    api_prefix: str = DEFAULT_API_PREFIX
    cors_origins: tuple[str, ...] = ("*",)
    default_categories_path: Path = DEFAULT_CATEGORIES_PATH
    seed_on_startup: bool = True
    log_dir: Path = DEFAULT_LOG_DIR


def _env_flag(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUTHY


def _database_url() -> str:
    url = os.environ.get("SPENDTRACK_DATABASE_URL", "").strip()
    if url:
        return url
    path = os.environ.get("SPENDTRACK_DB_PATH", str(DEFAULT_SQLITE_PATH))
    return f"sqlite:///{path}"


def _cors_origins() -> tuple[str, ...]:
    raw = os.environ.get("SPENDTRACK_CORS_ORIGINS", "*")
    origins = tuple(item.strip() for item in raw.split(",") if item.strip())
    return origins or ("*",)


def load_settings() -> Settings:
    """Build a :class:`Settings` instance from the current environment."""

    prefix = os.environ.get("SPENDTRACK_API_PREFIX", DEFAULT_API_PREFIX).strip().rstrip("/")
    categories = os.environ.get("SPENDTRACK_DEFAULT_CATEGORIES")
    return Settings(
        database_url=_database_url(),
        api_prefix=prefix,
        cors_origins=_cors_origins(),
        default_categories_path=Path(categories) if categories else DEFAULT_CATEGORIES_PATH,
        seed_on_startup=_env_flag("SPENDTRACK_SEED_ON_STARTUP", True),
        log_dir=Path(os.environ.get("SPENDTRACK_LOG_DIR", str(DEFAULT_LOG_DIR))),
    )


@cache
def get_settings() -> Settings:
    """Return the process-wide settings, reading the environment on first use."""

    return load_settings()


__all__ = ["Settings", "get_settings", "load_settings"]
