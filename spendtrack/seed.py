"""Idempotent seeding of the system default categories."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from . import models
from .config import get_settings
from .crud.categories import generate_color_code, normalise_color_code

LOG = logging.getLogger(__name__)

__all__ = ["DefaultCategory", "load_default_categories", "seed_default_categories"]


@dataclass(frozen=True, slots=True)
class DefaultCategory:
    name: str
    description: Optional[str] = None
    color_code: Optional[str] = None


def read_yaml(path: Path | str) -> object:
    """Read a YAML file and return the corresponding Python object."""

    with Path(path).open("r", encoding="utf-8") as handle:
        return yaml.safe_load(handle)


def load_default_categories(path: Path | str | None = None) -> list[DefaultCategory]:
    """Parse the default category list from ``path`` (or the configured file).

    Raises:
        ValueError: If the document is not a ``categories`` list of mappings
            with a non-empty ``name``.
    """

    source = Path(path) if path is not None else get_settings().default_categories_path
    payload = read_yaml(source) or {}
    entries = payload.get("categories") if isinstance(payload, dict) else None
    if not isinstance(entries, list):
        raise ValueError(f"{source}: expected a top-level 'categories' list")

    defaults: list[DefaultCategory] = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict) or not str(entry.get("name") or "").strip():
            raise ValueError(f"{source}: categories[{index}] must define a non-empty name")
        defaults.append(
            DefaultCategory(
                name=str(entry["name"]).strip(),
                description=entry.get("description"),
                color_code=entry.get("color_code"),
            )
        )
    return defaults


def seed_default_categories(session: Session, path: Path | str | None = None) -> int:
    """Insert the default categories unless any category already exists.

    Returns:
        Number of categories inserted (``0`` when the store was not empty).
    """

    existing = session.scalar(select(func.count(models.Category.id))) or 0
    if existing:
        LOG.info("Categories already seeded, skipping")
        return 0

    defaults = load_default_categories(path)
    for default in defaults:
        session.add(
            models.Category(
                user_id=None,
                name=default.name,
                description=default.description,
                color_code=(
                    normalise_color_code(default.color_code) if default.color_code else generate_color_code()
                ),
                is_default=True,
            )
        )
    session.flush()
    LOG.info("Seeded %d default categories", len(defaults))
    return len(defaults)
