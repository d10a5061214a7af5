"""Catalog loader — parses the static game tables from YAML.

Reads three files from the config directory:

- ``fortifications.yaml``: fort level → tier attributes
- ``levels.yaml``: player level → experience threshold
- ``units.yaml``: list of trainable unit types
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml

from kingdomserver.engine.catalog import GameCatalog
from kingdomserver.models.catalog import Fortification, UnitDefinition
from kingdomserver.models.user import UnitType

log = logging.getLogger(__name__)


def _read(path: Path):
    with path.open() as f:
        return yaml.safe_load(f)


def load_fortifications(path: str | Path) -> list[Fortification]:
    """Parse the fortification tiers, sorted by level."""
    data = _read(Path(path)) or {}
    tiers: list[Fortification] = []
    for level, attrs in data.items():
        if not isinstance(attrs, dict):
            continue
        tiers.append(Fortification(
            level=int(level),
            name=attrs.get("name", f"Level {level}"),
            level_requirement=int(attrs.get("level_requirement", 0)),
            hitpoints=int(attrs["hitpoints"]),
            cost_per_repair_point=int(attrs.get("cost_per_repair_point", 0)),
            gold_per_turn=int(attrs.get("gold_per_turn", 0)),
            defense_bonus_percentage=int(attrs.get("defense_bonus_percentage", 0)),
            cost=int(attrs.get("cost", 0)),
        ))
    return sorted(tiers, key=lambda t: t.level)


def load_levels(path: str | Path) -> dict[int, int]:
    """Parse the level → experience threshold table."""
    data = _read(Path(path)) or {}
    return {int(level): int(xp) for level, xp in data.items()}


def load_unit_definitions(path: str | Path) -> list[UnitDefinition]:
    """Parse the list of unit types."""
    data = _read(Path(path)) or []
    return [
        UnitDefinition(
            name=entry["name"],
            type=UnitType(entry["type"]),
            level=int(entry.get("level", 1)),
            bonus=int(entry.get("bonus", 0)),
            cost=int(entry.get("cost", 0)),
        )
        for entry in data
    ]


def load_catalog(config_dir: str | Path = "config") -> GameCatalog:
    """Load all static tables from ``config_dir`` into a :class:`GameCatalog`."""
    config_dir = Path(config_dir)
    catalog = GameCatalog(
        fortifications=load_fortifications(config_dir / "fortifications.yaml"),
        levels=load_levels(config_dir / "levels.yaml"),
        unit_definitions=load_unit_definitions(config_dir / "units.yaml"),
    )
    log.info(
        "Catalog loaded from %s: %d fortifications, %d levels, %d unit types",
        config_dir, len(catalog.fortifications), len(catalog.levels),
        len(catalog.unit_definitions),
    )
    return catalog
