"""Game configuration — loads tunable constants from config/game.yaml.

Provides a single ``GameConfig`` dataclass that is loaded once at startup
and then passed (or injected) wherever constants are needed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

log = logging.getLogger(__name__)

DEFAULT_GAME_CONFIG_PATH = "config/game.yaml"


@dataclass
class GameConfig:
    """All tunable gameplay constants.

    Loaded from ``config/game.yaml``.  Every field has a sensible default
    so the server can start even without the file.
    """

    # -- Turns -------------------------------------------------------
    turn_length_seconds: float = 1800.0
    attack_turns_per_turn: int = 1

    # -- Bank --------------------------------------------------------
    maximum_bank_deposits: int = 1
    bank_history_window_hours: int = 24

    # -- New account defaults ----------------------------------------
    starting_gold: int = 10_000
    starting_gold_in_bank: int = 0
    starting_attack_turns: int = 50
    starting_fort_level: int = 1
    starting_units: list[dict[str, Any]] = field(default_factory=lambda: [
        {"type": "CITIZEN", "level": 1, "quantity": 100},
        {"type": "WORKER", "level": 1, "quantity": 0},
    ])

    # -- Auth validation ---------------------------------------------
    min_display_name_length: int = 3
    max_display_name_length: int = 20
    min_password_length: int = 4
    token_lifetime_hours: float = 24.0

    # -- Network / storage -------------------------------------------
    rest_port: int = 8080
    db_path: str = "kingdom.db"


def load_game_config(path: str = DEFAULT_GAME_CONFIG_PATH) -> GameConfig:
    """Load game configuration from a YAML file.

    Missing keys fall back to dataclass defaults.  If the file does not
    exist, a warning is logged and pure defaults are returned.
    """
    p = Path(path)
    if not p.exists():
        log.warning("Game config not found at %s — using defaults", p)
        return GameConfig()

    with p.open() as f:
        raw = yaml.safe_load(f) or {}

    log.info("Loaded game config from %s (%d keys)", p, len(raw))

    unknown = [k for k in raw if k not in GameConfig.__dataclass_fields__]
    if unknown:
        log.warning("Ignoring unknown game config keys: %s", ", ".join(sorted(unknown)))

    return GameConfig(**{
        k: v for k, v in raw.items()
        if k in GameConfig.__dataclass_fields__
    })
