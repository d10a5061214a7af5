"""Authentication service — login and signup.

Validates credentials against the database and creates new accounts with
the configured starting kingdom.
"""

from __future__ import annotations

import hashlib
import logging
import re
from typing import TYPE_CHECKING

from kingdomserver.models.user import PlayerClass, PlayerRace

if TYPE_CHECKING:
    from kingdomserver.engine.catalog import GameCatalog
    from kingdomserver.loaders.game_config_loader import GameConfig
    from kingdomserver.persistence.database import Database

log = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def hash_password(password: str) -> str:
    """Simple SHA-256 hash (sufficient for a game server)."""
    return hashlib.sha256(password.encode()).hexdigest()


def check_password(password: str, password_hash: str) -> bool:
    return hash_password(password) == password_hash


class AuthService:
    """Account creation and credential checks.

    Args:
        database: Database instance for user queries.
        catalog: Static tables, used for the starting fort hitpoints.
        game_config: Validation limits and starting values.
    """

    def __init__(self, database: Database, catalog: GameCatalog,
                 game_config: GameConfig) -> None:
        self._db = database
        self._catalog = catalog
        self._config = game_config

    async def login(self, email: str, password: str) -> int | None:
        """Authenticate a user. Returns the user ID on success, None on failure."""
        user = await self._db.fetch_user_by_email(email)
        if user is None:
            log.info("Login failed — unknown email: %s", email)
            return None
        if not check_password(password, user["password_hash"]):
            log.info("Login failed — wrong password for: %s", email)
            return None
        log.info("Login success: %s (id=%d)", email, user["id"])
        return user["id"]

    async def signup(
        self,
        display_name: str,
        email: str,
        password: str,
        race: str = PlayerRace.HUMAN.value,
        class_: str = PlayerClass.FIGHTER.value,
    ) -> int | str:
        """Create a new account. Returns the user ID on success, or an error string."""
        cfg = self._config
        if not display_name or len(display_name) < cfg.min_display_name_length:
            return f"Display name must be at least {cfg.min_display_name_length} characters"
        if len(display_name) > cfg.max_display_name_length:
            return f"Display name must be at most {cfg.max_display_name_length} characters"
        if not password or len(password) < cfg.min_password_length:
            return f"Password must be at least {cfg.min_password_length} characters"
        if not email or not _EMAIL_RE.match(email):
            return "Invalid email format"
        if race not in PlayerRace.__members__:
            return f"Unknown race: {race}"
        if class_ not in PlayerClass.__members__:
            return f"Unknown class: {class_}"

        if await self._db.fetch_user_by_email(email) is not None:
            return "Email already registered"
        if await self._db.fetch_user_by_display_name(display_name) is not None:
            return "Display name already taken"

        fort = self._catalog.fortification(cfg.starting_fort_level)
        user_id = await self._db.create_user(
            display_name=display_name,
            email=email,
            password_hash=hash_password(password),
            race=race,
            class_=class_,
            gold=cfg.starting_gold,
            gold_in_bank=cfg.starting_gold_in_bank,
            fort_level=cfg.starting_fort_level,
            fort_hitpoints=fort.hitpoints if fort else 0,
            attack_turns=cfg.starting_attack_turns,
            units=[dict(u) for u in cfg.starting_units],
        )
        log.info("Signup success: %s (id=%d, %s %s)", display_name, user_id, race, class_)
        return user_id
