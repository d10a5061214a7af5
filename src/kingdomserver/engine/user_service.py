"""User service — the game economy around a player.

Responsibilities:
- Loading users from the database
- Derived values that need the static tables (level, gold per turn,
  fort health, available unit types, bank deposits)
- Gold and banked gold bookkeeping
- Unit training
- Fort repair and upgrade
- Per-turn income

Actions return ``None`` on success or an error message.  They run under
the user's lock on freshly reloaded state; gold is written as a delta.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import fields
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Optional

from kingdomserver.models.bank_history import BankHistory
from kingdomserver.models.catalog import Fortification, FortHealth, UnitDefinition
from kingdomserver.models.user import (
    PlayerClass,
    PlayerRace,
    PlayerUnit,
    UnitType,
    User,
)
from kingdomserver.network.auth import check_password
from kingdomserver.util.events import FortificationChanged, UnitsTrained

if TYPE_CHECKING:
    from kingdomserver.engine.catalog import GameCatalog
    from kingdomserver.loaders.game_config_loader import GameConfig
    from kingdomserver.persistence.database import Database
    from kingdomserver.util.events import EventBus

log = logging.getLogger(__name__)


def user_from_row(row: dict) -> User:
    """Build a :class:`User` from a database row dict."""
    return User(
        id=row["id"],
        display_name=row["display_name"],
        email=row["email"],
        password_hash=row["password_hash"],
        race=PlayerRace(row["race"]),
        class_=PlayerClass(row["class"]),
        experience=row["experience"],
        gold=row["gold"],
        gold_in_bank=row["gold_in_bank"],
        fort_level=row["fort_level"],
        fort_hitpoints=row["fort_hitpoints"],
        attack_turns=row["attack_turns"],
        units=[PlayerUnit.from_dict(u) for u in row["units"]],
    )


class UserService:
    """Service for all user state management.

    Args:
        database: Connected database.
        catalog: Static game tables.
        event_bus: Event bus for inter-service communication.
        game_config: Tunable constants (bank limits, turn income).
    """

    def __init__(self, database: Database, catalog: GameCatalog, event_bus: EventBus,
                 game_config: GameConfig | None = None) -> None:
        self._db = database
        self._catalog = catalog
        self._events = event_bus
        self._locks: dict[int, asyncio.Lock] = {}

        if game_config is not None:
            self._max_deposits = game_config.maximum_bank_deposits
            self._history_window = timedelta(hours=game_config.bank_history_window_hours)
            self._attack_turns_per_turn = game_config.attack_turns_per_turn
        else:
            self._max_deposits = 1
            self._history_window = timedelta(hours=24)
            self._attack_turns_per_turn = 1

    @property
    def catalog(self) -> GameCatalog:
        return self._catalog

    # -- Lookups ---------------------------------------------------------

    async def fetch_by_id(self, user_id: int) -> Optional[User]:
        row = await self._db.fetch_user_by_id(user_id)
        return user_from_row(row) if row is not None else None

    async def fetch_by_email(self, email: str) -> Optional[User]:
        row = await self._db.fetch_user_by_email(email)
        return user_from_row(row) if row is not None else None

    async def fetch_all(self) -> list[User]:
        return [user_from_row(row) for row in await self._db.fetch_all_users()]

    def lock(self, user_id: int) -> asyncio.Lock:
        """The lock serializing all state changes of one user."""
        lock = self._locks.get(user_id)
        if lock is None:
            lock = self._locks[user_id] = asyncio.Lock()
        return lock

    async def reload(self, user: User) -> bool:
        """Refresh ``user`` in place from the database. False if it is gone."""
        row = await self._db.fetch_user_by_id(user.id)
        if row is None:
            return False
        fresh = user_from_row(row)
        for f in fields(User):
            setattr(user, f.name, getattr(fresh, f.name))
        return True

    # -- Derived values --------------------------------------------------

    def level(self, user: User) -> int:
        return self._catalog.level_for_experience(user.experience)

    def xp_to_next_level(self, user: User) -> int:
        return self._catalog.xp_to_next_level(user.experience)

    def fortification(self, user: User) -> Fortification:
        """The tier of the user's current fort level."""
        fort = self._catalog.fortification(user.fort_level)
        if fort is None:
            raise KeyError(f"Unknown fort level {user.fort_level} for user {user.id}")
        return fort

    def gold_per_turn(self, user: User) -> int:
        """Worker income plus the fortification's base income."""
        worker_gold = 0
        for unit in user.units_of_type(UnitType.WORKER):
            definition = self._catalog.unit_definition(unit.type, unit.level)
            if definition is None:
                log.warning("User %d: no unit definition for %s level %d",
                            user.id, unit.type.value, unit.level)
                continue
            worker_gold += definition.bonus * unit.quantity
        return worker_gold + self.fortification(user).gold_per_turn

    def fort_health(self, user: User) -> FortHealth:
        max_hp = self.fortification(user).hitpoints
        return FortHealth(
            current=user.fort_hitpoints,
            max=max_hp,
            percentage=user.fort_hitpoints * 100 // max_hp,
        )

    def available_unit_types(self, user: User) -> list[UnitDefinition]:
        """Unit types the user may train.

        Limited to level one units until the upgrade system exists.
        """
        return self._catalog.units_of_level(1)

    def maximum_bank_deposits(self, user: User) -> int:
        return self._max_deposits

    async def fetch_to_user_history_for_window(self, user: User) -> list[BankHistory]:
        """Bank history addressed to ``user`` within the deposit window."""
        since = datetime.now(timezone.utc) - self._history_window
        rows = await self._db.fetch_bank_history_to_user_since(user.id, since)
        return [BankHistory.from_row(row) for row in rows]

    async def fetch_available_bank_deposits(self, user: User) -> int:
        """Deposits still allowed, based on the recent banking history."""
        recent = await self.fetch_to_user_history_for_window(user)
        deposits = [h for h in recent if h.from_user_id == user.id and h.is_deposit]
        return self.maximum_bank_deposits(user) - len(deposits)

    def validate_password(self, user: User, password: str) -> bool:
        return check_password(password, user.password_hash)

    # -- Gold ------------------------------------------------------------

    async def add_gold(self, user: User, amount: int) -> None:
        user.gold += amount
        await self._db.add_gold(user.id, amount)

    async def subtract_gold(self, user: User, amount: int) -> None:
        user.gold -= amount
        await self._db.add_gold(user.id, -amount)

    async def add_banked_gold(self, user: User, amount: int) -> None:
        user.gold_in_bank += amount
        await self._db.add_banked_gold(user.id, amount)

    async def subtract_banked_gold(self, user: User, amount: int) -> None:
        user.gold_in_bank -= amount
        await self._db.add_banked_gold(user.id, -amount)

    # -- Units -----------------------------------------------------------

    async def train_new_units(self, user: User, new_units: list[PlayerUnit]) -> None:
        """Merge ``new_units`` into the user's units and persist them."""
        user.merge_units(new_units)
        await self._db.set_units(user.id, [u.to_dict() for u in user.units])

    async def train_units(self, user: User, requests: list[PlayerUnit]) -> Optional[str]:
        """Train citizens into units. Returns error message or None.

        Every requested unit must be an available unit type, the total may
        not exceed the user's citizens and the total cost must be covered
        by gold in hand.
        """
        async with self.lock(user.id):
            if not await self.reload(user):
                return "User not found"
            return await self._train_units(user, requests)

    async def _train_units(self, user: User, requests: list[PlayerUnit]) -> Optional[str]:
        requests = [r for r in requests if r.quantity != 0]
        if not requests:
            return "No units requested"

        available = {(d.type, d.level): d for d in self.available_unit_types(user)}
        total_units = 0
        total_cost = 0
        for req in requests:
            if req.quantity < 0:
                return f"Quantity must be positive: {req.type.value}={req.quantity}"
            definition = available.get((req.type, req.level))
            if definition is None:
                return f"Unit type not available: {req.type.value} level {req.level}"
            total_units += req.quantity
            total_cost += definition.cost * req.quantity

        if total_units > user.citizens:
            return f"Not enough citizens (need {total_units}, have {user.citizens})"
        if total_cost > user.gold:
            return f"Not enough gold (need {total_cost}, have {user.gold})"

        await self.subtract_gold(user, total_cost)
        await self.train_new_units(user, requests)
        log.info("User %d: trained %d units for %d gold", user.id, total_units, total_cost)
        self._events.emit(UnitsTrained(user_id=user.id, quantity=total_units, gold_spent=total_cost))
        return None

    # -- Fortification ---------------------------------------------------

    def repair_cost(self, user: User, hitpoints: int) -> int:
        return hitpoints * self.fortification(user).cost_per_repair_point

    async def repair_fort(self, user: User, hitpoints: int) -> Optional[str]:
        """Restore fort hitpoints for gold. Returns error message or None.

        Requests above the missing hitpoints are capped.
        """
        async with self.lock(user.id):
            if not await self.reload(user):
                return "User not found"
            return await self._repair_fort(user, hitpoints)

    async def _repair_fort(self, user: User, hitpoints: int) -> Optional[str]:
        if hitpoints <= 0:
            return "Hitpoints to repair must be positive"
        fort = self.fortification(user)
        missing = fort.hitpoints - user.fort_hitpoints
        if missing <= 0:
            return "Fortification is already at full health"
        hitpoints = min(hitpoints, missing)
        cost = self.repair_cost(user, hitpoints)
        if cost > user.gold:
            return f"Not enough gold (need {cost}, have {user.gold})"

        await self.subtract_gold(user, cost)
        user.fort_hitpoints += hitpoints
        await self._db.set_fort(user.id, user.fort_level, user.fort_hitpoints)
        log.info("User %d: repaired %d fort hitpoints for %d gold", user.id, hitpoints, cost)
        self._events.emit(FortificationChanged(
            user_id=user.id, fort_level=user.fort_level, fort_hitpoints=user.fort_hitpoints,
        ))
        return None

    def next_fortification(self, user: User) -> Optional[Fortification]:
        return self._catalog.fortification(user.fort_level + 1)

    async def upgrade_fort(self, user: User) -> Optional[str]:
        """Move the fort to the next tier. Returns error message or None."""
        async with self.lock(user.id):
            if not await self.reload(user):
                return "User not found"
            return await self._upgrade_fort(user)

    async def _upgrade_fort(self, user: User) -> Optional[str]:
        target = self.next_fortification(user)
        if target is None:
            return "Fortification is already at the highest tier"
        level = self.level(user)
        if level < target.level_requirement:
            return f"Level {target.level_requirement} required for {target.name} (level {level})"
        if target.cost > user.gold:
            return f"Not enough gold (need {target.cost}, have {user.gold})"

        await self.subtract_gold(user, target.cost)
        user.fort_level = target.level
        user.fort_hitpoints = target.hitpoints
        await self._db.set_fort(user.id, user.fort_level, user.fort_hitpoints)
        log.info("User %d: fortification upgraded to %s", user.id, target.name)
        self._events.emit(FortificationChanged(
            user_id=user.id, fort_level=user.fort_level, fort_hitpoints=user.fort_hitpoints,
        ))
        return None

    # -- Turn ------------------------------------------------------------

    async def step_turn(self, user: User) -> int:
        """Pay one turn of income and attack turns. Returns the gold paid.

        Income is computed from the stored state; a deleted user earns 0.
        """
        async with self.lock(user.id):
            if not await self.reload(user):
                return 0
            income = self.gold_per_turn(user)
            await self._db.add_turn_income(user.id, income, self._attack_turns_per_turn)
            user.gold += income
            user.attack_turns += self._attack_turns_per_turn
            return income
