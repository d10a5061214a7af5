"""User model — a player's account and kingdom state.

Holds the persisted fields of a player plus the derived values that need
no lookup tables (population, army size, citizens).  Everything that
depends on the static tables lives in :class:`UserService`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class UnitType(str, Enum):
    """Kind of a unit owned by a player."""
    CITIZEN = "CITIZEN"
    WORKER = "WORKER"
    OFFENSE = "OFFENSE"
    DEFENSE = "DEFENSE"
    SPY = "SPY"
    SENTRY = "SENTRY"


class PlayerRace(str, Enum):
    HUMAN = "HUMAN"
    UNDEAD = "UNDEAD"
    GOBLIN = "GOBLIN"
    ELF = "ELF"


class PlayerClass(str, Enum):
    FIGHTER = "FIGHTER"
    CLERIC = "CLERIC"
    THIEF = "THIEF"
    ASSASSIN = "ASSASSIN"


# Units that do not count towards the army size.
NON_MILITARY_TYPES = (UnitType.CITIZEN, UnitType.WORKER)


@dataclass
class PlayerUnit:
    """A stack of identical units owned by a player.

    Attributes:
        type: Unit kind.
        level: Unit tier (1 = basic).
        quantity: Number of units in the stack.
    """

    type: UnitType
    level: int
    quantity: int

    def to_dict(self) -> dict:
        return {"type": self.type.value, "level": self.level, "quantity": self.quantity}

    @classmethod
    def from_dict(cls, raw: dict) -> PlayerUnit:
        return cls(
            type=UnitType(raw["type"]),
            level=int(raw.get("level", 1)),
            quantity=int(raw.get("quantity", 0)),
        )


@dataclass
class User:
    """Complete state of a player.

    Attributes:
        id: Player user ID.
        display_name: Public name.
        email: Login e-mail address.
        password_hash: Hex digest of the password.
        race: Player race.
        class_: Player class (``class`` is a keyword).
        experience: Experience points.
        gold: Gold in hand (spendable, stealable).
        gold_in_bank: Gold stored in the bank.
        fort_level: Current fortification tier.
        fort_hitpoints: Current fortification hitpoints.
        attack_turns: Stored attack turns.
        units: All unit stacks, citizens included.
    """

    id: int
    display_name: str
    email: str = ""
    password_hash: str = ""
    race: PlayerRace = PlayerRace.HUMAN
    class_: PlayerClass = PlayerClass.FIGHTER
    experience: int = 0
    gold: int = 0
    gold_in_bank: int = 0
    fort_level: int = 1
    fort_hitpoints: int = 0
    attack_turns: int = 0
    units: list[PlayerUnit] = field(default_factory=list)

    # -- Derived values ----------------------------------------------------

    @property
    def population(self) -> int:
        """All units, citizens and workers included."""
        return sum(unit.quantity for unit in self.units)

    @property
    def army_size(self) -> int:
        """Units that are neither citizens nor workers."""
        return sum(
            unit.quantity for unit in self.units
            if unit.type not in NON_MILITARY_TYPES
        )

    @property
    def citizens(self) -> int:
        """Untrained citizens, 0 if the player has no citizen stack."""
        stack = self.find_unit(UnitType.CITIZEN, 1)
        return stack.quantity if stack else 0

    @property
    def offense(self) -> int:
        return 0

    def find_unit(self, unit_type: UnitType, level: int) -> PlayerUnit | None:
        """Look up the stack of a given type and level."""
        for unit in self.units:
            if unit.type == unit_type and unit.level == level:
                return unit
        return None

    def units_of_type(self, unit_type: UnitType) -> list[PlayerUnit]:
        return [u for u in self.units if u.type == unit_type]

    # -- Mutation ----------------------------------------------------------

    def merge_units(self, new_units: list[PlayerUnit]) -> None:
        """Turn citizens into the given units.

        The total quantity is taken from the citizen stack.  Quantities of
        stacks that already exist are increased, unknown stacks are
        appended in request order.  No validation happens here.
        """
        total = sum(unit.quantity for unit in new_units)
        citizens = self.find_unit(UnitType.CITIZEN, 1)
        if citizens is None:
            citizens = PlayerUnit(UnitType.CITIZEN, 1, 0)
            self.units.insert(0, citizens)
        citizens.quantity -= total

        for new_unit in new_units:
            existing = self.find_unit(new_unit.type, new_unit.level)
            if existing is not None:
                existing.quantity += new_unit.quantity
            else:
                self.units.append(
                    PlayerUnit(new_unit.type, new_unit.level, new_unit.quantity)
                )
