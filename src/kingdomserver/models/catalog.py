"""Static table records — unit definitions, fortification tiers, fort health."""

from __future__ import annotations

from dataclasses import dataclass

from kingdomserver.models.user import UnitType


@dataclass(frozen=True)
class UnitDefinition:
    """A trainable unit type.

    Attributes:
        name: Display name.
        type: Unit kind.
        level: Unit tier.
        bonus: Gold per turn for workers, strength for military units.
        cost: Gold cost per unit.
    """

    name: str
    type: UnitType
    level: int
    bonus: int
    cost: int

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "type": self.type.value,
            "level": self.level,
            "bonus": self.bonus,
            "cost": self.cost,
        }


@dataclass(frozen=True)
class Fortification:
    """One fortification tier.

    Attributes:
        level: Fort level this tier belongs to.
        name: Display name.
        level_requirement: Player level needed to upgrade to this tier.
        hitpoints: Maximum hitpoints.
        cost_per_repair_point: Gold per repaired hitpoint.
        gold_per_turn: Base income of the tier.
        defense_bonus_percentage: Defense bonus of the tier.
        cost: Gold cost of upgrading to this tier.
    """

    level: int
    name: str
    level_requirement: int
    hitpoints: int
    cost_per_repair_point: int
    gold_per_turn: int
    defense_bonus_percentage: int
    cost: int


@dataclass(frozen=True)
class FortHealth:
    current: int
    max: int
    percentage: int

    def to_dict(self) -> dict:
        return {"current": self.current, "max": self.max, "percentage": self.percentage}
