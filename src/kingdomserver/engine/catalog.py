"""Game catalog — the static lookup tables.

Holds fortification tiers, level thresholds and unit definitions and
answers the lookups the economy needs.  Read-only after initialization.
"""

from __future__ import annotations

from kingdomserver.models.catalog import Fortification, UnitDefinition
from kingdomserver.models.user import UnitType


class GameCatalog:
    """Static tables keyed for fast lookup.

    Attributes:
        fortifications: Fort level → tier.
        levels: Player level → experience threshold.
        unit_definitions: All unit types in table order.
    """

    def __init__(
        self,
        fortifications: list[Fortification],
        levels: dict[int, int],
        unit_definitions: list[UnitDefinition],
    ) -> None:
        self.fortifications: dict[int, Fortification] = {f.level: f for f in fortifications}
        self.levels: dict[int, int] = dict(sorted(levels.items()))
        self.unit_definitions: list[UnitDefinition] = list(unit_definitions)
        self._units_by_key = {(u.type, u.level): u for u in self.unit_definitions}

    # -- Units -----------------------------------------------------------

    def unit_definition(self, unit_type: UnitType, level: int) -> UnitDefinition | None:
        """Look up a unit type by kind and tier."""
        return self._units_by_key.get((unit_type, level))

    def units_of_level(self, level: int) -> list[UnitDefinition]:
        return [u for u in self.unit_definitions if u.level == level]

    # -- Fortifications --------------------------------------------------

    def fortification(self, level: int) -> Fortification | None:
        """Look up a fortification tier by fort level."""
        return self.fortifications.get(level)

    # -- Levels ----------------------------------------------------------

    @property
    def max_level(self) -> int:
        return max(self.levels) if self.levels else 1

    def level_for_experience(self, experience: int) -> int:
        """Highest level whose threshold has been passed."""
        reached = [level for level, xp in self.levels.items() if experience > xp]
        return max(reached) if reached else 1

    def xp_to_next_level(self, experience: int) -> int:
        """Experience still missing for the next level, 0 at the top level."""
        next_xp = self.levels.get(self.level_for_experience(experience) + 1)
        if next_xp is None:
            return 0
        return next_xp - experience
