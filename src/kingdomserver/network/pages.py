"""Page payloads — the data behind each game page.

The client renders these dicts; numbers meant for display are formatted
with ``en-GB`` grouping (``1234567`` → ``"1,234,567"``).
"""

from __future__ import annotations

from typing import Any, TYPE_CHECKING

if TYPE_CHECKING:
    from kingdomserver.engine.user_service import UserService
    from kingdomserver.models.bank_history import BankHistory
    from kingdomserver.models.user import User


def format_number(value: int) -> str:
    """Format a number with comma thousands separators."""
    return f"{int(value):,}"


def _record(won: int = 0, total: int = 0) -> dict[str, int]:
    percentage = won * 100 // total if total else 0
    return {"won": won, "total": total, "percentage": percentage}


def build_overview(users: UserService, user: User) -> dict[str, Any]:
    """Overview page of the logged-in player."""
    fort_health = users.fort_health(user)
    return {
        "page_title": "Overview",
        "display_name": user.display_name,
        "race": user.race.value,
        "class": user.class_.value,
        "attack_turns": format_number(user.attack_turns),

        "population": format_number(user.population),
        "army_size": format_number(user.army_size),
        "citizens": format_number(user.citizens),
        "experience": format_number(user.experience),
        "level": format_number(users.level(user)),
        "xp_to_next_level": format_number(users.xp_to_next_level(user)),
        "fort_health": {
            "current": format_number(fort_health.current),
            "max": format_number(fort_health.max),
            "percentage": fort_health.percentage,
        },
        "gold": format_number(user.gold),
        "gold_per_turn": format_number(users.gold_per_turn(user)),
        "gold_in_bank": format_number(user.gold_in_bank),

        # Combat is not implemented yet.
        "offense": user.offense,
        "defense": 0,
        "spy_offense": 0,
        "spy_defense": 0,
        "attacks": _record(),
        "defends": _record(),
        "spy_victories": 0,
        "sentry_victories": 0,
    }


def build_profile(users: UserService, user: User) -> dict[str, Any]:
    """Public profile of any player."""
    return {
        "page_title": f"Profile {user.display_name}",
        "user_id": user.id,
        "display_name": user.display_name,
        "race": user.race.value,
        "class": user.class_.value,
        "level": users.level(user),
        "overall_rank": 0,
        "population": user.population,
        "army_size": user.army_size,
        "fortification": users.fortification(user).name,
        "gold": format_number(user.gold),
        "bio": "",
    }


def build_user_list(users: UserService, all_users: list[User]) -> list[dict[str, Any]]:
    """Rank list rows, ordered by level, then population."""
    rows = [
        {
            "user_id": u.id,
            "display_name": u.display_name,
            "race": u.race.value,
            "class": u.class_.value,
            "level": users.level(u),
            "population": u.population,
            "army_size": u.army_size,
        }
        for u in all_users
    ]
    rows.sort(key=lambda r: (r["level"], r["population"]), reverse=True)
    return rows


def build_training(users: UserService, user: User) -> dict[str, Any]:
    """Training page: trainable unit types and current stacks."""
    return {
        "page_title": "Training",
        "gold": format_number(user.gold),
        "citizens": format_number(user.citizens),
        "units": [u.to_dict() for u in user.units],
        "available_unit_types": [d.to_dict() for d in users.available_unit_types(user)],
    }


def build_bank(user: User, deposits_left: int, max_deposits: int,
               history: list[BankHistory]) -> dict[str, Any]:
    """Bank page: balances, remaining deposits, transfer log."""
    return {
        "page_title": "Bank",
        "gold": format_number(user.gold),
        "gold_in_bank": format_number(user.gold_in_bank),
        "deposits_available": deposits_left,
        "maximum_deposits": max_deposits,
        "history": [h.to_dict() for h in history],
    }


def build_fortification(users: UserService, user: User) -> dict[str, Any]:
    """Fortification page: current tier, health, repair price and next tier."""
    fort = users.fortification(user)
    health = users.fort_health(user)
    missing = max(health.max - health.current, 0)
    upcoming = users.next_fortification(user)
    return {
        "page_title": "Fortification",
        "name": fort.name,
        "fort_level": user.fort_level,
        "fort_health": health.to_dict(),
        "gold_per_turn": format_number(fort.gold_per_turn),
        "defense_bonus_percentage": fort.defense_bonus_percentage,
        "cost_per_repair_point": fort.cost_per_repair_point,
        "full_repair_cost": format_number(users.repair_cost(user, missing)),
        "next": None if upcoming is None else {
            "name": upcoming.name,
            "level_requirement": upcoming.level_requirement,
            "cost": format_number(upcoming.cost),
            "hitpoints": upcoming.hitpoints,
        },
    }
