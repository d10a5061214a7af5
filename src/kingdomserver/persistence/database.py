"""Database access — aiosqlite for users and bank history.

Provides async database operations for:
- User accounts (auth, profile, economy fields, units)
- Bank history (deposits and withdrawals)

Rows are returned as plain dicts; turning them into models is the
services' job.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any

import aiosqlite

log = logging.getLogger(__name__)

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    display_name TEXT UNIQUE NOT NULL,
    email TEXT UNIQUE NOT NULL,
    password_hash TEXT NOT NULL,
    race TEXT NOT NULL,
    class TEXT NOT NULL,
    experience INTEGER NOT NULL DEFAULT 0,
    gold INTEGER NOT NULL DEFAULT 0,
    gold_in_bank INTEGER NOT NULL DEFAULT 0,
    fort_level INTEGER NOT NULL DEFAULT 1,
    fort_hitpoints INTEGER NOT NULL DEFAULT 0,
    attack_turns INTEGER NOT NULL DEFAULT 0,
    units TEXT NOT NULL DEFAULT '[]',
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS bank_history (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    from_user_id INTEGER,
    from_user_account TEXT NOT NULL,
    to_user_id INTEGER,
    to_user_account TEXT NOT NULL,
    gold_amount INTEGER NOT NULL,
    history_type TEXT NOT NULL,
    date_time TEXT NOT NULL
);
"""

_USER_COLUMNS = (
    "id, display_name, email, password_hash, race, class, experience, gold, "
    "gold_in_bank, fort_level, fort_hitpoints, attack_turns, units"
)

_HISTORY_COLUMNS = (
    "id, from_user_id, from_user_account, to_user_id, to_user_account, "
    "gold_amount, history_type, date_time"
)


def _user_row(row: Any) -> dict[str, Any]:
    return {
        "id": row[0],
        "display_name": row[1],
        "email": row[2],
        "password_hash": row[3],
        "race": row[4],
        "class": row[5],
        "experience": row[6],
        "gold": row[7],
        "gold_in_bank": row[8],
        "fort_level": row[9],
        "fort_hitpoints": row[10],
        "attack_turns": row[11],
        "units": json.loads(row[12] or "[]"),
    }


def _history_row(row: Any) -> dict[str, Any]:
    return {
        "id": row[0],
        "from_user_id": row[1],
        "from_user_account": row[2],
        "to_user_id": row[3],
        "to_user_account": row[4],
        "gold_amount": row[5],
        "history_type": row[6],
        "date_time": row[7],
    }


def _timestamp(value: datetime) -> str:
    return value.isoformat(timespec="microseconds")


class Database:
    """Async SQLite database wrapper.

    Args:
        db_path: Path to the SQLite database file.
    """

    def __init__(self, db_path: str = "kingdom.db") -> None:
        self._db_path = db_path
        self._conn: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        """Open the database connection and create tables if needed."""
        self._conn = await aiosqlite.connect(self._db_path)
        self._conn.row_factory = aiosqlite.Row
        await self._conn.executescript(_SCHEMA)
        await self._conn.commit()
        log.info("Database connected: %s", self._db_path)

    async def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    # -- User lookups ----------------------------------------------------

    async def fetch_user_by_id(self, user_id: int) -> dict | None:
        assert self._conn is not None
        async with self._conn.execute(
            f"SELECT {_USER_COLUMNS} FROM users WHERE id = ?", (user_id,),
        ) as cursor:
            row = await cursor.fetchone()
            return _user_row(row) if row is not None else None

    async def fetch_user_by_email(self, email: str) -> dict | None:
        assert self._conn is not None
        async with self._conn.execute(
            f"SELECT {_USER_COLUMNS} FROM users WHERE email = ?", (email,),
        ) as cursor:
            row = await cursor.fetchone()
            return _user_row(row) if row is not None else None

    async def fetch_user_by_display_name(self, display_name: str) -> dict | None:
        assert self._conn is not None
        async with self._conn.execute(
            f"SELECT {_USER_COLUMNS} FROM users WHERE display_name = ?", (display_name,),
        ) as cursor:
            row = await cursor.fetchone()
            return _user_row(row) if row is not None else None

    async def fetch_all_users(self) -> list[dict]:
        """Return all users ordered by ID."""
        assert self._conn is not None
        async with self._conn.execute(
            f"SELECT {_USER_COLUMNS} FROM users ORDER BY id",
        ) as cursor:
            rows = await cursor.fetchall()
            return [_user_row(r) for r in rows]

    # -- User writes -----------------------------------------------------

    async def create_user(
        self,
        display_name: str,
        email: str,
        password_hash: str,
        race: str,
        class_: str,
        gold: int = 0,
        gold_in_bank: int = 0,
        fort_level: int = 1,
        fort_hitpoints: int = 0,
        attack_turns: int = 0,
        units: list[dict] | None = None,
    ) -> int:
        """Create a new user. Returns the new ID."""
        assert self._conn is not None
        async with self._conn.execute(
            "INSERT INTO users (display_name, email, password_hash, race, class, gold, "
            "gold_in_bank, fort_level, fort_hitpoints, attack_turns, units) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (display_name, email, password_hash, race, class_, gold, gold_in_bank,
             fort_level, fort_hitpoints, attack_turns, json.dumps(units or [])),
        ) as cursor:
            user_id = cursor.lastrowid
        await self._conn.commit()
        log.info("Created user %s (id=%d)", display_name, user_id)
        return user_id

    async def delete_user(self, user_id: int) -> bool:
        """Delete a user by ID. Returns True if deleted."""
        assert self._conn is not None
        async with self._conn.execute(
            "DELETE FROM users WHERE id = ?", (user_id,),
        ) as cursor:
            deleted = cursor.rowcount > 0
        await self._conn.commit()
        if deleted:
            log.info("Deleted user id=%d", user_id)
        return deleted

    async def _set_column(self, user_id: int, column: str, value: Any) -> None:
        assert self._conn is not None
        await self._conn.execute(
            f"UPDATE users SET {column} = ? WHERE id = ?", (value, user_id),
        )
        await self._conn.commit()

    async def _add_to_column(self, user_id: int, column: str, delta: int) -> None:
        assert self._conn is not None
        await self._conn.execute(
            f"UPDATE users SET {column} = {column} + ? WHERE id = ?", (delta, user_id),
        )
        await self._conn.commit()

    async def add_gold(self, user_id: int, delta: int) -> None:
        await self._add_to_column(user_id, "gold", delta)

    async def add_banked_gold(self, user_id: int, delta: int) -> None:
        await self._add_to_column(user_id, "gold_in_bank", delta)

    async def add_turn_income(self, user_id: int, gold: int, attack_turns: int) -> None:
        """Credit one turn of gold and attack turns in a single update."""
        assert self._conn is not None
        await self._conn.execute(
            "UPDATE users SET gold = gold + ?, attack_turns = attack_turns + ? WHERE id = ?",
            (gold, attack_turns, user_id),
        )
        await self._conn.commit()

    async def set_units(self, user_id: int, units: list[dict]) -> None:
        await self._set_column(user_id, "units", json.dumps(units))

    async def set_fort(self, user_id: int, fort_level: int, fort_hitpoints: int) -> None:
        assert self._conn is not None
        await self._conn.execute(
            "UPDATE users SET fort_level = ?, fort_hitpoints = ? WHERE id = ?",
            (fort_level, fort_hitpoints, user_id),
        )
        await self._conn.commit()

    # -- Bank history ----------------------------------------------------

    async def create_bank_history(
        self,
        from_user_id: int,
        from_user_account: str,
        to_user_id: int,
        to_user_account: str,
        gold_amount: int,
        history_type: str,
        date_time: datetime,
    ) -> int:
        """Record a gold transfer. Returns the new row ID."""
        assert self._conn is not None
        async with self._conn.execute(
            "INSERT INTO bank_history (from_user_id, from_user_account, to_user_id, "
            "to_user_account, gold_amount, history_type, date_time) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            (from_user_id, from_user_account, to_user_id, to_user_account,
             gold_amount, history_type, _timestamp(date_time)),
        ) as cursor:
            row_id = cursor.lastrowid
        await self._conn.commit()
        return row_id

    async def fetch_bank_history_to_user_since(self, user_id: int, since: datetime) -> list[dict]:
        """Transfers received by ``user_id`` at or after ``since``."""
        assert self._conn is not None
        async with self._conn.execute(
            f"SELECT {_HISTORY_COLUMNS} FROM bank_history "
            "WHERE to_user_id = ? AND date_time >= ? ORDER BY date_time",
            (user_id, _timestamp(since)),
        ) as cursor:
            rows = await cursor.fetchall()
            return [_history_row(r) for r in rows]

    async def fetch_bank_history_for_user(self, user_id: int, limit: int = 50) -> list[dict]:
        """Transfers sent or received by ``user_id``, newest first."""
        assert self._conn is not None
        async with self._conn.execute(
            f"SELECT {_HISTORY_COLUMNS} FROM bank_history "
            "WHERE from_user_id = ? OR to_user_id = ? ORDER BY date_time DESC, id DESC LIMIT ?",
            (user_id, user_id, limit),
        ) as cursor:
            rows = await cursor.fetchall()
            return [_history_row(r) for r in rows]
