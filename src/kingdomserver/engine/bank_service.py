"""Bank service — moves gold between a player's hand and bank.

Deposits are rate limited through the bank history; withdrawals are not.
The limit check and the history insert run under the user's lock.
Every transfer is recorded as a ``PLAYER_TRANSFER`` history row.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from kingdomserver.models.bank_history import AccountType, BankHistory, HistoryType
from kingdomserver.util.events import GoldTransferred

if TYPE_CHECKING:
    from kingdomserver.engine.user_service import UserService
    from kingdomserver.models.user import User
    from kingdomserver.persistence.database import Database
    from kingdomserver.util.events import EventBus

log = logging.getLogger(__name__)


class BankService:
    """Deposits, withdrawals and the transfer log.

    Args:
        user_service: Gold bookkeeping and deposit limits.
        database: Connected database for the history table.
        event_bus: Event bus for inter-service communication.
    """

    def __init__(self, user_service: UserService, database: Database, event_bus: EventBus) -> None:
        self._users = user_service
        self._db = database
        self._events = event_bus

    async def deposit(self, user: User, amount: int) -> Optional[str]:
        """Move gold from hand to bank. Returns error message or None."""
        async with self._users.lock(user.id):
            if not await self._users.reload(user):
                return "User not found"
            return await self._deposit(user, amount)

    async def _deposit(self, user: User, amount: int) -> Optional[str]:
        if amount <= 0:
            return "Amount must be positive"
        if amount > user.gold:
            return f"Not enough gold in hand (need {amount}, have {user.gold})"
        if await self._users.fetch_available_bank_deposits(user) <= 0:
            return "No bank deposits left, try again later"

        await self._users.subtract_gold(user, amount)
        await self._users.add_banked_gold(user, amount)
        await self._record(user, amount, AccountType.HAND, AccountType.BANK)
        log.info("User %d: deposited %d gold", user.id, amount)
        self._events.emit(GoldTransferred(user_id=user.id, amount=amount, deposit=True))
        return None

    async def withdraw(self, user: User, amount: int) -> Optional[str]:
        """Move gold from bank to hand. Returns error message or None."""
        async with self._users.lock(user.id):
            if not await self._users.reload(user):
                return "User not found"
            return await self._withdraw(user, amount)

    async def _withdraw(self, user: User, amount: int) -> Optional[str]:
        if amount <= 0:
            return "Amount must be positive"
        if amount > user.gold_in_bank:
            return f"Not enough gold in bank (need {amount}, have {user.gold_in_bank})"

        await self._users.subtract_banked_gold(user, amount)
        await self._users.add_gold(user, amount)
        await self._record(user, amount, AccountType.BANK, AccountType.HAND)
        log.info("User %d: withdrew %d gold", user.id, amount)
        self._events.emit(GoldTransferred(user_id=user.id, amount=amount, deposit=False))
        return None

    async def history(self, user: User, limit: int = 50) -> list[BankHistory]:
        """Transfers of ``user``, newest first."""
        rows = await self._db.fetch_bank_history_for_user(user.id, limit)
        return [BankHistory.from_row(row) for row in rows]

    async def _record(self, user: User, amount: int,
                      source: AccountType, target: AccountType) -> BankHistory:
        entry = BankHistory(
            from_user_id=user.id,
            from_user_account=source,
            to_user_id=user.id,
            to_user_account=target,
            gold_amount=amount,
            history_type=HistoryType.PLAYER_TRANSFER,
        )
        entry.id = await self._db.create_bank_history(
            from_user_id=entry.from_user_id,
            from_user_account=entry.from_user_account.value,
            to_user_id=entry.to_user_id,
            to_user_account=entry.to_user_account.value,
            gold_amount=entry.gold_amount,
            history_type=entry.history_type.value,
            date_time=entry.date_time,
        )
        return entry
