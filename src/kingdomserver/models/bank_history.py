"""Bank history model — one gold transfer between accounts."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


class AccountType(str, Enum):
    """Where gold is held."""
    HAND = "HAND"
    BANK = "BANK"


class HistoryType(str, Enum):
    PLAYER_TRANSFER = "PLAYER_TRANSFER"


@dataclass
class BankHistory:
    """A single gold transfer.

    Deposits are ``HAND → BANK`` transfers of the same user, withdrawals
    ``BANK → HAND``.

    Attributes:
        id: Row ID (None until stored).
        from_user_id: Sending user.
        from_user_account: Account the gold left.
        to_user_id: Receiving user.
        to_user_account: Account the gold went to.
        gold_amount: Amount moved.
        history_type: Kind of transfer.
        date_time: UTC timestamp of the transfer.
    """

    from_user_id: int
    from_user_account: AccountType
    to_user_id: int
    to_user_account: AccountType
    gold_amount: int
    history_type: HistoryType = HistoryType.PLAYER_TRANSFER
    date_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    id: Optional[int] = None

    @property
    def is_deposit(self) -> bool:
        """True for a player moving gold from their own hand."""
        return (
            self.from_user_id == self.to_user_id
            and self.from_user_account == AccountType.HAND
            and self.history_type == HistoryType.PLAYER_TRANSFER
        )

    @classmethod
    def from_row(cls, row: dict) -> BankHistory:
        return cls(
            id=row["id"],
            from_user_id=row["from_user_id"],
            from_user_account=AccountType(row["from_user_account"]),
            to_user_id=row["to_user_id"],
            to_user_account=AccountType(row["to_user_account"]),
            gold_amount=row["gold_amount"],
            history_type=HistoryType(row["history_type"]),
            date_time=datetime.fromisoformat(row["date_time"]),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "from_user_id": self.from_user_id,
            "from_user_account": self.from_user_account.value,
            "to_user_id": self.to_user_id,
            "to_user_account": self.to_user_account.value,
            "gold_amount": self.gold_amount,
            "history_type": self.history_type.value,
            "date_time": self.date_time.isoformat(),
        }
