"""Turn loop — asyncio-based economy tick.

Every turn each user receives their gold per turn and attack turns.
The interval comes from ``GameConfig.turn_length_seconds``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from kingdomserver.util.events import TurnCompleted

if TYPE_CHECKING:
    from kingdomserver.engine.user_service import UserService
    from kingdomserver.loaders.game_config_loader import GameConfig
    from kingdomserver.util.events import EventBus

log = logging.getLogger(__name__)


class TurnLoop:
    """The central turn loop.

    Args:
        event_bus: Global event bus for inter-service communication.
        user_service: Service paying the per-turn income.
        game_config: Supplies the turn length.
    """

    def __init__(
        self,
        event_bus: EventBus,
        user_service: UserService,
        game_config: GameConfig | None = None,
    ) -> None:
        self._events = event_bus
        self._users = user_service
        self._running = False
        self._turn_length = game_config.turn_length_seconds if game_config else 1800.0

        self.turn_count: int = 0

    async def run(self) -> None:
        """Start the turn loop. Runs until stop() is called."""
        self._running = True
        while self._running:
            await asyncio.sleep(self._turn_length)
            if not self._running:
                break
            try:
                await self.step()
            except Exception:
                log.exception("Turn %d failed", self.turn_count + 1)

    @property
    def is_running(self) -> bool:
        return self._running

    def stop(self) -> None:
        """Signal the turn loop to stop."""
        self._running = False

    async def step(self) -> TurnCompleted:
        """Pay one turn of income to every user.

        A user whose income cannot be computed is logged and skipped; the
        others are still paid.
        """
        users = await self._users.fetch_all()
        gold_paid = 0
        paid = 0
        for user in users:
            try:
                gold_paid += await self._users.step_turn(user)
            except Exception:
                log.exception("Turn %d: income for user %d failed", self.turn_count + 1, user.id)
                continue
            paid += 1

        self.turn_count += 1
        event = TurnCompleted(turn=self.turn_count, users=paid, gold_paid=gold_paid)
        log.info("Turn %d: paid %d gold to %d users", event.turn, gold_paid, paid)
        self._events.emit(event)
        return event
