"""Typed event bus — decoupled inter-service communication.

Services emit small frozen dataclasses; whoever is interested subscribes
by event type.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, TypeVar, Type

T = TypeVar("T")


# -- Economy events ------------------------------------------------------

@dataclass(frozen=True)
class UnitsTrained:
    """Citizens were trained into units."""
    user_id: int
    quantity: int
    gold_spent: int


@dataclass(frozen=True)
class GoldTransferred:
    """Gold moved between the hand and the bank of a user."""
    user_id: int
    amount: int
    deposit: bool


@dataclass(frozen=True)
class FortificationChanged:
    """A fort was repaired or upgraded."""
    user_id: int
    fort_level: int
    fort_hitpoints: int


# -- Turn events ---------------------------------------------------------

@dataclass(frozen=True)
class TurnCompleted:
    """All users received their income for one turn."""
    turn: int
    users: int
    gold_paid: int


# -- Event Bus -----------------------------------------------------------

class EventBus:
    """Simple synchronous event bus with typed events.

    Usage:
        bus = EventBus()
        bus.on(TurnCompleted, lambda e: print(e.turn))
        bus.emit(TurnCompleted(turn=1, users=3, gold_paid=3000))
    """

    def __init__(self) -> None:
        self._handlers: dict[type, list[Callable[[Any], None]]] = defaultdict(list)

    def on(self, event_type: Type[T], handler: Callable[[T], None]) -> None:
        """Register a handler for an event type."""
        self._handlers[event_type].append(handler)

    def off(self, event_type: Type[T], handler: Callable[[T], None]) -> None:
        """Unregister a handler."""
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def emit(self, event: object) -> None:
        """Emit an event to all registered handlers."""
        for handler in self._handlers.get(type(event), []):
            handler(event)

    def clear(self) -> None:
        """Remove all handlers."""
        self._handlers.clear()
