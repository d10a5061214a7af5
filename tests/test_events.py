"""Tests for the typed event bus."""

from kingdomserver.util.events import EventBus, GoldTransferred, TurnCompleted


def test_handler_receives_event():
    bus = EventBus()
    received = []
    bus.on(TurnCompleted, received.append)
    bus.emit(TurnCompleted(turn=1, users=2, gold_paid=3))
    assert received == [TurnCompleted(turn=1, users=2, gold_paid=3)]


def test_dispatch_by_type():
    bus = EventBus()
    received = []
    bus.on(GoldTransferred, received.append)
    bus.emit(TurnCompleted(turn=1, users=0, gold_paid=0))
    assert received == []


def test_off_and_clear():
    bus = EventBus()
    received = []
    bus.on(TurnCompleted, received.append)
    bus.off(TurnCompleted, received.append)
    bus.emit(TurnCompleted(turn=1, users=0, gold_paid=0))
    assert received == []

    bus.on(TurnCompleted, received.append)
    bus.clear()
    bus.emit(TurnCompleted(turn=2, users=0, gold_paid=0))
    assert received == []


def test_off_unknown_handler_is_ignored():
    EventBus().off(TurnCompleted, print)
