"""Tests for the turn loop paying income to all users."""

import asyncio
from pathlib import Path

import pytest
import pytest_asyncio

from kingdomserver.engine.turn_loop import TurnLoop
from kingdomserver.engine.user_service import UserService
from kingdomserver.loaders.catalog_loader import load_catalog
from kingdomserver.loaders.game_config_loader import GameConfig
from kingdomserver.models.user import PlayerUnit, UnitType
from kingdomserver.persistence.database import Database
from kingdomserver.util.events import EventBus, TurnCompleted

CONFIG_DIR = Path(__file__).resolve().parent.parent / "config"


@pytest_asyncio.fixture
async def db(tmp_path):
    database = Database(str(tmp_path / "turns.db"))
    await database.connect()
    yield database
    await database.close()


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def users(db, bus) -> UserService:
    return UserService(db, load_catalog(CONFIG_DIR), bus, GameConfig())


async def _create(db, name: str, workers: int, fort_level: int = 1) -> int:
    return await db.create_user(
        name, f"{name}@test.de", "h", "HUMAN", "FIGHTER",
        gold=0, fort_level=fort_level, attack_turns=3,
        units=[{"type": "CITIZEN", "level": 1, "quantity": 10},
               {"type": "WORKER", "level": 1, "quantity": workers}],
    )


class TestStep:
    @pytest.mark.asyncio
    async def test_pays_every_user(self, db, users, bus):
        a = await _create(db, "alpha", workers=2)
        b = await _create(db, "beta", workers=0, fort_level=2)
        loop = TurnLoop(bus, users)

        event = await loop.step()

        assert event == TurnCompleted(turn=1, users=2, gold_paid=1130 + 2000)
        alpha = await users.fetch_by_id(a)
        beta = await users.fetch_by_id(b)
        assert alpha.gold == 1130
        assert beta.gold == 2000
        assert alpha.attack_turns == 4
        assert beta.attack_turns == 4

    @pytest.mark.asyncio
    async def test_emits_event(self, db, users, bus):
        await _create(db, "gamma", workers=1)
        events = []
        bus.on(TurnCompleted, events.append)
        loop = TurnLoop(bus, users)

        await loop.step()
        await loop.step()

        assert [e.turn for e in events] == [1, 2]
        assert loop.turn_count == 2

    @pytest.mark.asyncio
    async def test_no_users(self, users, bus):
        event = await TurnLoop(bus, users).step()
        assert event.users == 0
        assert event.gold_paid == 0


class TestRun:
    @pytest.mark.asyncio
    async def test_run_until_stopped(self, db, users, bus):
        await _create(db, "delta", workers=0)
        loop = TurnLoop(bus, users, GameConfig(turn_length_seconds=0.01))

        task = asyncio.create_task(loop.run())
        await asyncio.sleep(0.1)
        assert loop.is_running
        loop.stop()
        await asyncio.wait_for(task, timeout=1.0)

        assert not loop.is_running
        assert loop.turn_count >= 1


class TestStaleState:
    @pytest.mark.asyncio
    async def test_turn_keeps_concurrent_training(self, db, users, bus):
        user_id = await db.create_user(
            "epsilon", "epsilon@test.de", "h", "HUMAN", "FIGHTER", gold=10_000,
            units=[{"type": "CITIZEN", "level": 1, "quantity": 100}],
        )
        snapshot = await users.fetch_all()
        fresh = await users.fetch_by_id(user_id)
        assert await users.train_units(fresh, [PlayerUnit(UnitType.WORKER, 1, 5)]) is None

        paid = await users.step_turn(snapshot[0])

        stored = await users.fetch_by_id(user_id)
        assert paid == 1000 + 5 * 65
        assert stored.gold == paid
        assert stored.find_unit(UnitType.WORKER, 1).quantity == 5
        assert stored.attack_turns == 1

    @pytest.mark.asyncio
    async def test_concurrent_turn_and_training(self, db, users, bus):
        user_id = await _create(db, "zeta", workers=0)
        await db.add_gold(user_id, 4000)
        user = await users.fetch_by_id(user_id)
        loop = TurnLoop(bus, users)

        error, _ = await asyncio.gather(
            users.train_units(user, [PlayerUnit(UnitType.WORKER, 1, 2)]),
            loop.step(),
        )

        assert error is None
        stored = await users.fetch_by_id(user_id)
        assert stored.find_unit(UnitType.WORKER, 1).quantity == 2
        # training first: 4000 - 4000 + (1000 + 130); turn first: 4000 + 1000 - 4000
        assert stored.gold in (1130, 1000)


class TestFailingUser:
    @pytest.mark.asyncio
    async def test_bad_user_does_not_stop_the_turn(self, db, users, bus):
        a = await _create(db, "eta", workers=1)
        await _create(db, "theta", workers=1, fort_level=99)
        c = await _create(db, "iota", workers=0)
        events = []
        bus.on(TurnCompleted, events.append)
        loop = TurnLoop(bus, users)

        event = await loop.step()

        assert event == TurnCompleted(turn=1, users=2, gold_paid=1065 + 1000)
        assert events == [event]
        assert loop.turn_count == 1
        assert (await users.fetch_by_id(a)).gold == 1065
        assert (await users.fetch_by_id(c)).gold == 1000

    @pytest.mark.asyncio
    async def test_deleted_user_earns_nothing(self, db, users):
        user_id = await _create(db, "kappa", workers=3)
        snapshot = await users.fetch_all()
        await db.delete_user(user_id)
        assert await users.step_turn(snapshot[0]) == 0
