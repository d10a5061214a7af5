"""Tests for the REST API and JWT authentication.

Uses httpx AsyncClient with ASGITransport to test REST endpoints
end-to-end against a temporary SQLite database, without starting a
real server.
"""

from __future__ import annotations

import time
from pathlib import Path

import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from kingdomserver.loaders.catalog_loader import load_catalog
from kingdomserver.loaders.game_config_loader import GameConfig
from kingdomserver.main import Configuration, create_services
from kingdomserver.network.jwt_auth import (
    JWT_ALGORITHM,
    create_token,
    set_token_lifetime,
    verify_token,
)
from kingdomserver.network.rest_api import create_app
from kingdomserver.persistence.database import Database

CONFIG_DIR = Path(__file__).resolve().parent.parent / "config"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def services(tmp_path):
    database = Database(str(tmp_path / "rest.db"))
    await database.connect()
    config = Configuration(game=GameConfig(), catalog=load_catalog(CONFIG_DIR))
    yield create_services(config, database)
    await database.close()


@pytest_asyncio.fixture
async def client(services):
    """httpx async client wired to the FastAPI app."""
    transport = ASGITransport(app=create_app(services))
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


async def _signup(client, name: str = "Arthur", email: str = "arthur@test.de") -> int:
    resp = await client.post("/api/auth/signup", json={
        "display_name": name,
        "email": email,
        "password": "excalibur",
        "race": "HUMAN",
        "class": "FIGHTER",
    })
    data = resp.json()
    assert data["success"] is True, data
    return data["user_id"]


@pytest_asyncio.fixture
async def user_id(client) -> int:
    return await _signup(client)


@pytest.fixture
def headers(user_id) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_token(user_id)}"}


# ---------------------------------------------------------------------------
# JWT unit tests
# ---------------------------------------------------------------------------


class TestJWT:
    def test_create_and_verify(self):
        assert verify_token(create_token(123)) == 123

    def test_invalid_token(self):
        with pytest.raises(ValueError):
            verify_token("not.a.valid.token")

    def test_tampered_token(self):
        parts = create_token(99).split(".")
        parts[1] = parts[1][:5] + "X" + parts[1][6:]
        with pytest.raises(ValueError):
            verify_token(".".join(parts))

    def test_expired_token(self):
        token = create_token(5, issued_at=int(time.time()) - 2 * 86400)
        with pytest.raises(ValueError, match="expired"):
            verify_token(token)

    def test_lifetime_is_configurable(self):
        set_token_lifetime(1)
        try:
            token = create_token(5, issued_at=int(time.time()) - 2 * 3600)
            with pytest.raises(ValueError, match="expired"):
                verify_token(token)
        finally:
            set_token_lifetime(24)

    def test_secret_from_environment(self, monkeypatch):
        token = create_token(8)
        monkeypatch.setenv("JWT_SECRET", "another-secret")
        with pytest.raises(ValueError):
            verify_token(token)
        assert verify_token(create_token(8)) == 8

    def test_subject_must_be_a_user_id(self, monkeypatch):
        monkeypatch.setenv("JWT_SECRET", "test-secret")
        now = int(time.time())
        token = jwt.encode({"sub": "arthur", "iat": now, "exp": now + 60},
                           "test-secret", algorithm=JWT_ALGORITHM)
        with pytest.raises(ValueError, match="user id"):
            verify_token(token)

    def test_missing_expiry_rejected(self, monkeypatch):
        monkeypatch.setenv("JWT_SECRET", "test-secret")
        token = jwt.encode({"sub": "3", "iat": int(time.time())},
                           "test-secret", algorithm=JWT_ALGORITHM)
        with pytest.raises(ValueError):
            verify_token(token)


# ---------------------------------------------------------------------------
# Auth endpoints
# ---------------------------------------------------------------------------


class TestAuthEndpoints:
    @pytest.mark.asyncio
    async def test_signup_and_login(self, client, user_id):
        resp = await client.post("/api/auth/login", json={
            "email": "arthur@test.de",
            "password": "excalibur",
        })
        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is True
        assert verify_token(data["token"]) == user_id

    @pytest.mark.asyncio
    async def test_login_failure(self, client, user_id):
        resp = await client.post("/api/auth/login", json={
            "email": "arthur@test.de",
            "password": "wrong",
        })
        data = resp.json()
        assert data["success"] is False
        assert data["token"] == ""

    @pytest.mark.asyncio
    async def test_signup_failure(self, client, user_id):
        resp = await client.post("/api/auth/signup", json={
            "display_name": "Arthur",
            "email": "other@test.de",
            "password": "excalibur",
        })
        data = resp.json()
        assert data["success"] is False
        assert "taken" in data["reason"]

    @pytest.mark.asyncio
    async def test_signup_unknown_race_rejected(self, client):
        resp = await client.post("/api/auth/signup", json={
            "display_name": "Nimue",
            "email": "nimue@test.de",
            "password": "lake1234",
            "race": "FAIRY",
        })
        assert resp.status_code == 422


# ---------------------------------------------------------------------------
# Protected endpoints — no token
# ---------------------------------------------------------------------------


class TestProtectedEndpointsNoToken:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", ["/api/overview", "/api/users", "/api/bank",
                                      "/api/training", "/api/fortification"])
    async def test_requires_auth(self, client, path):
        resp = await client.get(path)
        assert resp.status_code == 401
        assert resp.headers["www-authenticate"] == "Bearer"

    @pytest.mark.asyncio
    async def test_bad_token(self, client):
        resp = await client.get("/api/overview", headers={"Authorization": "Bearer nope"})
        assert resp.status_code == 401
        assert resp.json()["detail"].startswith("Invalid token")

    @pytest.mark.asyncio
    async def test_deleted_user_gets_404(self, client, services, user_id, headers):
        await services.database.delete_user(user_id)
        resp = await client.get("/api/overview", headers=headers)
        assert resp.status_code == 404


# ---------------------------------------------------------------------------
# Pages
# ---------------------------------------------------------------------------


class TestPages:
    @pytest.mark.asyncio
    async def test_overview(self, client, headers):
        resp = await client.get("/api/overview", headers=headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["display_name"] == "Arthur"
        assert data["race"] == "HUMAN"
        assert data["class"] == "FIGHTER"
        assert data["gold"] == "10,000"
        assert data["gold_per_turn"] == "1,000"
        assert data["population"] == "100"
        assert data["army_size"] == "0"
        assert data["citizens"] == "100"
        assert data["level"] == "1"
        assert data["xp_to_next_level"] == "200"
        assert data["attack_turns"] == "50"
        assert data["fort_health"] == {"current": "50", "max": "50", "percentage": 100}
        assert data["attacks"] == {"won": 0, "total": 0, "percentage": 0}

    @pytest.mark.asyncio
    async def test_profile(self, client, headers, user_id):
        resp = await client.get(f"/api/users/{user_id}/profile", headers=headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["display_name"] == "Arthur"
        assert data["fortification"] == "Manor"
        assert data["population"] == 100
        assert data["level"] == 1

    @pytest.mark.asyncio
    async def test_profile_not_found(self, client, headers):
        resp = await client.get("/api/users/999/profile", headers=headers)
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_user_list(self, client, headers, user_id):
        other = await _signup(client, "Morgana", "morgana@test.de")
        resp = await client.get("/api/users", headers=headers)
        rows = resp.json()["users"]
        assert {r["user_id"] for r in rows} == {user_id, other}
        assert [r["is_self"] for r in rows if r["user_id"] == user_id] == [True]


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------


class TestTraining:
    @pytest.mark.asyncio
    async def test_available_units(self, client, headers):
        data = (await client.get("/api/training", headers=headers)).json()
        assert [u["name"] for u in data["available_unit_types"]] == [
            "Worker", "Soldier", "Guard", "Spy", "Sentry",
        ]

    @pytest.mark.asyncio
    async def test_train_workers_raises_income(self, client, headers):
        resp = await client.post("/api/training", headers=headers, json={
            "units": [{"type": "WORKER", "level": 1, "quantity": 4}],
        })
        data = resp.json()
        assert data["success"] is True
        assert data["page"]["gold"] == "2,000"
        assert data["page"]["citizens"] == "96"

        overview = (await client.get("/api/overview", headers=headers)).json()
        assert overview["gold_per_turn"] == "1,260"
        assert overview["population"] == "100"

    @pytest.mark.asyncio
    async def test_train_refused(self, client, headers):
        resp = await client.post("/api/training", headers=headers, json={
            "units": [{"type": "OFFENSE", "level": 1, "quantity": 10}],
        })
        data = resp.json()
        assert data["success"] is False
        assert data["error"] == "Not enough gold (need 15000, have 10000)"


class TestBank:
    @pytest.mark.asyncio
    async def test_deposit_once_per_day(self, client, headers):
        first = (await client.post("/api/bank/deposit", headers=headers, json={"amount": 4000})).json()
        assert first["success"] is True
        assert first["page"]["gold_in_bank"] == "4,000"
        assert first["page"]["deposits_available"] == 0

        second = (await client.post("/api/bank/deposit", headers=headers, json={"amount": 1})).json()
        assert second["success"] is False

    @pytest.mark.asyncio
    async def test_withdraw(self, client, headers):
        await client.post("/api/bank/deposit", headers=headers, json={"amount": 4000})
        data = (await client.post("/api/bank/withdraw", headers=headers, json={"amount": 1500})).json()
        assert data["success"] is True
        assert data["page"]["gold"] == "7,500"
        assert len(data["page"]["history"]) == 2

    @pytest.mark.asyncio
    async def test_bank_page(self, client, headers):
        data = (await client.get("/api/bank", headers=headers)).json()
        assert data["deposits_available"] == 1
        assert data["maximum_deposits"] == 1
        assert data["history"] == []


class TestFortification:
    @pytest.mark.asyncio
    async def test_page(self, client, headers):
        data = (await client.get("/api/fortification", headers=headers)).json()
        assert data["name"] == "Manor"
        assert data["fort_health"]["percentage"] == 100
        assert data["next"]["name"] == "Village"
        assert data["next"]["cost"] == "100,000"

    @pytest.mark.asyncio
    async def test_repair_at_full_health(self, client, headers):
        data = (await client.post("/api/fortification/repair", headers=headers,
                                  json={"hitpoints": 5})).json()
        assert data["success"] is False

    @pytest.mark.asyncio
    async def test_upgrade_needs_level(self, client, headers):
        data = (await client.post("/api/fortification/upgrade", headers=headers)).json()
        assert data["success"] is False
        assert data["error"].startswith("Level 5 required")


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, client):
        resp = await client.get("/health")
        assert resp.json()["status"] == "ok"
