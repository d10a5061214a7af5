"""REST API — FastAPI application for accounts and the game pages.

Every page of the game is a JSON payload built in :mod:`pages`; actions
answer ``{"success": bool, "error": str}`` plus the refreshed page.

Usage::

    from kingdomserver.network.rest_api import create_app

    app = create_app(services)
"""

from __future__ import annotations

import logging
from typing import Any, TYPE_CHECKING

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from kingdomserver.models.user import PlayerUnit, User
from kingdomserver.network import pages
from kingdomserver.network.jwt_auth import create_token, get_current_user_id
from kingdomserver.network.rest_models import (
    GoldAmountRequest,
    LoginRequest,
    LoginResponse,
    RepairRequest,
    SignupRequest,
    SignupResponse,
    TrainRequest,
)

if TYPE_CHECKING:
    from kingdomserver.main import Services

log = logging.getLogger(__name__)


def _result(error: str | None, **extra: Any) -> dict[str, Any]:
    if error is not None:
        return {"success": False, "error": error}
    return {"success": True, "error": "", **extra}


def create_app(services: "Services") -> FastAPI:
    """Factory: create and return a configured FastAPI application.

    The ``services`` reference is captured by closure so every endpoint
    can access game logic without global state.
    """
    app = FastAPI(title="Kingdom Game Server", version="1.0.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    users = services.user_service
    bank = services.bank_service

    async def current_user(user_id: int = Depends(get_current_user_id)) -> User:
        user = await users.fetch_by_id(user_id)
        if user is None:
            raise HTTPException(status_code=404, detail="User not found")
        return user

    @app.get("/health")
    async def health_check() -> dict[str, Any]:
        return {"status": "ok", "service": "Kingdom Game Server"}

    # =================================================================
    # Auth (unprotected)
    # =================================================================

    @app.post("/api/auth/login", response_model=LoginResponse)
    async def login(body: LoginRequest) -> dict[str, Any]:
        user_id = await services.auth_service.login(body.email, body.password)
        if user_id is None:
            return {"success": False, "user_id": 0, "token": "",
                    "reason": "Invalid email or password"}
        return {"success": True, "user_id": user_id, "token": create_token(user_id), "reason": ""}

    @app.post("/api/auth/signup", response_model=SignupResponse)
    async def signup(body: SignupRequest) -> dict[str, Any]:
        result = await services.auth_service.signup(
            body.display_name, body.email, body.password, body.race.value, body.class_.value,
        )
        if isinstance(result, int):
            return {"success": True, "user_id": result, "reason": ""}
        return {"success": False, "user_id": 0, "reason": result}

    # =================================================================
    # Pages
    # =================================================================

    @app.get("/api/overview")
    async def overview(user: User = Depends(current_user)) -> dict[str, Any]:
        return pages.build_overview(users, user)

    @app.get("/api/users")
    async def list_users(user_id: int = Depends(get_current_user_id)) -> dict[str, Any]:
        rows = pages.build_user_list(users, await users.fetch_all())
        for row in rows:
            row["is_self"] = row["user_id"] == user_id
        return {"users": rows}

    @app.get("/api/users/{profile_id}/profile")
    async def user_profile(profile_id: int,
                           user_id: int = Depends(get_current_user_id)) -> dict[str, Any]:
        profile = await users.fetch_by_id(profile_id)
        if profile is None:
            raise HTTPException(status_code=404, detail="User not found")
        return pages.build_profile(users, profile)

    # =================================================================
    # Training
    # =================================================================

    @app.get("/api/training")
    async def training(user: User = Depends(current_user)) -> dict[str, Any]:
        return pages.build_training(users, user)

    @app.post("/api/training")
    async def train(body: TrainRequest, user: User = Depends(current_user)) -> dict[str, Any]:
        requests = [PlayerUnit(u.type, u.level, u.quantity) for u in body.units]
        error = await users.train_units(user, requests)
        return _result(error, page=pages.build_training(users, user))

    # =================================================================
    # Bank
    # =================================================================

    async def _bank_page(user: User) -> dict[str, Any]:
        return pages.build_bank(
            user,
            deposits_left=await users.fetch_available_bank_deposits(user),
            max_deposits=users.maximum_bank_deposits(user),
            history=await bank.history(user),
        )

    @app.get("/api/bank")
    async def bank_page(user: User = Depends(current_user)) -> dict[str, Any]:
        return await _bank_page(user)

    @app.post("/api/bank/deposit")
    async def deposit(body: GoldAmountRequest, user: User = Depends(current_user)) -> dict[str, Any]:
        error = await bank.deposit(user, body.amount)
        return _result(error, page=await _bank_page(user))

    @app.post("/api/bank/withdraw")
    async def withdraw(body: GoldAmountRequest, user: User = Depends(current_user)) -> dict[str, Any]:
        error = await bank.withdraw(user, body.amount)
        return _result(error, page=await _bank_page(user))

    # =================================================================
    # Fortification
    # =================================================================

    @app.get("/api/fortification")
    async def fortification(user: User = Depends(current_user)) -> dict[str, Any]:
        return pages.build_fortification(users, user)

    @app.post("/api/fortification/repair")
    async def repair(body: RepairRequest, user: User = Depends(current_user)) -> dict[str, Any]:
        error = await users.repair_fort(user, body.hitpoints)
        return _result(error, page=pages.build_fortification(users, user))

    @app.post("/api/fortification/upgrade")
    async def upgrade(user: User = Depends(current_user)) -> dict[str, Any]:
        error = await users.upgrade_fort(user)
        return _result(error, page=pages.build_fortification(users, user))

    log.info("REST API created with %d routes", len(app.routes))
    return app
