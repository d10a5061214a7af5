"""Pydantic request/response models for the REST API."""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field

from kingdomserver.models.user import PlayerClass, PlayerRace, UnitType


# ===================================================================
# Auth
# ===================================================================


class LoginRequest(BaseModel):
    email: str
    password: str


class LoginResponse(BaseModel):
    success: bool
    user_id: int = 0
    token: str = ""
    reason: str = ""


class SignupRequest(BaseModel):
    display_name: str
    email: str
    password: str
    race: PlayerRace = PlayerRace.HUMAN
    class_: PlayerClass = Field(PlayerClass.FIGHTER, alias="class")

    model_config = {"populate_by_name": True}


class SignupResponse(BaseModel):
    success: bool
    user_id: int = 0
    reason: str = ""


# ===================================================================
# Training
# ===================================================================


class TrainUnit(BaseModel):
    type: UnitType
    level: int = 1
    quantity: int


class TrainRequest(BaseModel):
    units: List[TrainUnit]


# ===================================================================
# Bank / fortification
# ===================================================================


class GoldAmountRequest(BaseModel):
    amount: int


class RepairRequest(BaseModel):
    hitpoints: int
