"""Bearer tokens for the REST API.

A token is an HS256 JWT whose ``sub`` claim holds the user ID as a
string.  The signing secret comes from the ``JWT_SECRET`` environment
variable and is read on every call; the lifetime comes from
``GameConfig.token_lifetime_hours`` (see :func:`set_token_lifetime`).

Protected routes depend on :func:`get_current_user_id`.
"""

from __future__ import annotations

import logging
import os
import time
from typing import Optional

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

log = logging.getLogger(__name__)

JWT_ALGORITHM: str = "HS256"
_DEFAULT_SECRET = "kingdom-server-secret-key-change-in-prod"
_REQUIRED_CLAIMS = ["sub", "iat", "exp"]

_lifetime_seconds: int = 24 * 3600
_bearer_scheme = HTTPBearer(auto_error=False)


def _secret() -> str:
    return os.environ.get("JWT_SECRET", _DEFAULT_SECRET)


def set_token_lifetime(hours: float) -> None:
    """Set how long newly issued tokens stay valid."""
    global _lifetime_seconds
    _lifetime_seconds = int(hours * 3600)
    log.debug("Token lifetime set to %d s", _lifetime_seconds)


def create_token(user_id: int, issued_at: Optional[int] = None) -> str:
    """Sign a token for ``user_id``, issued now unless ``issued_at`` is given."""
    iat = int(time.time()) if issued_at is None else issued_at
    claims = {"sub": str(user_id), "iat": iat, "exp": iat + _lifetime_seconds}
    return jwt.encode(claims, _secret(), algorithm=JWT_ALGORITHM)


def verify_token(token: str) -> int:
    """Return the user ID of a valid token.

    Raises:
        ValueError: If the token is expired, tampered, lacks a claim or
            does not carry a numeric user ID.
    """
    try:
        claims = jwt.decode(
            token, _secret(), algorithms=[JWT_ALGORITHM],
            options={"require": _REQUIRED_CLAIMS},
        )
    except jwt.ExpiredSignatureError:
        raise ValueError("Token expired")
    except jwt.InvalidTokenError as e:
        raise ValueError(f"Invalid token: {e}")

    subject = claims["sub"]
    if not str(subject).isdigit():
        raise ValueError(f"Invalid user id in token: {subject!r}")
    return int(subject)


async def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> int:
    """User ID from the ``Authorization: Bearer`` header, else 401."""
    if credentials is None:
        raise HTTPException(
            status_code=401, detail="Authorization header required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return verify_token(credentials.credentials)
    except ValueError as e:
        log.info("Rejected token: %s", e)
        raise HTTPException(status_code=401, detail=str(e), headers={"WWW-Authenticate": "Bearer"})
