"""
lorehub.api.deps — FastAPI dependency injection
=================================================
"""

from __future__ import annotations

import os
from datetime import UTC, datetime, timedelta
from functools import lru_cache
from typing import Annotated

import jwt
from fastapi import Depends, Header, HTTPException, status
from jwt.exceptions import InvalidTokenError
from sqlalchemy import Engine

from lorehub.config import LorehubConfig, load_config
from lorehub.constants import ROLE_RANK, Role
from lorehub.database.engine import create_db_engine
from lorehub.engine.dispatch import ActionDispatcher, build_default_dispatcher
from lorehub.errors import AuthorizationError

_WEAK_SECRETS = frozenset({
    "lorehub-dev-secret-change-me",
    "change-me",
    "secret",
    "dev",
    "",
})

_MIN_SECRET_LENGTH = 32

JWT_ALGORITHM = "HS256"
TOKEN_TTL_HOURS = 12


def _load_jwt_secret() -> str:
    """Load and validate JWT_SECRET from the environment.

    Raises RuntimeError at import time if the secret is missing, blank,
    too short (< 32 chars), or a known weak default.
    """
    secret = os.getenv("JWT_SECRET", "")
    if not secret:
        raise RuntimeError(
            "JWT_SECRET environment variable is not set. "
            "Generate one with: python -c \"import secrets; print(secrets.token_urlsafe(64))\""
        )
    if secret in _WEAK_SECRETS:
        raise RuntimeError(
            f"JWT_SECRET is set to a known weak default ('{secret}'). "
            "Please set a strong, unique secret."
        )
    if len(secret) < _MIN_SECRET_LENGTH:
        raise RuntimeError(
            f"JWT_SECRET is too short ({len(secret)} chars). "
            f"Minimum length is {_MIN_SECRET_LENGTH} characters."
        )
    return secret


JWT_SECRET: str = _load_jwt_secret()


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_db_engine()


@lru_cache(maxsize=1)
def get_config() -> LorehubConfig:
    return load_config()


@lru_cache(maxsize=1)
def get_dispatcher() -> ActionDispatcher:
    return build_default_dispatcher(get_engine(), get_config().quest_catalog)


def create_access_token(user_id: str, role: str = Role.MEMBER) -> str:
    """Issue a bearer token for *user_id*; used by the login flow and tests."""
    payload = {
        "sub": user_id,
        "role": str(role),
        "exp": datetime.now(UTC) + timedelta(hours=TOKEN_TTL_HOURS),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def get_current_user(
    authorization: Annotated[str | None, Header()] = None,
) -> dict:
    """Validate the bearer JWT and return its payload. Raises 401 if invalid."""
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Missing token")
    token = authorization.split(" ", 1)[1]
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except InvalidTokenError:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token")
    if not payload.get("sub"):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token")
    return payload


def require_role(minimum: Role):
    """Dependency factory: reject callers whose role ranks below *minimum*."""

    def _check(user: dict = Depends(get_current_user)) -> dict:
        rank = ROLE_RANK.get(user.get("role", Role.MEMBER), 0)
        if rank < ROLE_RANK[minimum]:
            raise AuthorizationError(
                f"{minimum.value} role required", {"role": user.get("role")},
            )
        return user

    return _check


require_admin = require_role(Role.ADMIN)
