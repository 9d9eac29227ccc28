"""
hlt.api.deps — FastAPI dependency injection
============================================

Principals arrive as HS256 bearer JWTs issued by the identity provider;
the ``sub`` claim is the principal id.  Nothing here issues tokens.
"""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Annotated

import jwt
from fastapi import Depends, Header
from jwt.exceptions import InvalidTokenError
from sqlalchemy import Engine

from hlt.config import HLTConfig, load_config
from hlt.database import keys
from hlt.database.engine import create_db_engine
from hlt.database.store import KeyValueStore
from hlt.errors import UnauthorizedError
from hlt.services.ledger_service import PointLedger

_WEAK_SECRETS = frozenset({
    "hlt-dev-secret-change-me",
    "change-me",
    "secret",
    "dev",
    "",
})

_MIN_SECRET_LENGTH = 32

JWT_ALGORITHM = "HS256"


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
def get_config() -> HLTConfig:
    return load_config(os.getenv("HLT_CONFIG", "config.yaml"))


def get_store(engine: Annotated[Engine, Depends(get_engine)]) -> KeyValueStore:
    return KeyValueStore(engine)


def get_ledger(
    store: Annotated[KeyValueStore, Depends(get_store)],
    config: Annotated[HLTConfig, Depends(get_config)],
) -> PointLedger:
    return PointLedger(store, cas_attempts=config.cas_max_attempts)


def resolve_principal(token: str) -> str | None:
    """Return the principal id carried by *token*, or ``None``."""
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except InvalidTokenError:
        return None
    subject = payload.get("sub")
    if not isinstance(subject, str) or not keys.is_valid_segment(subject):
        return None
    return subject


def get_current_user_id(
    authorization: Annotated[str | None, Header()] = None,
) -> str:
    """Validate the bearer JWT and return its principal id.  Raises 401."""
    if not authorization or not authorization.startswith("Bearer "):
        raise UnauthorizedError("Missing token")
    user_id = resolve_principal(authorization.split(" ", 1)[1])
    if user_id is None:
        raise UnauthorizedError("Invalid token")
    return user_id


CurrentUser = Annotated[str, Depends(get_current_user_id)]
Ledger = Annotated[PointLedger, Depends(get_ledger)]
Config = Annotated[HLTConfig, Depends(get_config)]
