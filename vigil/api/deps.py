"""
vigil.api.deps — FastAPI dependency injection
==============================================

Every anti-cheat route needs a bearer JWT signed with ``JWT_SECRET``.
Bot processes carry a plain service token; moderator tooling carries one
with the ``is_admin`` claim.
"""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Annotated

import jwt
from fastapi import Depends, Header, HTTPException, status
from jwt.exceptions import InvalidTokenError
from sqlalchemy import Engine

from vigil.config import VigilConfig, load_config
from vigil.database.engine import create_db_engine
from vigil.services.anticheat_service import AntiCheatService
from vigil.services.dispatcher import AnalysisDispatcher
from vigil.services.providers import sql_providers
from vigil.services.trust_ledger import TrustScoreLedger

_WEAK_SECRETS = frozenset({
    "vigil-dev-secret-change-me",
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
def get_config() -> VigilConfig:
    return load_config()


def build_service(engine: Engine, config: VigilConfig) -> AntiCheatService:
    """Wire the SQL providers, ledger and dispatcher into one service."""
    providers = sql_providers(engine)
    return AntiCheatService(
        engine,
        providers,
        config,
        TrustScoreLedger(engine),
        AnalysisDispatcher(engine, providers.history, config),
    )


@lru_cache(maxsize=1)
def get_service() -> AntiCheatService:
    return build_service(get_engine(), get_config())


def _decode_bearer(authorization: str | None) -> dict:
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Missing token")
    token = authorization.split(" ", 1)[1]
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except InvalidTokenError:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token")


def get_current_client(
    authorization: Annotated[str | None, Header()] = None,
) -> dict:
    """Validate JWT and return the caller payload. Raises 401 if invalid."""
    return _decode_bearer(authorization)


def get_current_admin(
    authorization: Annotated[str | None, Header()] = None,
) -> dict:
    """Validate JWT and require the admin claim. Raises 401/403."""
    payload = _decode_bearer(authorization)
    if not payload.get("is_admin"):
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Not admin")
    return payload


ServiceDep = Annotated[AntiCheatService, Depends(get_service)]
ClientDep = Annotated[dict, Depends(get_current_client)]
AdminDep = Annotated[dict, Depends(get_current_admin)]
