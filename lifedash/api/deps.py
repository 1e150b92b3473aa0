"""
FastAPI dependencies shared by the routers.

The store engine is created by the application lifespan and lives on
``app.state``.
Tests replace ``get_engine`` / ``get_identity_provider`` through
``app.dependency_overrides``.
"""
from __future__ import annotations

from fastapi import Depends, Request
from sqlalchemy.engine import Engine

from lifedash.auth.identity import CurrentUser, SessionIdentityProvider, extract_session_token
from lifedash.core.config import get_settings
from lifedash.core.errors import AuthorizationError


def get_engine(request: Request) -> Engine:
    return request.app.state.engine


def get_identity_provider(engine: Engine = Depends(get_engine)) -> SessionIdentityProvider:
    return SessionIdentityProvider(engine)


def require_identity(
    request: Request,
    provider: SessionIdentityProvider = Depends(get_identity_provider),
) -> CurrentUser:
    """Resolve the caller or raise ``AuthorizationError`` (mapped to 401)."""
    token = extract_session_token(request, get_settings().session_cookie_name)
    user = provider.get_current_user(token)
    if user is None:
        raise AuthorizationError("Unauthorized")
    return user
