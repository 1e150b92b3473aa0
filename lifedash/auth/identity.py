"""
Session-token identity.

The token is read from ``Authorization: Bearer <token>`` first, then from
the session cookie.  A token resolves to a user only when a matching,
unexpired row exists in ``user_sessions``.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

import sqlalchemy as sa
from fastapi import Request
from sqlalchemy.engine import Engine

from lifedash.core.logging import get_logger
from lifedash.db.tables import user_sessions

logger = get_logger(__name__)


@dataclass(frozen=True)
class CurrentUser:
    id: str
    email: str | None = None


def extract_session_token(request: Request, cookie_name: str) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[len("Bearer "):].strip()
        if token:
            return token
    return request.cookies.get(cookie_name) or None


class SessionIdentityProvider:
    """Resolves session tokens against the ``user_sessions`` table."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def get_current_user(self, token: str | None) -> CurrentUser | None:
        if not token:
            return None

        stmt = sa.select(
            user_sessions.c.user_id, user_sessions.c.email, user_sessions.c.expires_at,
        ).where(user_sessions.c.token == token)
        with self.engine.connect() as conn:
            row = conn.execute(stmt).mappings().first()

        if row is None:
            logger.info("Unknown session token")
            return None

        expires_at = row["expires_at"]
        if expires_at is not None:
            if expires_at.tzinfo is not None:
                expires_at = expires_at.astimezone(timezone.utc).replace(tzinfo=None)
            if expires_at <= datetime.now(timezone.utc).replace(tzinfo=None):
                logger.info("Expired session for user %s", row["user_id"])
                return None

        return CurrentUser(id=row["user_id"], email=row["email"])
