"""Nutrition endpoints under /api/nutrition."""
from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends
from sqlalchemy.engine import Engine

from lifedash.api.deps import get_engine, require_identity
from lifedash.auth.identity import CurrentUser
from lifedash.dashboard.nutrition import daily_log

router = APIRouter()


@router.get("/daily")
def daily(
    day: date | None = None,
    user: CurrentUser = Depends(require_identity),
    engine: Engine = Depends(get_engine),
):
    return daily_log(engine, user.id, day)
