"""Budget endpoints under /api/budget."""
from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.engine import Engine

from lifedash.api.deps import get_engine, require_identity
from lifedash.auth.identity import CurrentUser
from lifedash.dashboard import budget as budget_ops

router = APIRouter()


class SavingsGoalUpdate(BaseModel):
    amount: float = Field(..., gt=0)
    withdrawal: bool = False


@router.get("/summary")
def monthly_summary(
    month: date | None = None,
    user: CurrentUser = Depends(require_identity),
    engine: Engine = Depends(get_engine),
):
    """Income, expenses, category spend and savings for *month* (default: this month)."""
    return budget_ops.monthly_summary(engine, user.id, month)


@router.post("/goals/{goal_id}")
def update_savings_goal(
    goal_id: str,
    body: SavingsGoalUpdate,
    user: CurrentUser = Depends(require_identity),
    engine: Engine = Depends(get_engine),
):
    return budget_ops.update_savings_goal(
        engine, user.id, goal_id, body.amount, withdrawal=body.withdrawal,
    )
