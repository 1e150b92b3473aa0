"""
Budget & savings calculations.

Pure helpers (`calculate_savings`, `available_to_contribute`) plus the
identity-scoped monthly summary and savings-goal updates.
"""
from __future__ import annotations

import calendar
from datetime import date
from typing import Any

import sqlalchemy as sa
from sqlalchemy.engine import Engine

from lifedash.core.errors import DashboardError, NotFoundError
from lifedash.core.logging import get_logger
from lifedash.db.tables import budgets, savings_goals, transactions

logger = get_logger(__name__)


def calculate_savings(income: float, expenses: float) -> tuple[float, float]:
    """Return ``(net_savings, savings_rate_percent)``.  Rate is 0 without income."""
    net = income - expenses
    rate = (net / income) * 100 if income > 0 else 0.0
    return round(net, 2), round(rate, 2)


def available_to_contribute(budget: float, expenses: float, income: float) -> float:
    """How much can still go into savings goals this month.

    Bounded by what is left of the budget and by what income actually
    covers; never negative.
    """
    left_over = income - expenses
    if budget > 0:
        left_over = min(budget - expenses, left_over)
    return round(max(0.0, left_over), 2)


def _month_range(month: date) -> tuple[date, date]:
    last = calendar.monthrange(month.year, month.month)[1]
    return date(month.year, month.month, 1), date(month.year, month.month, last)


def monthly_summary(engine: Engine, user_id: str, month: date | None = None) -> dict[str, Any]:
    """Income, expenses, per-category spend, budget and savings for one month."""
    start, end = _month_range(month or date.today())

    totals_stmt = (
        sa.select(transactions.c.type, sa.func.coalesce(sa.func.sum(transactions.c.amount), 0))
        .where(
            transactions.c.user_id == user_id,
            transactions.c.date.between(start, end),
        )
        .group_by(transactions.c.type)
    )
    category_stmt = (
        sa.select(transactions.c.category, sa.func.sum(transactions.c.amount).label("total"))
        .where(
            transactions.c.user_id == user_id,
            transactions.c.type == "expense",
            transactions.c.date.between(start, end),
        )
        .group_by(transactions.c.category)
        .order_by(sa.desc("total"))
    )
    budget_stmt = sa.select(budgets.c.amount).where(
        budgets.c.user_id == user_id, budgets.c.month == start,
    )

    with engine.connect() as conn:
        totals = {t: float(v or 0) for t, v in conn.execute(totals_stmt)}
        categories = {
            (c or "Uncategorised"): round(float(v or 0), 2) for c, v in conn.execute(category_stmt)
        }
        budget = float(conn.execute(budget_stmt).scalar() or 0)

    income = totals.get("income", 0.0)
    expenses = totals.get("expense", 0.0)
    net, rate = calculate_savings(income, expenses)
    return {
        "month": start.isoformat(),
        "income": round(income, 2),
        "expenses": round(expenses, 2),
        "categories": categories,
        "budget": round(budget, 2),
        "net_savings": net,
        "savings_rate": rate,
        "available_to_contribute": available_to_contribute(budget, expenses, income),
    }


def update_savings_goal(
    engine: Engine,
    user_id: str,
    goal_id: str,
    amount: float,
    withdrawal: bool = False,
    month: date | None = None,
) -> dict[str, Any]:
    """Contribute to (or withdraw from) a savings goal.

    Withdrawals are capped at the goal's current amount; contributions at
    this month's available-to-contribute figure.
    """
    if amount <= 0:
        raise DashboardError("Amount must be greater than zero")

    goal_stmt = sa.select(savings_goals).where(
        savings_goals.c.id == goal_id, savings_goals.c.user_id == user_id,
    )
    with engine.connect() as conn:
        goal = conn.execute(goal_stmt).mappings().first()
    if goal is None:
        raise NotFoundError(f"Savings goal '{goal_id}' not found")

    current = float(goal["current_amount"] or 0)
    if withdrawal:
        if amount > current:
            raise DashboardError(f"You can withdraw up to {current:.2f} from this goal")
        new_amount = current - amount
    else:
        available = monthly_summary(engine, user_id, month)["available_to_contribute"]
        if amount > available:
            raise DashboardError(f"You can contribute up to {available:.2f} this month")
        new_amount = current + amount

    with engine.begin() as conn:
        conn.execute(
            savings_goals.update()
            .where(savings_goals.c.id == goal_id, savings_goals.c.user_id == user_id)
            .values(current_amount=round(new_amount, 2))
        )
        updated = conn.execute(goal_stmt).mappings().first()

    logger.info("Savings goal %s | user=%s | %s %.2f",
                goal_id, user_id, "withdraw" if withdrawal else "contribute", amount)
    return {
        "id": updated["id"],
        "name": updated["name"],
        "target_amount": float(updated["target_amount"] or 0),
        "current_amount": float(updated["current_amount"] or 0),
        "target_date": updated["target_date"].isoformat() if updated["target_date"] else None,
    }
