"""
Shared fixtures -- in-memory SQLite store with every table, a small
two-user dataset, and a TestClient wired to it.
"""
from __future__ import annotations

from datetime import date, datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool

from lifedash.api.deps import get_engine, get_identity_provider
from lifedash.api.main import app
from lifedash.auth.identity import CurrentUser
from lifedash.core.config import get_settings
from lifedash.db.connection import create_store_engine
from lifedash.db.tables import (
    budgets, habits, metadata, nutrition_food_items, nutrition_meals,
    savings_goals, todos, transactions, user_sessions,
)

USER_A = "user-a"
USER_B = "user-b"

TODAY = date.today()
THIS_MONTH = TODAY.replace(day=1)
LAST_MONTH = (THIS_MONTH - timedelta(days=1)).replace(day=1)


@pytest.fixture(autouse=True)
def _mock_settings(monkeypatch):
    """Every test runs against the mock provider with no API keys."""
    monkeypatch.setenv("LLM_PROVIDER", "mock")
    monkeypatch.setenv("OPENAI_API_KEY", "")
    monkeypatch.setenv("ANTHROPIC_API_KEY", "")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def _seed(engine) -> None:
    now = datetime.now()
    with engine.begin() as conn:
        conn.execute(user_sessions.insert(), [
            {"token": "token-a", "user_id": USER_A, "email": "a@example.com",
             "expires_at": now + timedelta(days=1)},
            {"token": "token-b", "user_id": USER_B, "email": "b@example.com",
             "expires_at": None},
            {"token": "token-expired", "user_id": USER_A, "email": "a@example.com",
             "expires_at": now - timedelta(hours=1)},
        ])
        conn.execute(transactions.insert(), [
            {"id": "t1", "user_id": USER_A, "category": "groceries", "type": "expense",
             "amount": 50.25, "date": LAST_MONTH + timedelta(days=4)},
            {"id": "t2", "user_id": USER_A, "category": "groceries", "type": "expense",
             "amount": 30.00, "date": LAST_MONTH + timedelta(days=19)},
            {"id": "t3", "user_id": USER_A, "category": "dining", "type": "expense",
             "amount": 20.00, "date": LAST_MONTH + timedelta(days=9)},
            {"id": "t4", "user_id": USER_A, "category": "groceries", "type": "expense",
             "amount": 99.00, "date": THIS_MONTH},
            {"id": "t5", "user_id": USER_A, "category": "salary", "type": "income",
             "amount": 3000.00, "date": LAST_MONTH},
            {"id": "t6", "user_id": USER_B, "category": "groceries", "type": "expense",
             "amount": 500.00, "date": LAST_MONTH + timedelta(days=4)},
        ])
        conn.execute(budgets.insert(), [
            {"id": "b1", "user_id": USER_A, "month": LAST_MONTH, "amount": 2000.00},
        ])
        conn.execute(savings_goals.insert(), [
            {"id": "g1", "user_id": USER_A, "name": "Vacation",
             "target_amount": 3000.00, "current_amount": 500.00},
            {"id": "g2", "user_id": USER_B, "name": "Car",
             "target_amount": 8000.00, "current_amount": 100.00},
        ])
        conn.execute(todos.insert(), [
            {"id": "td1", "user_id": USER_A, "title": "Buy milk", "completed": False,
             "priority": "high", "due_date": datetime.combine(TODAY, datetime.min.time())},
            {"id": "td2", "user_id": USER_A, "title": "File taxes", "completed": True,
             "priority": "medium", "due_date": None},
            {"id": "td3", "user_id": USER_B, "title": "Walk the dog", "completed": False,
             "priority": "low", "due_date": None},
        ])
        conn.execute(nutrition_meals.insert(), [
            {"id": "m1", "user_id": USER_A, "meal_type": "dinner", "date": TODAY},
            {"id": "m2", "user_id": USER_A, "meal_type": "breakfast", "date": TODAY},
            {"id": "m3", "user_id": USER_B, "meal_type": "lunch", "date": TODAY},
        ])
        conn.execute(nutrition_food_items.insert(), [
            {"id": "f1", "user_id": USER_A, "meal_id": "m1", "name": "Salmon",
             "calories": 600, "protein": 40, "carbs": 0, "fat": 30},
            {"id": "f2", "user_id": USER_A, "meal_id": "m2", "name": "Oatmeal",
             "calories": 150, "protein": 5, "carbs": 27, "fat": 3},
            {"id": "f3", "user_id": USER_B, "meal_id": "m3", "name": "Pizza",
             "calories": 900, "protein": 30, "carbs": 100, "fat": 40},
        ])
        conn.execute(habits.insert(), [
            {"id": "h1", "user_id": USER_A, "name": "Meditate", "current_streak": 12,
             "longest_streak": 20, "total_completions": 80},
            {"id": "h2", "user_id": USER_A, "name": "Stretch", "current_streak": 3,
             "longest_streak": 9, "total_completions": 30},
        ])


@pytest.fixture
def engine():
    eng = create_store_engine(
        url="sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    metadata.create_all(eng)
    _seed(eng)
    yield eng
    eng.dispose()


class FakeIdentityProvider:
    """Token -> user map; anything else is unauthenticated."""

    def __init__(self, users: dict[str, str]):
        self.users = users

    def get_current_user(self, token):
        user_id = self.users.get(token or "")
        return CurrentUser(id=user_id) if user_id else None


@pytest.fixture
def client(engine):
    provider = FakeIdentityProvider({"token-a": USER_A, "token-b": USER_B})
    app.dependency_overrides[get_engine] = lambda: engine
    app.dependency_overrides[get_identity_provider] = lambda: provider
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def auth_a():
    return {"Authorization": "Bearer token-a"}
