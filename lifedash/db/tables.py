"""
Physical table definitions for the dashboard store.

Every user-owned table carries ``user_id``; reads and writes are always
filtered on it.  The schema catalog (``lifedash/catalog/catalog.yml``)
describes the queryable subset of these columns.
"""
from __future__ import annotations

import uuid

import sqlalchemy as sa

metadata = sa.MetaData()

OWNER_COLUMN = "user_id"


def _id_column() -> sa.Column:
    return sa.Column("id", sa.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))


def _owner_column() -> sa.Column:
    return sa.Column(OWNER_COLUMN, sa.String(36), nullable=False, index=True)


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now())


def _updated_at() -> sa.Column:
    return sa.Column(
        "updated_at", sa.DateTime, nullable=False,
        server_default=sa.func.now(), onupdate=sa.func.now(),
    )


def _money(name: str) -> sa.Column:
    return sa.Column(name, sa.Numeric(12, 2, asdecimal=False), nullable=False, default=0)


# ── Identity ────────────────────────────────────────────

user_sessions = sa.Table(
    "user_sessions", metadata,
    sa.Column("token", sa.String(128), primary_key=True),
    _owner_column(),
    sa.Column("email", sa.String(255)),
    sa.Column("expires_at", sa.DateTime),
    _created_at(),
)

# ── Budget ──────────────────────────────────────────────

categories = sa.Table(
    "categories", metadata,
    _id_column(),
    _owner_column(),
    sa.Column("name", sa.String(80), nullable=False),
    sa.Column("type", sa.String(20), nullable=False),  # expense | income
    _created_at(),
)

transactions = sa.Table(
    "transactions", metadata,
    _id_column(),
    _owner_column(),
    sa.Column("category_id", sa.String(36)),
    sa.Column("category", sa.String(80)),
    sa.Column("type", sa.String(20), nullable=False),  # expense | income
    _money("amount"),
    sa.Column("description", sa.Text),
    sa.Column("date", sa.Date, nullable=False),
    _created_at(),
    _updated_at(),
)

savings_goals = sa.Table(
    "savings_goals", metadata,
    _id_column(),
    _owner_column(),
    sa.Column("name", sa.String(120), nullable=False),
    _money("target_amount"),
    _money("current_amount"),
    sa.Column("target_date", sa.Date),
    _created_at(),
    _updated_at(),
)

budgets = sa.Table(
    "budgets", metadata,
    _id_column(),
    _owner_column(),
    sa.Column("month", sa.Date, nullable=False),  # first day of the month
    _money("amount"),
    _created_at(),
)

# ── Workout ─────────────────────────────────────────────

exercises = sa.Table(
    "exercises", metadata,
    _id_column(),
    _owner_column(),
    sa.Column("name", sa.String(120), nullable=False),
    sa.Column("muscle_group", sa.String(60)),
    sa.Column("equipment", sa.String(60)),
    _created_at(),
)

workout_logs = sa.Table(
    "workout_logs", metadata,
    _id_column(),
    _owner_column(),
    sa.Column("name", sa.String(120), nullable=False),
    sa.Column("date", sa.Date, nullable=False),
    sa.Column("duration_minutes", sa.Integer),
    sa.Column("notes", sa.Text),
    _created_at(),
)

workout_log_exercises = sa.Table(
    "workout_log_exercises", metadata,
    _id_column(),
    _owner_column(),
    sa.Column("workout_log_id", sa.String(36), nullable=False),
    sa.Column("exercise_id", sa.String(36), nullable=False),
    sa.Column("sets", sa.Integer),
    sa.Column("reps", sa.Integer),
    sa.Column("weight", sa.Float),
    _created_at(),
)

workout_templates = sa.Table(
    "workout_templates", metadata,
    _id_column(),
    _owner_column(),
    sa.Column("name", sa.String(120), nullable=False),
    sa.Column("description", sa.Text),
    _created_at(),
)

workout_template_exercises = sa.Table(
    "workout_template_exercises", metadata,
    _id_column(),
    _owner_column(),
    sa.Column("template_id", sa.String(36), nullable=False),
    sa.Column("exercise_id", sa.String(36), nullable=False),
    sa.Column("sets", sa.Integer),
    sa.Column("reps", sa.Integer),
    _created_at(),
)

# ── Nutrition ───────────────────────────────────────────

nutri_common_foods = sa.Table(
    "nutri_common_foods", metadata,
    _id_column(),
    _owner_column(),
    sa.Column("name", sa.String(120), nullable=False),
    sa.Column("serving_size", sa.String(60)),
    sa.Column("calories", sa.Float, nullable=False, default=0),
    sa.Column("protein", sa.Float, nullable=False, default=0),
    sa.Column("carbs", sa.Float, nullable=False, default=0),
    sa.Column("fat", sa.Float, nullable=False, default=0),
    _created_at(),
)

nutrition_meals = sa.Table(
    "nutrition_meals", metadata,
    _id_column(),
    _owner_column(),
    sa.Column("meal_type", sa.String(20), nullable=False),  # breakfast | lunch | dinner | snack
    sa.Column("date", sa.Date, nullable=False),
    _created_at(),
)

nutrition_food_items = sa.Table(
    "nutrition_food_items", metadata,
    _id_column(),
    _owner_column(),
    sa.Column("meal_id", sa.String(36), nullable=False),
    sa.Column("name", sa.String(120), nullable=False),
    sa.Column("calories", sa.Float, nullable=False, default=0),
    sa.Column("protein", sa.Float, nullable=False, default=0),
    sa.Column("carbs", sa.Float, nullable=False, default=0),
    sa.Column("fat", sa.Float, nullable=False, default=0),
    _created_at(),
)

# ── Habits ──────────────────────────────────────────────

habits = sa.Table(
    "habits", metadata,
    _id_column(),
    _owner_column(),
    sa.Column("name", sa.String(120), nullable=False),
    sa.Column("description", sa.Text),
    sa.Column("frequency", sa.String(20), nullable=False, default="daily"),
    sa.Column("current_streak", sa.Integer, nullable=False, default=0),
    sa.Column("longest_streak", sa.Integer, nullable=False, default=0),
    sa.Column("total_completions", sa.Integer, nullable=False, default=0),
    _created_at(),
)

habit_records = sa.Table(
    "habit_records", metadata,
    _id_column(),
    _owner_column(),
    sa.Column("habit_id", sa.String(36), nullable=False),
    sa.Column("date", sa.Date, nullable=False),
    sa.Column("completed", sa.Boolean, nullable=False, default=True),
    _created_at(),
)

# ── Todos ───────────────────────────────────────────────

todos = sa.Table(
    "todos", metadata,
    _id_column(),
    _owner_column(),
    sa.Column("title", sa.String(255), nullable=False),
    sa.Column("completed", sa.Boolean, nullable=False, default=False),
    sa.Column("priority", sa.String(10), nullable=False, default="medium"),
    sa.Column("due_date", sa.DateTime),
    _created_at(),
    _updated_at(),
)


def get_table(name: str) -> sa.Table | None:
    return metadata.tables.get(name)
