"""
Seed data generator -- creates the dashboard tables and a demo user with
realistic data across every domain.

Generates (for one demo user, over the last ~6 months):
  - a session token (printed at the end, use it as a Bearer token)
  - categories, ~400 transactions, monthly budgets, 3 savings goals
  - an exercise library, ~60 workout logs, 3 templates
  - ~180 days of meals with food items
  - 5 habits with daily records
  - ~25 todos

Existing rows for the demo user are deleted first, so re-running is safe.
Run:  python -m pipelines.seed.seed_data
"""
from __future__ import annotations

import random
import secrets
import uuid
from datetime import date, datetime, time, timedelta, timezone

from faker import Faker

from lifedash.db.connection import create_store_engine
from lifedash.db.tables import (
    budgets, categories, exercises, habit_records, habits, metadata,
    nutri_common_foods, nutrition_food_items, nutrition_meals, savings_goals,
    todos, transactions, user_sessions, workout_log_exercises, workout_logs,
    workout_template_exercises, workout_templates,
)

fake = Faker()
Faker.seed(42)
random.seed(42)

# ── Tunables ─────────────────────────────────────────────
DEMO_USER_ID = "00000000-0000-4000-8000-000000000001"
DEMO_EMAIL = "demo@lifedash.local"
NUM_DAYS = 180
NUM_TRANSACTIONS = 400
NUM_WORKOUTS = 60
NUM_TODOS = 25

EXPENSE_CATEGORIES = ["groceries", "rent", "dining", "transport", "utilities", "entertainment", "health"]
INCOME_CATEGORIES = ["salary", "freelance"]
EXERCISES = [
    ("Squat", "legs", "barbell"), ("Bench Press", "chest", "barbell"),
    ("Deadlift", "back", "barbell"), ("Overhead Press", "shoulders", "barbell"),
    ("Pull-up", "back", "bodyweight"), ("Lunge", "legs", "dumbbell"),
    ("Bicep Curl", "arms", "dumbbell"), ("Plank", "core", "bodyweight"),
]
FOODS = [
    ("Oatmeal", "1 cup", 150, 5, 27, 3), ("Chicken Breast", "100 g", 165, 31, 0, 4),
    ("Brown Rice", "1 cup", 215, 5, 45, 2), ("Greek Yogurt", "170 g", 100, 17, 6, 1),
    ("Banana", "1 medium", 105, 1, 27, 0), ("Salmon", "100 g", 208, 20, 0, 13),
    ("Almonds", "28 g", 164, 6, 6, 14), ("Pasta", "1 cup", 220, 8, 43, 1),
]
MEAL_TYPES = ["breakfast", "lunch", "dinner", "snack"]
HABITS = ["Meditate", "Read 20 pages", "Drink 2L water", "Stretch", "No sugar"]

TODAY = date.today()
DATE_START = TODAY - timedelta(days=NUM_DAYS)

# User-owned tables, children before parents.
_OWNED_TABLES = [
    workout_log_exercises, workout_template_exercises, workout_logs, workout_templates,
    exercises, nutrition_food_items, nutrition_meals, nutri_common_foods,
    habit_records, habits, todos, transactions, categories, budgets, savings_goals,
    user_sessions,
]


def _id() -> str:
    return str(uuid.uuid4())


def _rand_date() -> date:
    return DATE_START + timedelta(days=random.randint(0, NUM_DAYS))


def _owned(**row) -> dict:
    return {"id": _id(), "user_id": DEMO_USER_ID, **row}


# ── Generators ───────────────────────────────────────────

def gen_budget() -> dict[str, list[dict]]:
    cats = [_owned(name=n, type="expense") for n in EXPENSE_CATEGORIES]
    cats += [_owned(name=n, type="income") for n in INCOME_CATEGORIES]

    txns = []
    for _ in range(NUM_TRANSACTIONS):
        cat = random.choices(cats, weights=[8] * len(EXPENSE_CATEGORIES) + [1] * len(INCOME_CATEGORIES))[0]
        low, high = (1500, 4500) if cat["type"] == "income" else (5, 250)
        txns.append(_owned(
            category_id=cat["id"],
            category=cat["name"],
            type=cat["type"],
            amount=round(random.uniform(low, high), 2),
            description=fake.sentence(nb_words=4).rstrip("."),
            date=_rand_date(),
        ))

    months = sorted({date(d.year, d.month, 1) for d in (DATE_START + timedelta(days=i) for i in range(NUM_DAYS + 1))})
    monthly = [_owned(month=m, amount=float(random.choice([2000, 2500, 3000]))) for m in months]

    goals = [
        _owned(name=n, target_amount=t, current_amount=round(random.uniform(0, t / 2), 2),
               target_date=TODAY + timedelta(days=random.randint(90, 720)))
        for n, t in [("Emergency fund", 10000.0), ("Vacation", 3000.0), ("New laptop", 2000.0)]
    ]
    return {"categories": cats, "transactions": txns, "budgets": monthly, "savings_goals": goals}


def gen_workouts() -> dict[str, list[dict]]:
    lib = [_owned(name=n, muscle_group=m, equipment=e) for n, m, e in EXERCISES]

    logs, log_ex = [], []
    for _ in range(NUM_WORKOUTS):
        log = _owned(
            name=random.choice(["Push day", "Pull day", "Leg day", "Full body"]),
            date=_rand_date(),
            duration_minutes=random.randint(30, 95),
            notes=fake.sentence() if random.random() < 0.3 else None,
        )
        logs.append(log)
        for ex in random.sample(lib, random.randint(3, 5)):
            log_ex.append(_owned(
                workout_log_id=log["id"], exercise_id=ex["id"],
                sets=random.randint(3, 5), reps=random.randint(5, 12),
                weight=round(random.uniform(10, 120), 1),
            ))

    templates, tmpl_ex = [], []
    for name in ("Push day", "Pull day", "Leg day"):
        tmpl = _owned(name=name, description=fake.sentence())
        templates.append(tmpl)
        for ex in random.sample(lib, 4):
            tmpl_ex.append(_owned(template_id=tmpl["id"], exercise_id=ex["id"], sets=4, reps=8))

    return {
        "exercises": lib, "workout_logs": logs, "workout_log_exercises": log_ex,
        "workout_templates": templates, "workout_template_exercises": tmpl_ex,
    }


def gen_nutrition() -> dict[str, list[dict]]:
    common = [
        _owned(name=n, serving_size=s, calories=c, protein=p, carbs=cb, fat=f)
        for n, s, c, p, cb, f in FOODS
    ]
    meals, items = [], []
    for i in range(NUM_DAYS + 1):
        day = DATE_START + timedelta(days=i)
        for meal_type in MEAL_TYPES:
            if meal_type == "snack" and random.random() < 0.5:
                continue
            meal = _owned(meal_type=meal_type, date=day)
            meals.append(meal)
            for n, _, c, p, cb, f in random.sample(FOODS, random.randint(1, 3)):
                items.append(_owned(meal_id=meal["id"], name=n, calories=c, protein=p, carbs=cb, fat=f))
    return {"nutri_common_foods": common, "nutrition_meals": meals, "nutrition_food_items": items}


def gen_habits() -> dict[str, list[dict]]:
    rows, records = [], []
    for name in HABITS:
        habit = _owned(name=name, description=fake.sentence(), frequency="daily")
        streak = longest = total = 0
        for i in range(NUM_DAYS + 1):
            done = random.random() < 0.7
            records.append(_owned(habit_id=habit["id"], date=DATE_START + timedelta(days=i), completed=done))
            if done:
                streak += 1
                total += 1
                longest = max(longest, streak)
            else:
                streak = 0
        habit.update(current_streak=streak, longest_streak=longest, total_completions=total)
        rows.append(habit)
    return {"habits": rows, "habit_records": records}


def gen_todos() -> list[dict]:
    rows = []
    for _ in range(NUM_TODOS):
        due = TODAY + timedelta(days=random.randint(-14, 30))
        rows.append(_owned(
            title=fake.sentence(nb_words=5).rstrip("."),
            completed=random.random() < 0.4,
            priority=random.choice(["low", "medium", "high"]),
            due_date=datetime.combine(due, time(17, 0)) if random.random() < 0.8 else None,
        ))
    return rows


# ── Bulk insert helper ───────────────────────────────────

def _bulk_insert(conn, table, rows: list[dict], batch_size: int = 2000):
    if not rows:
        return
    for i in range(0, len(rows), batch_size):
        conn.execute(table.insert(), rows[i : i + batch_size])
    print(f"  ✓ {table.name}: {len(rows):,} rows")


# ── Main ─────────────────────────────────────────────────

def main():
    print("═══ Seed Data Generator ═══")
    engine = create_store_engine()
    metadata.create_all(engine)

    token = secrets.token_urlsafe(32)
    data: dict[str, list[dict]] = {}
    print("Generating data …")
    data.update(gen_budget())
    data.update(gen_workouts())
    data.update(gen_nutrition())
    data.update(gen_habits())
    data["todos"] = gen_todos()

    with engine.begin() as conn:
        print("Removing previous demo rows …")
        for t in _OWNED_TABLES:
            conn.execute(t.delete().where(t.c.user_id == DEMO_USER_ID))

        print("Inserting …")
        conn.execute(user_sessions.insert().values(
            token=token, user_id=DEMO_USER_ID, email=DEMO_EMAIL,
            expires_at=datetime.now(timezone.utc).replace(tzinfo=None) + timedelta(days=30),
        ))
        for name, rows in data.items():
            _bulk_insert(conn, metadata.tables[name], rows)

    total = sum(len(r) for r in data.values())
    print(f"\nDone -- seeded {total:,} rows for {DEMO_EMAIL}.")
    print(f"Session token (valid 30 days): {token}")


if __name__ == "__main__":
    main()
