"""Daily nutrition log: the user's meals for one day with macro totals."""
from __future__ import annotations

from datetime import date
from typing import Any

import sqlalchemy as sa
from sqlalchemy.engine import Engine

from lifedash.db.tables import nutrition_food_items, nutrition_meals

MEAL_ORDER = {"breakfast": 0, "lunch": 1, "dinner": 2, "snack": 3}
MACROS = ("calories", "protein", "carbs", "fat")


def daily_log(engine: Engine, user_id: str, day: date | None = None) -> dict[str, Any]:
    day = day or date.today()

    meals_stmt = sa.select(nutrition_meals).where(
        nutrition_meals.c.user_id == user_id, nutrition_meals.c.date == day,
    )
    with engine.connect() as conn:
        meals = [dict(r) for r in conn.execute(meals_stmt).mappings()]
        meal_ids = [m["id"] for m in meals]
        items: list[dict[str, Any]] = []
        if meal_ids:
            items_stmt = sa.select(nutrition_food_items).where(
                nutrition_food_items.c.user_id == user_id,
                nutrition_food_items.c.meal_id.in_(meal_ids),
            )
            items = [dict(r) for r in conn.execute(items_stmt).mappings()]

    totals = {m: 0.0 for m in MACROS}
    by_meal: dict[str, list[dict[str, Any]]] = {mid: [] for mid in meal_ids}
    for item in items:
        food = {"id": item["id"], "name": item["name"]}
        for m in MACROS:
            value = float(item[m] or 0)
            food[m] = value
            totals[m] += value
        by_meal[item["meal_id"]].append(food)

    meals.sort(key=lambda m: MEAL_ORDER.get(m["meal_type"], len(MEAL_ORDER)))
    return {
        "date": day.isoformat(),
        "meals": [
            {"id": m["id"], "meal_type": m["meal_type"], "items": by_meal[m["id"]]}
            for m in meals
        ],
        "totals": {m: round(v, 2) for m, v in totals.items()},
    }
