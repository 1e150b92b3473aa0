"""
Todo list operations.  Every read and write is filtered on the caller's
``user_id``; an id that belongs to someone else behaves as missing.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any

import sqlalchemy as sa
from sqlalchemy.engine import Engine

from lifedash.core.errors import DashboardError, NotFoundError
from lifedash.core.logging import get_logger
from lifedash.db.tables import todos

logger = get_logger(__name__)

PRIORITIES = ("low", "medium", "high")
VIEWS = ("all", "completed", "pending")


def _row(r: Any) -> dict[str, Any]:
    return {
        "id": r["id"],
        "title": r["title"],
        "completed": bool(r["completed"]),
        "priority": r["priority"],
        "due_date": r["due_date"].isoformat() if r["due_date"] else None,
        "created_at": r["created_at"].isoformat() if r["created_at"] else None,
    }


def _fetch_one(conn: sa.Connection, user_id: str, todo_id: str) -> dict[str, Any]:
    r = conn.execute(
        sa.select(todos).where(todos.c.id == todo_id, todos.c.user_id == user_id)
    ).mappings().first()
    if r is None:
        raise NotFoundError(f"Todo '{todo_id}' not found")
    return _row(r)


def _check_priority(priority: str) -> str:
    if priority not in PRIORITIES:
        raise DashboardError(f"Invalid priority '{priority}'. Expected one of {', '.join(PRIORITIES)}")
    return priority


def list_todos(engine: Engine, user_id: str, view: str = "all") -> list[dict[str, Any]]:
    if view not in VIEWS:
        raise DashboardError(f"Invalid view '{view}'")

    stmt = sa.select(todos).where(todos.c.user_id == user_id)
    if view == "completed":
        stmt = stmt.where(todos.c.completed.is_(True))
    elif view == "pending":
        stmt = stmt.where(todos.c.completed.is_(False))
    stmt = stmt.order_by(todos.c.created_at.desc())

    with engine.connect() as conn:
        return [_row(r) for r in conn.execute(stmt).mappings()]


def add_todo(
    engine: Engine,
    user_id: str,
    title: str,
    priority: str | None = None,
    due_date: datetime | None = None,
) -> dict[str, Any]:
    title = (title or "").strip()
    if not title:
        raise DashboardError("Title is required")
    priority = _check_priority(priority or "medium")

    with engine.begin() as conn:
        result = conn.execute(
            todos.insert().values(user_id=user_id, title=title, priority=priority, due_date=due_date)
        )
        todo_id = result.inserted_primary_key[0]
        created = _fetch_one(conn, user_id, todo_id)

    logger.info("Todo added | user=%s | id=%s", user_id, todo_id)
    return created


def toggle_todo(engine: Engine, user_id: str, todo_id: str) -> dict[str, Any]:
    with engine.begin() as conn:
        current = _fetch_one(conn, user_id, todo_id)
        conn.execute(
            todos.update()
            .where(todos.c.id == todo_id, todos.c.user_id == user_id)
            .values(completed=not current["completed"])
        )
        return _fetch_one(conn, user_id, todo_id)


def update_priority(engine: Engine, user_id: str, todo_id: str, priority: str) -> dict[str, Any]:
    _check_priority(priority)
    with engine.begin() as conn:
        result = conn.execute(
            todos.update()
            .where(todos.c.id == todo_id, todos.c.user_id == user_id)
            .values(priority=priority)
        )
        if result.rowcount == 0:
            raise NotFoundError(f"Todo '{todo_id}' not found")
        return _fetch_one(conn, user_id, todo_id)


def delete_todo(engine: Engine, user_id: str, todo_id: str) -> None:
    with engine.begin() as conn:
        result = conn.execute(
            todos.delete().where(todos.c.id == todo_id, todos.c.user_id == user_id)
        )
    if result.rowcount == 0:
        raise NotFoundError(f"Todo '{todo_id}' not found")
    logger.info("Todo deleted | user=%s | id=%s", user_id, todo_id)
