"""Todo list endpoints under /api/todos."""
from __future__ import annotations

from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field
from sqlalchemy.engine import Engine

from lifedash.api.deps import get_engine, require_identity
from lifedash.auth.identity import CurrentUser
from lifedash.dashboard import todos as todo_ops

router = APIRouter()

Priority = Literal["low", "medium", "high"]


class TodoCreate(BaseModel):
    title: str = Field(..., max_length=255)
    priority: Priority = "medium"
    due_date: datetime | None = None


class PriorityUpdate(BaseModel):
    priority: Priority


@router.get("")
def list_todos(
    view: Literal["all", "completed", "pending"] = "all",
    user: CurrentUser = Depends(require_identity),
    engine: Engine = Depends(get_engine),
):
    return {"todos": todo_ops.list_todos(engine, user.id, view)}


@router.post("", status_code=201)
def add_todo(
    body: TodoCreate,
    user: CurrentUser = Depends(require_identity),
    engine: Engine = Depends(get_engine),
):
    return todo_ops.add_todo(engine, user.id, body.title, body.priority, body.due_date)


@router.post("/{todo_id}/toggle")
def toggle_todo(
    todo_id: str,
    user: CurrentUser = Depends(require_identity),
    engine: Engine = Depends(get_engine),
):
    return todo_ops.toggle_todo(engine, user.id, todo_id)


@router.patch("/{todo_id}/priority")
def update_priority(
    todo_id: str,
    body: PriorityUpdate,
    user: CurrentUser = Depends(require_identity),
    engine: Engine = Depends(get_engine),
):
    return todo_ops.update_priority(engine, user.id, todo_id, body.priority)


@router.delete("/{todo_id}", status_code=204)
def delete_todo(
    todo_id: str,
    user: CurrentUser = Depends(require_identity),
    engine: Engine = Depends(get_engine),
):
    todo_ops.delete_todo(engine, user.id, todo_id)
    return Response(status_code=204)
