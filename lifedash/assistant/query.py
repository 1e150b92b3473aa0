"""
QueryRequest -- the typed intermediate representation between a model's
function call and the identity-scoped read.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class Operator(str, Enum):
    EQ = "eq"
    GT = "gt"
    LT = "lt"
    GTE = "gte"
    LTE = "lte"
    BETWEEN = "between"
    LIKE = "like"


SUPPORTED_OPERATORS: tuple[str, ...] = tuple(op.value for op in Operator)


class FilterPredicate(BaseModel):
    field: str
    operator: Operator
    value: Any


class TimeRange(BaseModel):
    column: str
    start: datetime | date | None = None
    end: datetime | date | None = None


class NumericRange(BaseModel):
    field: str
    min: float | None = None
    max: float | None = None


class StatusRefinement(BaseModel):
    column: str
    value: bool


class QueryRequest(BaseModel):
    """Validated, typed read request for a single catalog table."""

    domain: str = Field(..., description="Catalog domain, e.g. 'budget'")
    table: str = Field(..., description="Target table within the domain")
    columns: list[str] = Field(default_factory=list, description="Selected columns; empty means all")
    filters: list[FilterPredicate] = Field(default_factory=list)
    time_range: TimeRange | None = None
    numeric_range: NumericRange | None = None
    status: StatusRefinement | None = None


@dataclass
class QueryResult:
    table: str
    rows: list[dict[str, Any]] = field(default_factory=list)

    @property
    def row_count(self) -> int:
        return len(self.rows)
