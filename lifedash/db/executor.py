"""
Identity-scoped read executor.

Every assistant read runs through `execute`, which:
  1. Re-checks table, columns and operators against the schema catalog
  2. Drops any upstream predicate on the owner column and appends
     ``user_id = <caller>``; this is the only authorization boundary
  3. Builds a SQLAlchemy Core SELECT (bound parameters only)
  4. Runs it in a read-only transaction with a statement timeout
  5. Converts Decimal/date/datetime to JSON-safe Python types
"""
from __future__ import annotations

import decimal
import datetime
import operator
from typing import Any, Callable

import sqlalchemy as sa
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from lifedash.assistant.query import FilterPredicate, Operator, QueryRequest, QueryResult
from lifedash.catalog.loader import SchemaCatalog, load_schema_catalog
from lifedash.core.config import get_settings
from lifedash.core.errors import AuthorizationError, QueryExecutionError, QueryValidationError
from lifedash.core.logging import get_logger
from lifedash.db.connection import readonly_connection
from lifedash.db.tables import OWNER_COLUMN, get_table
from lifedash.governance.validator import check_request_whitelist

logger = get_logger(__name__)

_ORDER_COLUMNS = ("date", "created_at")

_OPERATORS: dict[Operator, Callable[[sa.ColumnElement, Any], sa.ColumnElement]] = {
    Operator.EQ: operator.eq,
    Operator.GT: operator.gt,
    Operator.LT: operator.lt,
    Operator.GTE: operator.ge,
    Operator.LTE: operator.le,
    Operator.BETWEEN: lambda col, v: col.between(v[0], v[1]),
    Operator.LIKE: lambda col, v: col.like(v),
}


def _serialise_value(val: Any) -> Any:
    """Convert DB types to JSON-serialisable Python types."""
    if isinstance(val, decimal.Decimal):
        return float(val)
    if isinstance(val, (datetime.date, datetime.datetime)):
        return val.isoformat()
    if isinstance(val, datetime.timedelta):
        return str(val)
    return val


def _range_predicates(column: str, low: Any, high: Any) -> list[FilterPredicate]:
    if low is not None and high is not None:
        return [FilterPredicate(field=column, operator=Operator.BETWEEN, value=[low, high])]
    if low is not None:
        return [FilterPredicate(field=column, operator=Operator.GTE, value=low)]
    if high is not None:
        return [FilterPredicate(field=column, operator=Operator.LTE, value=high)]
    return []


def scoped_predicates(
    request: QueryRequest,
    identity: str,
    owner_column: str = OWNER_COLUMN,
) -> list[FilterPredicate]:
    """Return the full predicate list that will be executed for *request*.

    Upstream predicates on the owner column are discarded; refinements are
    expanded into ordinary predicates; the caller's identity predicate is
    always last.
    """
    if not identity:
        raise AuthorizationError("Unauthorized")

    predicates: list[FilterPredicate] = []
    for p in request.filters:
        if p.field == owner_column:
            logger.warning("Dropping upstream predicate on owner column: %s %s", p.operator.value, p.value)
            continue
        predicates.append(p)

    if request.time_range:
        tr = request.time_range
        predicates.extend(_range_predicates(tr.column, tr.start, tr.end))
    if request.numeric_range:
        nr = request.numeric_range
        predicates.extend(_range_predicates(nr.field, nr.min, nr.max))
    if request.status:
        predicates.append(
            FilterPredicate(field=request.status.column, operator=Operator.EQ, value=request.status.value)
        )

    predicates.append(FilterPredicate(field=owner_column, operator=Operator.EQ, value=identity))
    return predicates


def build_select(
    request: QueryRequest,
    identity: str,
    row_limit: int | None = None,
    catalog: SchemaCatalog | None = None,
) -> sa.Select:
    """Build the identity-scoped SELECT for a validated QueryRequest."""
    check_request_whitelist(request, catalog)

    table = get_table(request.table)
    if table is None:
        raise QueryValidationError(f"Unknown table '{request.table}'")

    columns = [table.c[c] for c in request.columns] or [table]
    stmt = sa.select(*columns)

    for p in scoped_predicates(request, identity):
        if p.operator is Operator.BETWEEN and (not isinstance(p.value, list) or len(p.value) != 2):
            raise QueryValidationError(
                f"Operator 'between' on '{p.field}' requires exactly two values (start, end)"
            )
        stmt = stmt.where(_OPERATORS[p.operator](table.c[p.field], p.value))

    for name in _ORDER_COLUMNS:
        if name in table.c:
            stmt = stmt.order_by(table.c[name].desc())
            break

    limit = row_limit if row_limit is not None else get_settings().sql_row_limit
    return stmt.limit(limit)


def execute(
    request: QueryRequest,
    identity: str,
    engine: Engine,
    catalog: SchemaCatalog | None = None,
    row_limit: int | None = None,
    timeout_ms: int | None = None,
) -> QueryResult:
    """Run one identity-scoped read and return JSON-safe rows.

    Raises
    ------
    AuthorizationError
        If *identity* is empty.
    QueryValidationError
        If the request references anything outside the catalog.
    QueryExecutionError
        If the store fails the read.
    """
    if catalog is None:
        catalog = load_schema_catalog()
    if timeout_ms is None:
        timeout_ms = get_settings().query_timeout_ms

    stmt = build_select(request, identity, row_limit=row_limit, catalog=catalog)
    logger.info("Executing read  domain=%s  table=%s  filters=%d",
                request.domain, request.table, len(request.filters))

    try:
        with readonly_connection(engine, timeout_ms=timeout_ms) as conn:
            result = conn.execute(stmt)
            keys = list(result.keys())
            rows = [
                {k: _serialise_value(v) for k, v in zip(keys, row)}
                for row in result.fetchall()
            ]
    except SQLAlchemyError as exc:
        logger.error("Read failed on %s: %s", request.table, exc)
        raise QueryExecutionError(f"Query on '{request.table}' failed: {exc}") from exc

    logger.info("Returned %d rows", len(rows))
    return QueryResult(table=request.table, rows=rows)
