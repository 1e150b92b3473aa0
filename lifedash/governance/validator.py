"""
Decodes and validates model-produced function-call arguments.

The model's arguments are untrusted.  Decoding runs in two steps:
  1. Parse into an untyped structure (JSON string or dict -> dict)
  2. Validate every piece against the schema catalog and build a typed
     QueryRequest

Checks performed (first mismatch raises QueryValidationError):
  1. Function name maps to a catalog domain
  2. Arguments are an object with no unknown keys
  3. Table belongs to the domain
  4. Selected columns belong to the table
  5. Every filter field is a real column of the target table
  6. Every operator is supported; 'between' takes exactly two values,
     'like' takes a string on a text column, the rest take a scalar
  7. Filter values coerce to the column's type
  8. Refinements reference columns / common fields the table really has
"""
from __future__ import annotations

import json
import math
from datetime import date, datetime, timezone
from typing import Any

from lifedash.assistant.query import (
    FilterPredicate,
    NumericRange,
    Operator,
    QueryRequest,
    StatusRefinement,
    SUPPORTED_OPERATORS,
    TimeRange,
)
from lifedash.catalog.loader import (
    DomainSchema,
    Refinement,
    SchemaCatalog,
    TableDescriptor,
    load_schema_catalog,
)
from lifedash.core.errors import QueryValidationError
from lifedash.db.tables import get_table

_BASE_KEYS = ("table", "select", "filters")


# ── Value coercion ───────────────────────────────────────

def _python_type(table_name: str, column: str) -> type | None:
    table = get_table(table_name)
    if table is None or column not in table.c:
        return None
    try:
        return table.c[column].type.python_type
    except NotImplementedError:
        return None


def _parse_date(raw: Any) -> date:
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    text = str(raw).strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        return _parse_datetime(text).date()


def _parse_datetime(raw: Any) -> datetime:
    if isinstance(raw, datetime):
        return raw
    if isinstance(raw, date):
        return datetime(raw.year, raw.month, raw.day)
    text = str(raw).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is not None:
        # stored timestamps are naive UTC
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def coerce_value(value: Any, table_name: str, column: str) -> Any:
    """Coerce a scalar model value to the Python type of *column*."""
    if isinstance(value, (list, dict)):
        raise QueryValidationError(f"Value for '{column}' must be a scalar, got {value!r}")
    if value is None:
        raise QueryValidationError(f"Value for '{column}' must not be null")

    py_type = _python_type(table_name, column)
    try:
        if py_type is bool:
            if isinstance(value, bool):
                return value
            lowered = str(value).strip().lower()
            if lowered in ("true", "1", "yes"):
                return True
            if lowered in ("false", "0", "no"):
                return False
            raise ValueError(value)
        if py_type in (int, float):
            if isinstance(value, bool):
                raise ValueError(value)
            number = float(value)
            if not math.isfinite(number):
                raise ValueError(value)
            return int(number) if py_type is int else number
        if py_type is datetime:
            return _parse_datetime(value)
        if py_type is date:
            return _parse_date(value)
    except (TypeError, ValueError, OverflowError):
        raise QueryValidationError(
            f"Value {value!r} is not a valid {py_type.__name__} for column '{column}'"
        ) from None
    return str(value) if py_type is str else value


# ── Pieces ───────────────────────────────────────────────

def _parse_arguments(arguments: str | dict[str, Any] | None) -> dict[str, Any]:
    if arguments is None:
        return {}
    if isinstance(arguments, str):
        try:
            arguments = json.loads(arguments) if arguments.strip() else {}
        except json.JSONDecodeError as exc:
            raise QueryValidationError(f"Function arguments are not valid JSON: {exc}") from exc
    if not isinstance(arguments, dict):
        raise QueryValidationError("Function arguments must be a JSON object")
    return arguments


def _parse_select(raw: Any, table: TableDescriptor) -> list[str]:
    if raw is None:
        return []
    if isinstance(raw, list):
        names = [str(c).strip() for c in raw]
    elif isinstance(raw, str):
        names = [c.strip() for c in raw.split(",")]
    else:
        raise QueryValidationError("'select' must be a comma-separated string of columns")
    names = [n for n in names if n]
    if not names or names == ["*"]:
        return []
    for name in names:
        if not table.has_column(name):
            raise QueryValidationError(
                f"Unknown column '{name}' for table '{table.name}'. "
                f"Allowed: {', '.join(table.columns)}"
            )
    return names


def _parse_filter(raw: Any, table: TableDescriptor) -> FilterPredicate:
    if not isinstance(raw, dict):
        raise QueryValidationError(f"Filter must be an object, got {raw!r}")

    field_name = raw.get("field")
    if not isinstance(field_name, str) or not table.has_column(field_name):
        raise QueryValidationError(
            f"Filter field '{field_name}' is not a column of table '{table.name}'. "
            f"Allowed: {', '.join(table.columns)}"
        )

    op_raw = raw.get("operator", Operator.EQ.value)
    if op_raw not in SUPPORTED_OPERATORS:
        raise QueryValidationError(
            f"Unsupported operator '{op_raw}'. Allowed: {', '.join(SUPPORTED_OPERATORS)}"
        )
    op = Operator(op_raw)
    value = raw.get("value")

    if op is Operator.BETWEEN:
        if not isinstance(value, list) or len(value) != 2:
            raise QueryValidationError(
                f"Operator 'between' on '{field_name}' requires exactly two values (start, end)"
            )
        value = [coerce_value(v, table.name, field_name) for v in value]
    elif op is Operator.LIKE:
        if not isinstance(value, str) or not value:
            raise QueryValidationError(f"Operator 'like' on '{field_name}' requires a non-empty string")
        if _python_type(table.name, field_name) is not str:
            raise QueryValidationError(f"Operator 'like' is only allowed on text columns, not '{field_name}'")
    else:
        value = coerce_value(value, table.name, field_name)

    return FilterPredicate(field=field_name, operator=op, value=value)


def _parse_time_range(raw: Any, ref: Refinement, table: TableDescriptor) -> TimeRange | None:
    if not isinstance(raw, dict):
        raise QueryValidationError(f"'{ref.argument}' must be an object")
    if ref.column is None or not table.has_column(ref.column):
        raise QueryValidationError(
            f"'{ref.argument}' needs column '{ref.column}', which table '{table.name}' does not have"
        )
    unknown = set(raw) - {ref.start_key, ref.end_key}
    if unknown:
        raise QueryValidationError(f"Unknown keys in '{ref.argument}': {', '.join(sorted(unknown))}")

    parse = _parse_datetime if ref.value_format == "date-time" else _parse_date
    bounds: list[Any] = []
    for key in (ref.start_key, ref.end_key):
        val = raw.get(key)
        if val in (None, ""):
            bounds.append(None)
            continue
        try:
            bounds.append(parse(val))
        except (TypeError, ValueError):
            raise QueryValidationError(
                f"'{ref.argument}.{key}' is not a valid {ref.value_format}: {val!r}"
            ) from None

    start, end = bounds
    if start is None and end is None:
        return None
    if start is not None and end is not None and start > end:
        raise QueryValidationError(f"'{ref.argument}' start is after end")
    return TimeRange(column=ref.column, start=start, end=end)


def _parse_numeric_range(raw: Any, ref: Refinement, table: TableDescriptor) -> NumericRange:
    if not isinstance(raw, dict):
        raise QueryValidationError(f"'{ref.argument}' must be an object")
    unknown = set(raw) - {"field", "min", "max"}
    if unknown:
        raise QueryValidationError(f"Unknown keys in '{ref.argument}': {', '.join(sorted(unknown))}")

    allowed = table.common_fields.get(ref.common_fields or "", ())
    field_name = raw.get("field")
    if field_name not in allowed:
        raise QueryValidationError(
            f"'{ref.argument}.field' must be one of: {', '.join(allowed) or '(none for this table)'}"
        )

    bounds: dict[str, float | None] = {}
    for key in ("min", "max"):
        val = raw.get(key)
        if val is None:
            bounds[key] = None
            continue
        if isinstance(val, bool):
            raise QueryValidationError(f"'{ref.argument}.{key}' must be a number")
        try:
            bounds[key] = float(val)
        except (TypeError, ValueError, OverflowError):
            raise QueryValidationError(f"'{ref.argument}.{key}' must be a number") from None
        if not math.isfinite(bounds[key]):
            raise QueryValidationError(f"'{ref.argument}.{key}' must be a finite number")

    if bounds["min"] is None and bounds["max"] is None:
        raise QueryValidationError(f"'{ref.argument}' needs at least one of min / max")
    if bounds["min"] is not None and bounds["max"] is not None and bounds["min"] > bounds["max"]:
        raise QueryValidationError(f"'{ref.argument}' min is greater than max")
    return NumericRange(field=field_name, min=bounds["min"], max=bounds["max"])


def _parse_status(raw: Any, ref: Refinement, table: TableDescriptor) -> StatusRefinement | None:
    if ref.column is None or not table.has_column(ref.column):
        raise QueryValidationError(
            f"'{ref.argument}' needs column '{ref.column}', which table '{table.name}' does not have"
        )
    if not isinstance(raw, str) or raw not in ref.values:
        raise QueryValidationError(
            f"'{ref.argument}' must be one of: {', '.join(ref.values)}"
        )
    mapped = ref.values[raw]
    if mapped is None:
        return None
    return StatusRefinement(column=ref.column, value=bool(mapped))


# ── Public API ───────────────────────────────────────────

def decode_function_call(
    function_name: str,
    arguments: str | dict[str, Any] | None,
    catalog: SchemaCatalog | None = None,
) -> QueryRequest:
    """Turn a model function call into a validated QueryRequest.

    Raises
    ------
    QueryValidationError
        On the first argument that does not match the catalog.
    """
    if catalog is None:
        catalog = load_schema_catalog()

    domain: DomainSchema | None = catalog.domain_for_function(function_name)
    if domain is None:
        raise QueryValidationError(
            f"Unknown function '{function_name}'. "
            f"Allowed: {', '.join(catalog.get_function_names())}"
        )

    args = _parse_arguments(arguments)

    allowed_keys = set(_BASE_KEYS) | {r.argument for r in domain.refinements}
    unknown = set(args) - allowed_keys
    if unknown:
        raise QueryValidationError(
            f"Unknown argument(s) for {function_name}: {', '.join(sorted(unknown))}"
        )

    table_name = args.get("table")
    table = domain.table(table_name) if isinstance(table_name, str) else None
    if table is None:
        raise QueryValidationError(
            f"Unknown table '{table_name}' for domain '{domain.name}'. "
            f"Allowed: {', '.join(domain.tables)}"
        )

    columns = _parse_select(args.get("select"), table)

    raw_filters = args.get("filters") or []
    if not isinstance(raw_filters, list):
        raise QueryValidationError("'filters' must be a list")
    filters = [_parse_filter(f, table) for f in raw_filters]

    request = QueryRequest(domain=domain.name, table=table.name, columns=columns, filters=filters)

    for ref in domain.refinements:
        if ref.argument not in args or args[ref.argument] is None:
            continue
        raw = args[ref.argument]
        if ref.kind == "time_range":
            if request.time_range is not None:
                raise QueryValidationError("Only one time range refinement is allowed per query")
            request.time_range = _parse_time_range(raw, ref, table)
        elif ref.kind == "numeric_range":
            request.numeric_range = _parse_numeric_range(raw, ref, table)
        elif ref.kind == "status":
            request.status = _parse_status(raw, ref, table)

    return request


def check_request_whitelist(request: QueryRequest, catalog: SchemaCatalog | None = None) -> None:
    """Re-check an already-built request against the catalog.

    Used by the executor so that a QueryRequest built outside
    ``decode_function_call`` still cannot reference unknown tables,
    columns or operators.
    """
    if catalog is None:
        catalog = load_schema_catalog()

    domain = catalog.domain(request.domain)
    table = domain.table(request.table) if domain else None
    if table is None or get_table(request.table) is None:
        raise QueryValidationError(f"Table '{request.table}' is not in the catalog for '{request.domain}'")

    referenced: list[str] = list(request.columns) + [p.field for p in request.filters]
    if request.time_range:
        referenced.append(request.time_range.column)
    if request.numeric_range:
        referenced.append(request.numeric_range.field)
    if request.status:
        referenced.append(request.status.column)
    for name in referenced:
        if not table.has_column(name):
            raise QueryValidationError(f"Column '{name}' is not allowed on table '{table.name}'")

    for p in request.filters:
        if p.operator.value not in SUPPORTED_OPERATORS:
            raise QueryValidationError(f"Unsupported operator '{p.operator}'")
        if p.operator is Operator.BETWEEN and (not isinstance(p.value, list) or len(p.value) != 2):
            raise QueryValidationError(
                f"Operator 'between' on '{p.field}' requires exactly two values (start, end)"
            )
