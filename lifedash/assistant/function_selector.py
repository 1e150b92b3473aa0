"""
Function selector -- picks one domain function for a data question and
produces its arguments.

Two modes:
  mock     → deterministic keyword extraction (no API key needed, great for tests)
  openai / anthropic → model function calling via llm_client

Either way the arguments are untrusted and go through
``decode_function_call`` before anything is executed.
"""
from __future__ import annotations

import calendar
import json
import re
from datetime import date, datetime, time, timedelta
from typing import Any

from lifedash.assistant.functions import build_functions
from lifedash.assistant.llm_client import FunctionCall, call_chat
from lifedash.assistant.query import QueryRequest
from lifedash.catalog.loader import SchemaCatalog, load_schema_catalog
from lifedash.core.config import get_settings
from lifedash.core.errors import NoFunctionSelectedError
from lifedash.core.logging import get_logger
from lifedash.governance.validator import decode_function_call

logger = get_logger(__name__)

# ── Keyword maps for mock mode ───────────────────────────

_DOMAIN_KEYWORDS: dict[str, list[str]] = {
    "budget":    ["spend", "spent", "spending", "expense", "budget", "income", "earn",
                  "transaction", "saving", "money", "cost", "paid", "salary"],
    "workout":   ["workout", "exercise", "gym", "lift", "training", "reps", "squat",
                  "bench", "cardio"],
    "nutrition": ["calorie", "protein", "carb", "fat", "meal", "food", "nutrition",
                  "breakfast", "lunch", "dinner", "snack", "ate", "eat"],
    "habits":    ["habit", "streak", "routine"],
    "todos":     ["todo", "to-do", "task", "due", "priority"],
}

_MACRO_RE = re.compile(r"\b(calorie|protein|carb|fat)s?\b")
_MACRO_FIELDS = {"calorie": "calories", "protein": "protein", "carb": "carbs", "fat": "fat"}

_TIME_WORDS = r"(?:last|this|past|in|during|over|since|yesterday|today|before|after)"

_CATEGORY_RE = re.compile(
    rf"\b(?:on|for)\s+([a-z][a-z &'-]*?)(?=\s+{_TIME_WORDS}\b|[?.!,]|$)",
    re.IGNORECASE,
)

_THRESHOLD_RE = re.compile(
    r"\b(over|above|more than|at least|under|below|less than|at most)\s+(\d+(?:\.\d+)?)",
    re.IGNORECASE,
)


def detect_domain(text: str) -> str | None:
    """Return the domain whose keyword appears earliest in *text*."""
    q = text.lower()
    best: str | None = None
    best_pos = len(q) + 1
    for name, keywords in _DOMAIN_KEYWORDS.items():
        for kw in keywords:
            m = re.search(r"\b" + re.escape(kw), q)
            if m and m.start() < best_pos:
                best = name
                best_pos = m.start()
    return best


# ── Time-range resolution ────────────────────────────────

def _month_bounds(year: int, month: int) -> tuple[date, date]:
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def _shift_month(d: date, months: int) -> tuple[int, int]:
    idx = d.year * 12 + (d.month - 1) + months
    return idx // 12, idx % 12 + 1


def resolve_time_range(text: str, today: date | None = None) -> tuple[date, date] | None:
    """Convert a natural-language time phrase to inclusive (start, end) dates.

    Returns None when no phrase is recognised.
    """
    q = text.lower()
    today = today or date.today()

    if "today" in q:
        return today, today
    if "yesterday" in q:
        d = today - timedelta(days=1)
        return d, d
    if re.search(r"\bthis\s+week\b", q):
        start = today - timedelta(days=today.weekday())
        return start, start + timedelta(days=6)
    if re.search(r"\blast\s+week\b", q):
        start = today - timedelta(days=today.weekday() + 7)
        return start, start + timedelta(days=6)
    if re.search(r"\bthis\s+month\b", q):
        return _month_bounds(today.year, today.month)
    if re.search(r"\blast\s+month\b", q):
        return _month_bounds(*_shift_month(today, -1))
    if re.search(r"\bthis\s+year\b|\bytd\b|year\s*to\s*date", q):
        return date(today.year, 1, 1), today
    if re.search(r"\blast\s+year\b", q):
        return date(today.year - 1, 1, 1), date(today.year - 1, 12, 31)

    m = re.search(r"\b(?:last|past)\s+(\d+)\s+(days?|weeks?|months?)\b", q)
    if m:
        n = int(m.group(1))
        unit = m.group(2).rstrip("s")
        if unit == "day":
            return today - timedelta(days=n), today
        if unit == "week":
            return today - timedelta(weeks=n), today
        year, month = _shift_month(today, -n)
        return date(year, month, 1), today

    return None


def _threshold(text: str) -> tuple[float | None, float | None]:
    m = _THRESHOLD_RE.search(text)
    if not m:
        return None, None
    value = float(m.group(2))
    if m.group(1).lower() in ("over", "above", "more than", "at least"):
        return value, None
    return None, value


# ── Mock selector ────────────────────────────────────────

def _budget_args(q: str, span: tuple[date, date] | None) -> dict[str, Any]:
    if "goal" in q:
        return {"table": "savings_goals"}
    if "categor" in q:
        return {"table": "categories"}
    if re.search(r"\bbudgets?\b", q) and not re.search(r"\bspen[dt]", q):
        return {"table": "budgets"}

    filters: list[dict[str, Any]] = []
    if re.search(r"\b(spen[dt]|spending|expenses?|cost|paid)\b", q):
        filters.append({"field": "type", "operator": "eq", "value": "expense"})
    elif re.search(r"\b(income|earn\w*|salary)\b", q):
        filters.append({"field": "type", "operator": "eq", "value": "income"})

    m = _CATEGORY_RE.search(q)
    if m:
        category = m.group(1).strip()
        if category and category not in ("me", "it", "that", "this"):
            filters.append({"field": "category", "operator": "eq", "value": category})

    args: dict[str, Any] = {"table": "transactions", "filters": filters}
    if span:
        args["timeRange"] = {"start_date": span[0].isoformat(), "end_date": span[1].isoformat()}
    return args


def _workout_args(q: str, span: tuple[date, date] | None) -> dict[str, Any]:
    if "template" in q:
        return {"table": "workout_templates"}
    if re.search(r"\bexercises?\b", q) and "workout" not in q:
        return {"table": "exercises"}
    args: dict[str, Any] = {"table": "workout_logs"}
    if span:
        args["timeRange"] = {"start_date": span[0].isoformat(), "end_date": span[1].isoformat()}
    return args


def _nutrition_args(q: str, span: tuple[date, date] | None) -> dict[str, Any]:
    macro_match = _MACRO_RE.search(q)
    if re.search(r"\bmeals?\b", q) and macro_match is None:
        args: dict[str, Any] = {"table": "nutrition_meals", "filters": []}
        if span:
            args["filters"].append(
                {"field": "date", "operator": "between", "value": [span[0].isoformat(), span[1].isoformat()]}
            )
        return args

    args = {"table": "nutrition_food_items"}
    low, high = _threshold(q)
    macro = _MACRO_FIELDS[macro_match.group(1)] if macro_match else "calories"
    if low is not None or high is not None:
        rng: dict[str, Any] = {"field": macro}
        if low is not None:
            rng["min"] = low
        if high is not None:
            rng["max"] = high
        args["nutritionRange"] = rng
    return args


def _habits_args(q: str, span: tuple[date, date] | None) -> dict[str, Any]:
    if re.search(r"\b(records?|check[- ]?ins?|completed|missed)\b", q):
        args: dict[str, Any] = {"table": "habit_records", "filters": []}
        if span:
            args["filters"].append(
                {"field": "date", "operator": "between", "value": [span[0].isoformat(), span[1].isoformat()]}
            )
        return args

    args = {"table": "habits"}
    low, high = _threshold(q)
    if low is not None or high is not None:
        field = "longest_streak" if "longest" in q else "current_streak"
        if "completion" in q:
            field = "total_completions"
        rng: dict[str, Any] = {"field": field}
        if low is not None:
            rng["min"] = low
        if high is not None:
            rng["max"] = high
        args["statsFilter"] = rng
    return args


def _todos_args(q: str, span: tuple[date, date] | None) -> dict[str, Any]:
    status = "all"
    if re.search(r"\b(completed|done|finished)\b", q):
        status = "completed"
    elif re.search(r"\b(pending|open|left|outstanding|incomplete|unfinished)\b", q):
        status = "pending"

    filters: list[dict[str, Any]] = []
    m = re.search(r"\b(high|medium|low)[- ]priority\b", q)
    if m:
        filters.append({"field": "priority", "operator": "eq", "value": m.group(1)})

    args: dict[str, Any] = {"table": "todos", "filters": filters, "completionStatus": status}
    if span:
        args["dueDateRange"] = {
            "start": datetime.combine(span[0], time.min).isoformat(),
            "end": datetime.combine(span[1], time.max).isoformat(),
        }
    return args


_ARG_BUILDERS = {
    "budget": _budget_args,
    "workout": _workout_args,
    "nutrition": _nutrition_args,
    "habits": _habits_args,
    "todos": _todos_args,
}


def _select_mock(message: str, catalog: SchemaCatalog, today: date | None = None) -> FunctionCall | None:
    """Deterministic keyword-based message → function call."""
    domain_name = detect_domain(message)
    if domain_name is None:
        return None
    domain = catalog.domain(domain_name)
    if domain is None:
        return None

    q = message.lower().strip()
    span = resolve_time_range(q, today=today)
    args = _ARG_BUILDERS[domain_name](q, span)
    return FunctionCall(name=domain.function, arguments=json.dumps(args))


# ── LLM selector ────────────────────────────────────────

FUNCTION_SELECTION_PROMPT = """\
You are the data-access planner for a personal dashboard covering budget, \
workout, nutrition, habits and todos. Pick exactly ONE of the provided functions \
that retrieves the data needed to answer the user's question and fill in its \
arguments. Only use the tables, fields and operators listed in the function \
definitions. Express dates as ISO-8601. Today's date is {today}. \
Never filter on user_id; access is scoped automatically."""


def _select_llm(message: str, catalog: SchemaCatalog, mode: str) -> FunctionCall | None:
    prompt = FUNCTION_SELECTION_PROMPT.format(today=date.today().isoformat())
    reply = call_chat(
        [
            {"role": "system", "content": prompt},
            {"role": "user", "content": message},
        ],
        provider=mode,
        temperature=get_settings().router_temperature,
        functions=build_functions(catalog),
    )
    return reply.function_call


# ── Public API ───────────────────────────────────────────

def select_function(
    message: str,
    catalog: SchemaCatalog | None = None,
    mode: str = "mock",
) -> tuple[str, QueryRequest]:
    """Choose a domain function for *message* and return its validated request.

    Raises
    ------
    NoFunctionSelectedError
        If no function call is produced.
    QueryValidationError
        If the produced arguments do not match the schema catalog.
    """
    if catalog is None:
        catalog = load_schema_catalog()

    if mode == "mock":
        call = _select_mock(message, catalog)
    else:
        call = _select_llm(message, catalog, mode)

    if call is None:
        raise NoFunctionSelectedError("No function call received")

    logger.info("FunctionSelector[%s] -> %s %s", mode, call.name, call.arguments)
    request = decode_function_call(call.name, call.arguments, catalog)
    return call.name, request
