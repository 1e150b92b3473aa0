"""
Unit tests -- function-call argument decoding and validation.
"""
from datetime import date, datetime

import pytest

from lifedash.assistant.query import FilterPredicate, Operator, QueryRequest
from lifedash.core.errors import QueryValidationError
from lifedash.governance.validator import (
    check_request_whitelist,
    coerce_value,
    decode_function_call,
)


# ── Valid calls ──────────────────────────────────────────

def test_minimal_call():
    req = decode_function_call("query_budget", '{"table": "transactions"}')
    assert req.domain == "budget"
    assert req.table == "transactions"
    assert req.columns == []
    assert req.filters == []


def test_dict_arguments_accepted():
    req = decode_function_call("query_todos", {"table": "todos", "select": "title, priority"})
    assert req.columns == ["title", "priority"]


def test_select_star_means_all():
    req = decode_function_call("query_todos", {"table": "todos", "select": "*"})
    assert req.columns == []


def test_filters_coerced_to_column_type():
    req = decode_function_call("query_budget", {
        "table": "transactions",
        "filters": [
            {"field": "amount", "operator": "gt", "value": "25.5"},
            {"field": "date", "operator": "gte", "value": "2025-03-01"},
        ],
    })
    assert req.filters[0].value == 25.5
    assert req.filters[1].value == date(2025, 3, 1)


def test_between_with_two_values():
    req = decode_function_call("query_budget", {
        "table": "transactions",
        "filters": [{"field": "date", "operator": "between", "value": ["2025-03-01", "2025-03-31"]}],
    })
    assert req.filters[0].operator is Operator.BETWEEN
    assert req.filters[0].value == [date(2025, 3, 1), date(2025, 3, 31)]


def test_time_range_refinement():
    req = decode_function_call("query_budget", {
        "table": "transactions",
        "timeRange": {"start_date": "2025-03-01", "end_date": "2025-03-31"},
    })
    assert req.time_range.column == "date"
    assert req.time_range.start == date(2025, 3, 1)
    assert req.time_range.end == date(2025, 3, 31)


def test_due_date_range_normalises_timezone():
    req = decode_function_call("query_todos", {
        "table": "todos",
        "dueDateRange": {"start": "2025-03-01T00:00:00Z", "end": "2025-03-02T02:00:00+02:00"},
    })
    assert req.time_range.start == datetime(2025, 3, 1, 0, 0)
    assert req.time_range.end == datetime(2025, 3, 2, 0, 0)


def test_status_refinement():
    req = decode_function_call("query_todos", {"table": "todos", "completionStatus": "pending"})
    assert req.status.column == "completed"
    assert req.status.value is False


def test_status_all_means_no_refinement():
    req = decode_function_call("query_todos", {"table": "todos", "completionStatus": "all"})
    assert req.status is None


def test_numeric_range_refinement():
    req = decode_function_call("query_nutrition", {
        "table": "nutrition_food_items",
        "nutritionRange": {"field": "protein", "min": 20},
    })
    assert req.numeric_range.field == "protein"
    assert req.numeric_range.min == 20.0
    assert req.numeric_range.max is None


# ── Rejections ───────────────────────────────────────────

def test_unknown_function():
    with pytest.raises(QueryValidationError, match="Unknown function"):
        decode_function_call("query_passwords", {"table": "todos"})


def test_invalid_json():
    with pytest.raises(QueryValidationError, match="not valid JSON"):
        decode_function_call("query_todos", "{table: todos")


def test_arguments_must_be_object():
    with pytest.raises(QueryValidationError, match="JSON object"):
        decode_function_call("query_todos", "[1, 2]")


def test_unknown_top_level_key():
    with pytest.raises(QueryValidationError, match="Unknown argument"):
        decode_function_call("query_todos", {"table": "todos", "orderBy": "title"})


def test_table_from_other_domain():
    with pytest.raises(QueryValidationError, match="Unknown table 'todos'"):
        decode_function_call("query_budget", {"table": "todos"})


def test_missing_table():
    with pytest.raises(QueryValidationError, match="Unknown table"):
        decode_function_call("query_budget", {})


def test_unknown_select_column():
    with pytest.raises(QueryValidationError, match="Unknown column 'password'"):
        decode_function_call("query_todos", {"table": "todos", "select": "title,password"})


def test_unknown_filter_field():
    with pytest.raises(QueryValidationError, match="not a column"):
        decode_function_call("query_budget", {
            "table": "transactions",
            "filters": [{"field": "merchant", "operator": "eq", "value": "x"}],
        })


def test_filter_field_from_sibling_table():
    # target_amount is a budget-domain column, but not on transactions
    with pytest.raises(QueryValidationError, match="not a column"):
        decode_function_call("query_budget", {
            "table": "transactions",
            "filters": [{"field": "target_amount", "operator": "gt", "value": 1}],
        })


def test_unsupported_operator():
    with pytest.raises(QueryValidationError, match="Unsupported operator 'in'"):
        decode_function_call("query_budget", {
            "table": "transactions",
            "filters": [{"field": "category", "operator": "in", "value": ["a", "b"]}],
        })


@pytest.mark.parametrize("value", [["2025-01-01"], ["2025-01-01", "2025-01-15", "2025-01-31"], "2025-01-01"])
def test_between_requires_exactly_two_values(value):
    with pytest.raises(QueryValidationError, match="exactly two values"):
        decode_function_call("query_budget", {
            "table": "transactions",
            "filters": [{"field": "date", "operator": "between", "value": value}],
        })


def test_like_only_on_text():
    with pytest.raises(QueryValidationError, match="text columns"):
        decode_function_call("query_budget", {
            "table": "transactions",
            "filters": [{"field": "amount", "operator": "like", "value": "%1%"}],
        })


def test_bad_value_type():
    with pytest.raises(QueryValidationError, match="not a valid float"):
        decode_function_call("query_budget", {
            "table": "transactions",
            "filters": [{"field": "amount", "operator": "gt", "value": "lots"}],
        })


def test_time_range_on_table_without_date():
    with pytest.raises(QueryValidationError, match="does not have"):
        decode_function_call("query_workout", {
            "table": "exercises",
            "timeRange": {"start_date": "2025-01-01"},
        })


def test_time_range_start_after_end():
    with pytest.raises(QueryValidationError, match="start is after end"):
        decode_function_call("query_budget", {
            "table": "transactions",
            "timeRange": {"start_date": "2025-03-31", "end_date": "2025-03-01"},
        })


def test_time_range_unknown_key():
    with pytest.raises(QueryValidationError, match="Unknown keys"):
        decode_function_call("query_budget", {
            "table": "transactions",
            "timeRange": {"from": "2025-03-01"},
        })


def test_numeric_range_field_not_common():
    with pytest.raises(QueryValidationError, match="must be one of"):
        decode_function_call("query_nutrition", {
            "table": "nutrition_meals",
            "nutritionRange": {"field": "calories", "min": 100},
        })


def test_numeric_range_needs_a_bound():
    with pytest.raises(QueryValidationError, match="at least one"):
        decode_function_call("query_habits", {"table": "habits", "statsFilter": {"field": "current_streak"}})


def test_numeric_range_min_above_max():
    with pytest.raises(QueryValidationError, match="greater than max"):
        decode_function_call("query_habits", {
            "table": "habits",
            "statsFilter": {"field": "current_streak", "min": 10, "max": 2},
        })


@pytest.mark.parametrize("bound", ["1e400", "inf", "nan"])
def test_numeric_range_rejects_non_finite(bound):
    with pytest.raises(QueryValidationError, match="must be a finite number"):
        decode_function_call("query_nutrition", {
            "table": "nutrition_food_items",
            "nutritionRange": {"field": "calories", "min": bound},
        })


def test_unknown_status_value():
    with pytest.raises(QueryValidationError, match="must be one of"):
        decode_function_call("query_todos", {"table": "todos", "completionStatus": "archived"})


def test_status_value_must_be_string():
    with pytest.raises(QueryValidationError, match="must be one of"):
        decode_function_call("query_todos", {"table": "todos", "completionStatus": ["completed"]})


# ── coerce_value ─────────────────────────────────────────

@pytest.mark.parametrize("raw,expected", [(True, True), ("yes", True), ("0", False), ("false", False)])
def test_coerce_bool(raw, expected):
    assert coerce_value(raw, "todos", "completed") is expected


def test_coerce_int_rejects_bool():
    with pytest.raises(QueryValidationError):
        coerce_value(True, "habits", "current_streak")


def test_coerce_rejects_null_and_lists():
    with pytest.raises(QueryValidationError, match="must not be null"):
        coerce_value(None, "todos", "title")
    with pytest.raises(QueryValidationError, match="scalar"):
        coerce_value(["a"], "todos", "title")


def test_int_overflow_is_validation_error():
    with pytest.raises(QueryValidationError, match="not a valid int"):
        decode_function_call("query_habits", {
            "table": "habits",
            "filters": [{"field": "current_streak", "operator": "gt", "value": "1e400"}],
        })


@pytest.mark.parametrize("raw", ["nan", "inf", "-inf", float("nan")])
def test_coerce_float_rejects_non_finite(raw):
    with pytest.raises(QueryValidationError, match="not a valid float"):
        coerce_value(raw, "nutrition_food_items", "calories")


# ── check_request_whitelist ──────────────────────────────

def test_whitelist_accepts_decoded_request():
    req = decode_function_call("query_todos", {"table": "todos", "completionStatus": "completed"})
    check_request_whitelist(req)


def test_whitelist_rejects_hand_built_request():
    req = QueryRequest(
        domain="todos", table="todos",
        filters=[FilterPredicate(field="secret", operator=Operator.EQ, value=1)],
    )
    with pytest.raises(QueryValidationError, match="not allowed"):
        check_request_whitelist(req)


def test_whitelist_rejects_table_outside_domain():
    req = QueryRequest(domain="todos", table="transactions")
    with pytest.raises(QueryValidationError, match="not in the catalog"):
        check_request_whitelist(req)
