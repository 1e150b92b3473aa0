"""
Unit tests -- function definitions offered to the model.
"""
from lifedash.assistant.functions import build_function, build_functions
from lifedash.assistant.query import SUPPORTED_OPERATORS
from lifedash.catalog.loader import load_schema_catalog


def _by_name() -> dict:
    return {f["name"]: f for f in build_functions()}


def test_one_function_per_domain():
    names = [f["name"] for f in build_functions()]
    assert names == load_schema_catalog().get_function_names()


def test_table_enum_matches_catalog():
    fn = _by_name()["query_workout"]
    assert fn["parameters"]["properties"]["table"]["enum"] == [
        "workout_logs", "exercises", "workout_log_exercises",
        "workout_templates", "workout_template_exercises",
    ]
    assert fn["parameters"]["required"] == ["table"]


def test_filter_items_are_constrained():
    items = _by_name()["query_budget"]["parameters"]["properties"]["filters"]["items"]
    assert items["properties"]["operator"]["enum"] == list(SUPPORTED_OPERATORS)
    assert "category" in items["properties"]["field"]["enum"]
    assert "password" not in items["properties"]["field"]["enum"]


def test_time_range_refinement_schema():
    props = _by_name()["query_budget"]["parameters"]["properties"]
    tr = props["timeRange"]
    assert set(tr["properties"]) == {"start_date", "end_date"}
    assert tr["properties"]["start_date"]["format"] == "date"


def test_due_date_range_uses_datetime():
    props = _by_name()["query_todos"]["parameters"]["properties"]
    assert props["dueDateRange"]["properties"]["start"]["format"] == "date-time"


def test_status_refinement_is_enum():
    props = _by_name()["query_todos"]["parameters"]["properties"]
    assert props["completionStatus"] == {"type": "string", "enum": ["completed", "pending", "all"]}


def test_numeric_range_field_enum():
    props = _by_name()["query_habits"]["parameters"]["properties"]
    stats = props["statsFilter"]
    assert stats["properties"]["field"]["enum"] == ["current_streak", "longest_streak", "total_completions"]
    assert stats["required"] == ["field"]


def test_build_function_uses_domain_description():
    domain = load_schema_catalog().domain("nutrition")
    fn = build_function(domain)
    assert fn["description"] == domain.description
    assert "nutritionRange" in fn["parameters"]["properties"]
