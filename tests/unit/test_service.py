"""
Unit tests -- assistant service: end-to-end mock pipeline over the
in-memory store.
"""
import pytest

from lifedash.assistant import service
from lifedash.assistant.conversation import Classification, ConversationTurn
from lifedash.assistant.service import AssistantResult, RouteState, answer, plan
from lifedash.core.errors import (
    AuthorizationError,
    ClassificationParseError,
    NoFunctionSelectedError,
    QueryExecutionError,
)

from tests.conftest import USER_A

GROCERIES = "What did I spend on groceries last month?"


@pytest.fixture
def recorder(monkeypatch):
    """Wrap each pipeline stage so calls are recorded but still run."""
    calls: list[str] = []
    for name in ("classify", "select_function", "execute", "respond"):
        real = getattr(service, name)

        def wrapped(*args, _name=name, _real=real, **kwargs):
            calls.append(_name)
            return _real(*args, **kwargs)

        monkeypatch.setattr(service, name, wrapped)
    return calls


# ── Scenario A: fresh data question ──────────────────────

def test_fresh_question_fetches_and_summarises(engine, recorder):
    result = answer(GROCERIES, [], USER_A, engine, mode="mock")

    assert isinstance(result, AssistantResult)
    assert result.classification is Classification.FRESH
    assert result.function_name == "query_budget"
    assert sorted(r["amount"] for r in result.data.rows) == [30.0, 50.25]
    assert all(r["user_id"] == USER_A for r in result.data.rows)
    assert "Total amount: 80.25." in result.response
    assert recorder == ["classify", "select_function", "execute", "respond"]
    assert result.states == [
        RouteState.RECEIVED, RouteState.CLASSIFIED, RouteState.DATA_FETCHED,
        RouteState.ANALYZED, RouteState.RESPONDED,
    ]


def test_fresh_payload_shape(engine):
    payload = answer(GROCERIES, [], USER_A, engine, mode="mock").to_payload()
    assert set(payload) == {"response", "data", "type"}
    assert payload["type"] == "NEW_QUERY"
    assert len(payload["data"]) == 2


# ── Scenario B: follow-up ────────────────────────────────

def test_followup_answers_from_history(engine, recorder):
    first = answer(GROCERIES, [], USER_A, engine, mode="mock")
    history = [
        ConversationTurn(role="user", content=GROCERIES),
        ConversationTurn(role="assistant", content=first.response),
    ]
    recorder.clear()

    result = answer("and what about the month before?", history, USER_A, engine, mode="mock")

    assert result.classification is Classification.FOLLOWUP
    assert result.data is None
    assert recorder == ["classify", "respond"]
    assert "haven't fetched any new data" in result.response
    assert result.states == [
        RouteState.RECEIVED, RouteState.CLASSIFIED, RouteState.FOLLOWUP_ANSWERED, RouteState.RESPONDED,
    ]
    assert result.to_payload() == {"response": result.response, "type": "FOLLOWUP"}


def test_context_switch(engine):
    history = [
        ConversationTurn(role="user", content=GROCERIES),
        ConversationTurn(role="assistant", content="Total amount: 80.25."),
    ]
    result = answer("Which habits have a streak over 10?", history, USER_A, engine, mode="mock")
    assert result.classification is Classification.CONTEXT_SWITCH
    assert [r["name"] for r in result.data.rows] == ["Meditate"]
    assert result.to_payload()["type"] == "CONTEXT_SWITCH"


# ── Scenario C: no identity ──────────────────────────────

@pytest.mark.parametrize("identity", ["", None])
def test_no_identity_rejected_before_any_call(engine, recorder, identity):
    with pytest.raises(AuthorizationError):
        answer(GROCERIES, [], identity, engine, mode="mock")
    assert recorder == []


# ── Scenario D: no function selected ─────────────────────

def test_no_function_call_never_executes(engine, recorder):
    with pytest.raises(NoFunctionSelectedError):
        answer("Tell me a joke", [], USER_A, engine, mode="mock")
    assert recorder == ["classify", "select_function"]


# ── Failure propagation ──────────────────────────────────

def test_classifier_failure_is_terminal(engine, monkeypatch, recorder):
    def bad_classify(*args, **kwargs):
        raise ClassificationParseError("Router returned invalid JSON")

    monkeypatch.setattr(service, "classify", bad_classify)
    with pytest.raises(ClassificationParseError):
        answer(GROCERIES, [], USER_A, engine, mode="mock")
    assert "respond" not in recorder


def test_store_failure_is_terminal(engine, monkeypatch, recorder):
    def bad_execute(*args, **kwargs):
        raise QueryExecutionError("connection refused")

    monkeypatch.setattr(service, "execute", bad_execute)
    with pytest.raises(QueryExecutionError):
        answer(GROCERIES, [], USER_A, engine, mode="mock")
    assert "respond" not in recorder


def test_history_is_windowed(engine, monkeypatch):
    seen = {}

    def spy_classify(history, message, mode="mock"):
        seen["history"] = history
        return Classification.FOLLOWUP

    monkeypatch.setattr(service, "classify", spy_classify)
    history = [ConversationTurn(role="user", content=f"q{i}") for i in range(50)]
    answer("and?", history, USER_A, engine, mode="mock")
    assert len(seen["history"]) == 20
    assert seen["history"][-1].content == "q49"


# ── Dry run ──────────────────────────────────────────────

def test_plan_does_not_execute(recorder):
    label, function_name, request = plan(GROCERIES, [], USER_A, mode="mock")
    assert label is Classification.FRESH
    assert function_name == "query_budget"
    assert request.table == "transactions"
    assert "execute" not in recorder


def test_plan_requires_identity():
    with pytest.raises(AuthorizationError):
        plan(GROCERIES, [], "", mode="mock")
