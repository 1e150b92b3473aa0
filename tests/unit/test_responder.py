"""
Unit tests -- analysis responder (mock templates + LLM message building).
"""
import json

import pytest

from lifedash.assistant import responder
from lifedash.assistant.conversation import ConversationTurn
from lifedash.assistant.llm_client import ChatReply
from lifedash.assistant.query import QueryResult
from lifedash.assistant.responder import build_analysis_messages, respond
from lifedash.core.errors import AnalysisError

ROWS = [
    {"category": "groceries", "amount": 50.25, "date": "2025-02-05"},
    {"category": "groceries", "amount": 30.0, "date": "2025-02-20"},
]


def test_mock_summary_cites_total():
    text = respond([], "What did I spend?", fresh_data=QueryResult(table="transactions", rows=ROWS))
    assert "2 matching records" in text
    assert "Total amount: 80.25." in text


def test_mock_summary_no_rows():
    text = respond([], "What did I spend?", fresh_data=QueryResult(table="transactions", rows=[]))
    assert "couldn't find any matching records" in text


def test_mock_followup_reuses_history():
    history = [
        ConversationTurn(role="user", content="What did I spend last month?"),
        ConversationTurn(role="assistant", content="Total amount: 80.25."),
    ]
    text = respond(history, "and the month before?")
    assert "haven't fetched any new data" in text
    assert "80.25" in text


def test_mock_followup_without_history_says_no_data():
    text = respond([], "and the month before?")
    assert "don't have any data" in text


def test_analysis_messages_include_fresh_rows():
    history = [ConversationTurn(role="user", content="hi"), ConversationTurn(role="assistant", content="hello")]
    messages = build_analysis_messages(history, "What did I spend?", QueryResult(table="transactions", rows=ROWS))
    assert messages[0]["role"] == "system"
    assert messages[1:3] == [{"role": "user", "content": "hi"}, {"role": "assistant", "content": "hello"}]
    assert messages[-2]["role"] == "assistant"
    assert messages[-2]["content"] == f"New data retrieved: {json.dumps(ROWS)}"
    assert messages[-1] == {"role": "user", "content": "What did I spend?"}


def test_followup_messages_have_no_data_turn():
    messages = build_analysis_messages([], "and before?")
    assert len(messages) == 2
    assert not any("New data retrieved" in m["content"] for m in messages)


def test_llm_answer_uses_analysis_temperature(monkeypatch):
    seen = {}

    def fake_call_chat(messages, **kwargs):
        seen.update(kwargs)
        return ChatReply(content="  You spent 80.25 on groceries.  ")

    monkeypatch.setattr(responder, "call_chat", fake_call_chat)
    text = respond([], "What did I spend?", QueryResult(table="transactions", rows=ROWS), mode="openai")
    assert text == "You spent 80.25 on groceries."
    assert seen["temperature"] == 0.7


def test_llm_failure_wrapped(monkeypatch):
    def boom(messages, **kwargs):
        raise RuntimeError("provider down")

    monkeypatch.setattr(responder, "call_chat", boom)
    with pytest.raises(AnalysisError, match="provider down"):
        respond([], "anything", mode="openai")


def test_empty_answer_is_error(monkeypatch):
    monkeypatch.setattr(responder, "call_chat", lambda messages, **kw: ChatReply(content="   "))
    with pytest.raises(AnalysisError, match="empty"):
        respond([], "anything", mode="anthropic")
