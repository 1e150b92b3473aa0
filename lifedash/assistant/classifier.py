"""
Conversation classifier -- labels a message as a fresh query, a context
switch to another domain, or a follow-up answerable from history.

Two modes:
  mock     → deterministic keyword rules
  openai / anthropic → single-field JSON answer from the router prompt

A router answer that cannot be parsed is terminal for the request;
no default label is ever guessed.
"""
from __future__ import annotations

import json
import re
from typing import Any, Sequence

from lifedash.assistant.conversation import Classification, ConversationTurn, to_messages
from lifedash.assistant.function_selector import detect_domain
from lifedash.assistant.llm_client import call_chat
from lifedash.core.config import get_settings
from lifedash.core.errors import ClassificationParseError
from lifedash.core.logging import get_logger

logger = get_logger(__name__)


# ── Mock classifier ──────────────────────────────────────

def _previous_domain(history: Sequence[ConversationTurn]) -> str | None:
    for turn in reversed(history):
        if turn.role != "user":
            continue
        domain = detect_domain(turn.content)
        if domain is not None:
            return domain
    return None


def _classify_mock(history: Sequence[ConversationTurn], message: str) -> Classification:
    if not any(t.role == "user" for t in history):
        return Classification.FRESH

    domain = detect_domain(message)
    if domain is None:
        return Classification.FOLLOWUP

    previous = _previous_domain(history)
    if previous is not None and previous != domain:
        return Classification.CONTEXT_SWITCH
    return Classification.FRESH


# ── LLM classifier ──────────────────────────────────────

CONVERSATION_ROUTER_PROMPT = """\
You route messages for a personal-dashboard assistant (budget, workout, \
nutrition, habits, todos). Given the conversation so far and the latest user \
message, decide which kind of turn it is:

  NEW_QUERY      : a new question that needs fresh data from the user's records
  CONTEXT_SWITCH : a question about a different area than the one being discussed, \
needing fresh data
  FOLLOWUP       : a question that can be answered from the data and answers \
already in the conversation

Respond ONLY with a JSON object of the form {"type": "NEW_QUERY"}. \
No markdown, no explanation."""


def parse_classification(text: str | None) -> Classification:
    """Parse the router's JSON answer into a Classification.

    Raises
    ------
    ClassificationParseError
        If the text is not JSON, has no ``type`` field, or names an
        unknown label.
    """
    raw = (text or "").strip()
    if raw.startswith("```"):
        raw = re.sub(r"^```(?:json)?\s*", "", raw)
        raw = re.sub(r"\s*```$", "", raw)

    try:
        data: Any = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ClassificationParseError(f"Router returned invalid JSON: {exc}") from exc

    if not isinstance(data, dict) or not isinstance(data.get("type"), str):
        raise ClassificationParseError(f"Router answer has no 'type' field: {raw[:120]!r}")

    label = data["type"].strip().upper()
    for c in Classification:
        if label in (c.value, c.name):
            return c
    raise ClassificationParseError(f"Unknown conversation type '{data['type']}'")


def _classify_llm(history: Sequence[ConversationTurn], message: str, mode: str) -> Classification:
    messages = [{"role": "system", "content": CONVERSATION_ROUTER_PROMPT}]
    messages += to_messages(history)
    messages.append({"role": "user", "content": message})

    reply = call_chat(
        messages,
        provider=mode,
        temperature=get_settings().router_temperature,
        json_response=True,
    )
    return parse_classification(reply.content)


# ── Public API ───────────────────────────────────────────

def classify(
    history: Sequence[ConversationTurn],
    message: str,
    mode: str = "mock",
) -> Classification:
    """Label *message* given the prior *history*."""
    if mode == "mock":
        label = _classify_mock(history, message)
    else:
        label = _classify_llm(history, message, mode)

    logger.info("Classifier[%s] -> %s", mode, label.value)
    return label
