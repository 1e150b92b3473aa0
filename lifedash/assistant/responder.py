"""
Analysis responder -- turns fetched rows (or just the running conversation)
into a natural-language answer.

Fresh/switch turns get a synthetic assistant turn carrying the retrieved
rows, so the answer is grounded in real numbers.  Follow-up turns see only
the history.  Works in ``mock`` mode (templates, no API key needed) and
LLM mode.
"""
from __future__ import annotations

import json
from typing import Sequence

from lifedash.assistant.conversation import ConversationTurn, to_messages
from lifedash.assistant.llm_client import call_chat
from lifedash.assistant.query import QueryResult
from lifedash.core.config import get_settings
from lifedash.core.errors import AnalysisError
from lifedash.core.logging import get_logger

logger = get_logger(__name__)

_TOTAL_FIELDS = (
    "amount", "calories", "protein", "carbs", "fat",
    "duration_minutes", "current_amount", "target_amount",
)

DATA_ANALYSIS_PROMPT = """\
You are a friendly personal-dashboard analyst for the user's budget, workouts, \
nutrition, habits and todos. Answer the user's latest question using ONLY the \
data and figures present in this conversation. Quote concrete numbers (totals, \
counts, dates) when you have them. If the conversation does not contain the \
data needed to answer, say plainly that you don't have that data yet instead \
of estimating or inventing numbers. Keep answers short."""


# ── Template responses (mock / offline) ─────────────────

def _summarise_rows(result: QueryResult) -> str:
    label = result.table.replace("_", " ")
    if not result.rows:
        return f"I couldn't find any matching records in your {label}."

    noun = "record" if result.row_count == 1 else "records"
    parts = [f"I found {result.row_count} matching {noun} in your {label}."]
    for f in _TOTAL_FIELDS:
        values = [
            r[f] for r in result.rows
            if isinstance(r.get(f), (int, float)) and not isinstance(r.get(f), bool)
        ]
        if values:
            parts.append(f"Total {f.replace('_', ' ')}: {sum(values):,.2f}.")
    return " ".join(parts)


def _respond_mock(
    history: Sequence[ConversationTurn],
    message: str,
    fresh_data: QueryResult | None,
) -> str:
    if fresh_data is not None:
        return _summarise_rows(fresh_data)

    previous = next((t.content for t in reversed(history) if t.role == "assistant"), None)
    if previous is None:
        return "I don't have any data for that yet. Try asking about a specific period or area."
    return (
        "I haven't fetched any new data for this question, so I can only go by "
        f"what we already discussed: {previous}"
    )


# ── LLM responses ───────────────────────────────────────

def build_analysis_messages(
    history: Sequence[ConversationTurn],
    message: str,
    fresh_data: QueryResult | None = None,
) -> list[dict[str, str]]:
    messages = [{"role": "system", "content": DATA_ANALYSIS_PROMPT}]
    messages += to_messages(history)
    if fresh_data is not None:
        messages.append({
            "role": "assistant",
            "content": f"New data retrieved: {json.dumps(fresh_data.rows, default=str)}",
        })
    messages.append({"role": "user", "content": message})
    return messages


def _respond_llm(
    history: Sequence[ConversationTurn],
    message: str,
    fresh_data: QueryResult | None,
    mode: str,
) -> str:
    reply = call_chat(
        build_analysis_messages(history, message, fresh_data),
        provider=mode,
        temperature=get_settings().analysis_temperature,
    )
    return reply.content


# ── Public API ───────────────────────────────────────────

def respond(
    history: Sequence[ConversationTurn],
    message: str,
    fresh_data: QueryResult | None = None,
    mode: str = "mock",
) -> str:
    """Produce the natural-language answer for this turn.

    Raises
    ------
    AnalysisError
        If the model call fails or returns an empty answer.
    """
    try:
        if mode == "mock":
            text = _respond_mock(history, message, fresh_data)
        else:
            text = _respond_llm(history, message, fresh_data, mode)
    except Exception as exc:
        raise AnalysisError(f"Analysis failed: {exc}") from exc

    if not text or not text.strip():
        raise AnalysisError("Analysis model returned an empty answer")

    logger.info("Responder[%s] -> %d chars (fresh=%s)", mode, len(text), fresh_data is not None)
    return text.strip()
