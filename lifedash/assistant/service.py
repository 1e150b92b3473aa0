"""
Assistant service -- orchestrates classify -> (select -> execute) -> respond.

One request is a strictly sequential chain of external calls:

  RECEIVED → CLASSIFIED → FOLLOWUP_ANSWERED                → RESPONDED
                        → DATA_FETCHED → ANALYZED          → RESPONDED
  any state → FAILED  (terminal; no partial result is returned)

The store engine is passed in by the caller; nothing is cached or
persisted between requests.
"""
from __future__ import annotations

import time
from enum import Enum
from typing import Any, Sequence

from sqlalchemy.engine import Engine

from lifedash.assistant.classifier import classify
from lifedash.assistant.conversation import Classification, ConversationTurn, window_history
from lifedash.assistant.function_selector import select_function
from lifedash.assistant.query import QueryRequest, QueryResult
from lifedash.assistant.responder import respond
from lifedash.catalog.loader import SchemaCatalog, load_schema_catalog
from lifedash.core.config import get_settings
from lifedash.core.errors import AuthorizationError
from lifedash.core.logging import get_logger
from lifedash.db.executor import execute

logger = get_logger(__name__)


class RouteState(str, Enum):
    RECEIVED = "RECEIVED"
    CLASSIFIED = "CLASSIFIED"
    FOLLOWUP_ANSWERED = "FOLLOWUP_ANSWERED"
    DATA_FETCHED = "DATA_FETCHED"
    ANALYZED = "ANALYZED"
    RESPONDED = "RESPONDED"
    FAILED = "FAILED"


class AssistantResult:
    def __init__(
        self,
        response: str,
        classification: Classification,
        data: QueryResult | None = None,
        function_name: str | None = None,
        states: list[RouteState] | None = None,
        latency_ms: int = 0,
    ):
        self.response = response
        self.classification = classification
        self.data = data
        self.function_name = function_name
        self.states = states or []
        self.latency_ms = latency_ms

    def to_payload(self) -> dict[str, Any]:
        """Outbound JSON shape for the chat endpoint."""
        if self.classification is Classification.FOLLOWUP:
            return {"response": self.response, "type": self.classification.value}
        return {
            "response": self.response,
            "data": self.data.rows if self.data else [],
            "type": self.classification.value,
        }


def plan(
    message: str,
    history: Sequence[ConversationTurn] | None,
    identity: str,
    mode: str | None = None,
    catalog: SchemaCatalog | None = None,
) -> tuple[Classification, str | None, QueryRequest | None]:
    """Dry run: classify and, for data turns, select + validate the query.

    No data is read and no analysis call is made.
    """
    if not identity:
        raise AuthorizationError("Unauthorized")

    settings = get_settings()
    mode = (mode or settings.llm_provider).lower()
    turns = window_history(history, settings.history_max_turns)

    label = classify(turns, message, mode=mode)
    if not label.needs_data:
        return label, None, None
    function_name, request = select_function(message, catalog or load_schema_catalog(), mode=mode)
    return label, function_name, request


def answer(
    message: str,
    history: Sequence[ConversationTurn] | None,
    identity: str,
    engine: Engine,
    mode: str | None = None,
    catalog: SchemaCatalog | None = None,
) -> AssistantResult:
    """End-to-end: message + history -> grounded natural-language answer.

    Parameters
    ----------
    message : str
        The user's new message.
    history : list[ConversationTurn]
        Prior turns, oldest first.  Trimmed to ``history_max_turns``.
    identity : str
        The authenticated user id.  Empty means unauthenticated.
    engine : Engine
        Store engine used for the single identity-scoped read.
    mode : str, optional
        "mock", "openai" or "anthropic"; defaults to ``llm_provider``.
    """
    t0 = time.perf_counter()
    states = [RouteState.RECEIVED]

    if not identity:
        logger.warning("Assistant request without identity -- rejected")
        raise AuthorizationError("Unauthorized")

    settings = get_settings()
    mode = (mode or settings.llm_provider).lower()
    catalog = catalog or load_schema_catalog()
    turns = window_history(history, settings.history_max_turns)
    logger.info("Assistant.answer | mode=%s | history=%d (kept %d) | message=%s",
                mode, len(history or []), len(turns), message[:80])

    data: QueryResult | None = None
    function_name: str | None = None
    try:
        label = classify(turns, message, mode=mode)
        states.append(RouteState.CLASSIFIED)

        if label is Classification.FOLLOWUP:
            text = respond(turns, message, mode=mode)
            states.append(RouteState.FOLLOWUP_ANSWERED)
        else:
            function_name, request = select_function(message, catalog, mode=mode)
            data = execute(request, identity, engine, catalog=catalog)
            states.append(RouteState.DATA_FETCHED)
            text = respond(turns, message, fresh_data=data, mode=mode)
            states.append(RouteState.ANALYZED)
    except Exception as exc:
        states.append(RouteState.FAILED)
        logger.error("Assistant request failed after %s: %s: %s",
                     states[-2].value, type(exc).__name__, exc)
        raise

    states.append(RouteState.RESPONDED)
    latency = int((time.perf_counter() - t0) * 1000)
    logger.info("Assistant.answer done | type=%s | states=%s | %d ms",
                label.value, "→".join(s.value for s in states), latency)

    return AssistantResult(
        response=text,
        classification=label,
        data=data,
        function_name=function_name,
        states=states,
        latency_ms=latency,
    )
