"""POST /api/ai/chat -- assistant endpoint; POST /api/ai/explain -- dry run."""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.engine import Engine

from lifedash.api.deps import get_engine, require_identity
from lifedash.assistant.conversation import ConversationTurn
from lifedash.assistant.service import answer as assistant_answer
from lifedash.assistant.service import plan as assistant_plan
from lifedash.auth.identity import CurrentUser
from lifedash.core.errors import AuthorizationError, NoFunctionSelectedError, QueryValidationError
from lifedash.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(..., min_length=1, max_length=2000, description="The user's new message")
    conversation_history: list[ConversationTurn] = Field(
        default_factory=list,
        alias="conversationHistory",
        description="Prior turns, oldest first",
    )
    mode: str | None = Field(None, description="mock | openai | anthropic (defaults to LLM_PROVIDER)")


class ExplainResponse(BaseModel):
    message: str
    type: str
    function: str | None = None
    query: dict[str, Any] | None = None
    validation_errors: list[str]
    is_valid: bool


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@router.post("/chat")
def chat_endpoint(
    req: ChatRequest,
    user: CurrentUser = Depends(require_identity),
    engine: Engine = Depends(get_engine),
):
    """message + history -> classify -> (fetch) -> natural-language answer."""
    try:
        result = assistant_answer(
            req.message, req.conversation_history, user.id, engine, mode=req.mode,
        )
    except AuthorizationError:
        return _error(401, "Unauthorized")
    except Exception as exc:
        logger.exception("Assistant.chat failed")
        return _error(500, str(exc) or "Internal server error")
    return result.to_payload()


@router.post("/explain", response_model=ExplainResponse)
def explain_endpoint(req: ChatRequest, user: CurrentUser = Depends(require_identity)):
    """Dry run: classification and validated query, no data read."""
    try:
        label, function_name, request = assistant_plan(
            req.message, req.conversation_history, user.id, mode=req.mode,
        )
    except (NoFunctionSelectedError, QueryValidationError) as exc:
        return ExplainResponse(
            message=req.message, type="NEW_QUERY",
            validation_errors=[str(exc)], is_valid=False,
        )
    except Exception as exc:
        logger.exception("Assistant.explain failed")
        return _error(500, str(exc) or "Internal server error")

    return ExplainResponse(
        message=req.message,
        type=label.value,
        function=function_name,
        query=request.model_dump(mode="json") if request else None,
        validation_errors=[],
        is_valid=True,
    )
