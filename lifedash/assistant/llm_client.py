"""
LLM client abstraction -- provider-agnostic chat-completion wrapper.

Supported providers:
  mock      -- echo back the last message (for tests / offline dev)
  openai    -- OpenAI Chat Completions (JSON mode + tool calling)
  anthropic -- Anthropic Messages (tool use)

Every call is a single blocking round trip with a timeout and no
automatic retries.  Configuration is read from Settings (env / .env).
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from lifedash.core.config import get_settings
from lifedash.core.errors import LLMProviderError
from lifedash.core.logging import get_logger

logger = get_logger(__name__)

_MAX_TOKENS = 1024


@dataclass(frozen=True)
class FunctionCall:
    name: str
    arguments: str  # raw JSON text, untrusted


@dataclass(frozen=True)
class ChatReply:
    content: str
    function_call: FunctionCall | None = None


def _call_mock(
    messages: list[dict[str, str]],
    temperature: float,
    json_response: bool,
    functions: list[dict[str, Any]] | None,
) -> ChatReply:
    logger.info("LLM mock mode -- returning echo")
    last = messages[-1]["content"] if messages else ""
    return ChatReply(content=f"[MOCK] {last[:200]}")


def _call_openai(
    messages: list[dict[str, str]],
    temperature: float,
    json_response: bool,
    functions: list[dict[str, Any]] | None,
) -> ChatReply:
    """Call OpenAI Chat Completions API."""
    settings = get_settings()
    api_key = settings.openai_api_key
    if not api_key:
        raise RuntimeError(
            "openai_api_key is not set.  "
            "Set OPENAI_API_KEY in your .env file or environment."
        )

    try:
        import openai  # type: ignore[import-untyped]
    except ImportError as exc:
        raise RuntimeError(
            "The 'openai' package is not installed.  "
            "Run: pip install openai"
        ) from exc

    client = openai.OpenAI(
        api_key=api_key,
        timeout=settings.llm_timeout_seconds,
        max_retries=0,
    )
    kwargs: dict[str, Any] = {
        "model": settings.openai_model,
        "messages": messages,
        "temperature": temperature,
        "max_tokens": _MAX_TOKENS,
    }
    if json_response:
        kwargs["response_format"] = {"type": "json_object"}
    if functions:
        kwargs["tools"] = [{"type": "function", "function": f} for f in functions]
        kwargs["tool_choice"] = "auto"

    try:
        response = client.chat.completions.create(**kwargs)
    except openai.OpenAIError as exc:
        raise LLMProviderError(f"OpenAI request failed: {exc}") from exc

    message = response.choices[0].message
    call = None
    if message.tool_calls:
        tool = message.tool_calls[0]
        call = FunctionCall(name=tool.function.name, arguments=tool.function.arguments or "{}")
    text = message.content or ""
    logger.info("OpenAI response (%d chars, function=%s)", len(text), call.name if call else None)
    return ChatReply(content=text, function_call=call)


def _call_anthropic(
    messages: list[dict[str, str]],
    temperature: float,
    json_response: bool,
    functions: list[dict[str, Any]] | None,
) -> ChatReply:
    """Call Anthropic Messages API."""
    settings = get_settings()
    api_key = settings.anthropic_api_key
    if not api_key:
        raise RuntimeError(
            "anthropic_api_key is not set.  "
            "Set ANTHROPIC_API_KEY in your .env file or environment."
        )

    try:
        import anthropic  # type: ignore[import-untyped]
    except ImportError as exc:
        raise RuntimeError(
            "The 'anthropic' package is not installed.  "
            "Run: pip install anthropic"
        ) from exc

    # System turns go in the top-level ``system`` parameter
    system = "\n\n".join(m["content"] for m in messages if m["role"] == "system")
    chat = [{"role": m["role"], "content": m["content"]} for m in messages if m["role"] != "system"]
    if json_response:
        system += "\n\nRespond ONLY with a single JSON object."

    client = anthropic.Anthropic(
        api_key=api_key,
        timeout=settings.llm_timeout_seconds,
        max_retries=0,
    )
    kwargs: dict[str, Any] = {
        "model": settings.anthropic_model,
        "max_tokens": _MAX_TOKENS,
        "temperature": temperature,
        "messages": chat,
    }
    if system:
        kwargs["system"] = system
    if functions:
        kwargs["tools"] = [
            {"name": f["name"], "description": f.get("description", ""), "input_schema": f["parameters"]}
            for f in functions
        ]
        kwargs["tool_choice"] = {"type": "auto"}

    try:
        response = client.messages.create(**kwargs)
    except anthropic.AnthropicError as exc:
        raise LLMProviderError(f"Anthropic request failed: {exc}") from exc

    texts: list[str] = []
    call = None
    for block in response.content or []:
        if block.type == "text":
            texts.append(block.text)
        elif block.type == "tool_use" and call is None:
            call = FunctionCall(name=block.name, arguments=json.dumps(block.input))
    text = "".join(texts)
    logger.info("Anthropic response (%d chars, function=%s)", len(text), call.name if call else None)
    return ChatReply(content=text, function_call=call)


_PROVIDERS: dict[str, Any] = {
    "mock": _call_mock,
    "openai": _call_openai,
    "anthropic": _call_anthropic,
}


def call_chat(
    messages: list[dict[str, str]],
    provider: str | None = None,
    temperature: float = 0.0,
    json_response: bool = False,
    functions: list[dict[str, Any]] | None = None,
) -> ChatReply:
    """Send *messages* to the configured (or overridden) LLM provider.

    Parameters
    ----------
    messages : list[dict]
        Chat turns, each ``{"role": ..., "content": ...}``.
    provider : str, optional
        Override the provider from settings.  One of: mock, openai, anthropic.
    temperature : float
        Sampling temperature.
    json_response : bool
        Ask the provider for a single JSON object.
    functions : list[dict], optional
        Callable function definitions; the model may pick one.
    """
    if provider is None:
        provider = get_settings().llm_provider.lower()

    fn = _PROVIDERS.get(provider)
    if fn is None:
        raise NotImplementedError(
            f"LLM provider '{provider}' is not supported.  "
            f"Choose from: {', '.join(_PROVIDERS)}"
        )

    logger.info("Calling LLM provider=%s  messages=%d  functions=%d",
                provider, len(messages), len(functions or []))
    return fn(messages, temperature, json_response, functions)
