"""
Exception taxonomy for the assistant pipeline and dashboard services.

Every assistant failure is terminal for its request.  The HTTP layer
collapses them into two outcomes: 401 for ``AuthorizationError`` and
500 for everything else.
"""
from __future__ import annotations


class AssistantError(Exception):
    """Base class for failures inside the query-routing pipeline."""


class AuthorizationError(AssistantError):
    """The request carries no valid identity."""


class ClassificationParseError(AssistantError):
    """The router model's answer is not a known conversation label."""


class NoFunctionSelectedError(AssistantError):
    """The model returned no function call for a data query."""


class QueryValidationError(AssistantError):
    """Model-produced query arguments do not match the schema catalog."""


class QueryExecutionError(AssistantError):
    """The backing store rejected or failed the read."""


class AnalysisError(AssistantError):
    """The analysis model call failed or returned nothing."""


class LLMProviderError(AssistantError):
    """Transport / API failure from the configured LLM provider."""


class DashboardError(Exception):
    """Invalid input to a dashboard operation."""


class NotFoundError(DashboardError):
    """The record does not exist or belongs to another user."""
