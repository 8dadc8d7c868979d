"""Type definitions for the LLM client module.

This module defines the core types used by the chat model client:
- ModelRole: the two model roles of a conversation turn (NLU, response)
- Message: OpenAI-style chat message dicts
- LLMResponse / ToolCall / TokenUsage: normalized model output
- Error classes: hierarchy of LLM client errors
"""

from enum import Enum
from typing import Any

from typing_extensions import TypedDict

# OpenAI-style chat message: {"role": ..., "content": ..., ["tool_calls"], ["tool_call_id"]}
Message = dict[str, Any]


class ModelRole(str, Enum):
    """Model roles within one conversation turn."""

    NLU = "nlu"
    RESPONSE = "response"

    @classmethod
    def from_str(cls, value: str) -> "ModelRole | None":
        """Convert string to ModelRole enum.

        Args:
            value: String representation (case-insensitive).

        Returns:
            ModelRole enum or None if invalid.
        """
        value_lower = value.strip().lower()
        for role in cls:
            if role.value == value_lower:
                return role
        return None


class ToolCall(TypedDict):
    """Tool call requested by the model.

    Attributes:
        id: Identifier correlating the call with its result ("" if the
            provider omitted it).
        name: Name of the tool to call.
        arguments: JSON string containing tool arguments.
    """

    id: str
    name: str
    arguments: str


class TokenUsage(TypedDict):
    """Token counts reported by the provider."""

    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


class LLMResponse(TypedDict):
    """Normalized response of one chat completion.

    Attributes:
        role: Response role (typically "assistant").
        content: Natural language content ("" when the model only called tools).
        tool_calls: Tool calls requested by the model.
        usage: Token usage, or None when the provider did not report it.
        model: Model name reported by the provider (may be "").
        extra: Free-form annotations added after the call (e.g. usage cost).
        raw: Raw provider payload for debugging.
    """

    role: str
    content: str
    tool_calls: list[ToolCall]
    usage: TokenUsage | None
    model: str
    extra: dict[str, Any]
    raw: dict[str, Any]


# Error hierarchy


class LLMClientError(Exception):
    """Base exception for all LLM client errors."""

    pass


class LLMTimeout(LLMClientError):
    """Raised when an LLM request times out."""

    pass


class LLMConnectionError(LLMClientError):
    """Raised when connection to the LLM server fails."""

    pass


class LLMRateLimit(LLMClientError):
    """Raised when the LLM server returns a rate limit error."""

    pass


class LLMServerError(LLMClientError):
    """Raised when the LLM server returns an error (5xx)."""

    pass


class LLMInvalidResponse(LLMClientError):
    """Raised when the LLM server returns an invalid or unexpected payload."""

    pass
