"""Security utilities for preventing information disclosure."""

import re

from support_agent.conversations.store import ConversationStoreError
from support_agent.graph.types import (
    InvocationCancelledError,
    StepExecutionError,
    StepLimitExceededError,
)
from support_agent.llm_client.types import (
    LLMConnectionError,
    LLMRateLimit,
    LLMTimeout,
)
from support_agent.tools.types import ToolExecutionError


def _scrub(text: str) -> str:
    # Absolute paths, memory addresses and line numbers
    text = re.sub(r"/[^\s]+", "[path]", text)
    text = re.sub(r"0x[0-9a-fA-F]+", "[address]", text)
    return re.sub(r"line \d+", "[line]", text)


def sanitize_error_message(error: Exception) -> str:
    """Create a customer-safe error message without exposing internal details.

    Step failures are judged by their underlying cause.

    Args:
        error: The exception that occurred

    Returns:
        A sanitized, user-friendly error message
    """
    if isinstance(error, StepExecutionError) and isinstance(error.cause, Exception):
        error = error.cause

    error_type = type(error).__name__
    error_str = _scrub(str(error)).lower()

    if isinstance(error, InvocationCancelledError | LLMTimeout) or "timeout" in error_str:
        return "The request took too long to process. Please try again."
    if isinstance(error, LLMConnectionError) or "connection" in error_str:
        return "Unable to reach the assistant service. Please try again in a moment."
    if isinstance(error, LLMRateLimit) or "rate limit" in error_str:
        return "Too many requests. Please wait a moment and try again."
    if isinstance(error, StepLimitExceededError):
        return "The assistant could not finish this request. Please rephrase and try again."
    if isinstance(error, ToolExecutionError):
        return "A product lookup failed. Please try again."
    if isinstance(error, ConversationStoreError):
        return "Conversation history is unavailable right now. Please try again."
    if "Validation" in error_type or "validation" in error_str:
        return "Invalid request format. Please check your input and try again."
    if "Configuration" in error_type or "config" in error_str:
        return "Service configuration error. Please contact support."
    return "An error occurred while processing your request. Please try again."
