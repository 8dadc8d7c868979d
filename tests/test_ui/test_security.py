"""Tests for customer-safe error messages."""

import pytest

from support_agent.config import ConfigLoadError
from support_agent.conversations import ConversationStoreError
from support_agent.graph import (
    InvocationCancelledError,
    StepExecutionError,
    StepLimitExceededError,
    StepName,
)
from support_agent.llm_client import LLMConnectionError, LLMRateLimit, LLMTimeout
from support_agent.security import sanitize_error_message
from support_agent.tools import ToolExecutionError

TIMEOUT = "The request took too long to process. Please try again."
GENERIC = "An error occurred while processing your request. Please try again."


@pytest.mark.parametrize(
    "error,expected",
    [
        (InvocationCancelledError("deadline of 2s exceeded"), TIMEOUT),
        (LLMTimeout("request took 30s"), TIMEOUT),
        (RuntimeError("socket timeout"), TIMEOUT),
        (
            LLMConnectionError("refused"),
            "Unable to reach the assistant service. Please try again in a moment.",
        ),
        (LLMRateLimit("429"), "Too many requests. Please wait a moment and try again."),
        (
            StepLimitExceededError(20, StepName.RESPONSE_CHAT_MODEL),
            "The assistant could not finish this request. Please rephrase and try again.",
        ),
        (ToolExecutionError("search_product", "boom"), "A product lookup failed. Please try again."),
        (
            ConversationStoreError("disk full"),
            "Conversation history is unavailable right now. Please try again.",
        ),
        (
            ValueError("validation failed for field"),
            "Invalid request format. Please check your input and try again.",
        ),
        (
            ConfigLoadError("bad config value"),
            "Service configuration error. Please contact support.",
        ),
        (KeyError("secret"), GENERIC),
    ],
)
def test_sanitize_error_message(error: Exception, expected: str) -> None:
    assert sanitize_error_message(error) == expected


def test_step_errors_use_their_cause() -> None:
    error = StepExecutionError(StepName.RESPONSE_CHAT_MODEL, LLMRateLimit("429"))

    assert sanitize_error_message(error) == "Too many requests. Please wait a moment and try again."


def test_internal_details_are_not_leaked() -> None:
    error = RuntimeError("failed at /opt/app/secret.py line 12 object 0xdeadbeef")

    message = sanitize_error_message(error)

    assert message == GENERIC
    assert "/opt" not in message
