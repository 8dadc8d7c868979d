"""LLM client: chat model access, response normalization, and cost accounting."""

from support_agent.llm_client.adapters import assistant_message
from support_agent.llm_client.client import ChatModel, ChatModelProtocol
from support_agent.llm_client.cost import (
    DEFAULT_PRICING,
    CostBreakdown,
    Pricing,
    accumulate_usage_cost,
    build_pricing_table,
    compute_cost,
    resolve_pricing,
)
from support_agent.llm_client.types import (
    LLMClientError,
    LLMConnectionError,
    LLMInvalidResponse,
    LLMRateLimit,
    LLMResponse,
    LLMServerError,
    LLMTimeout,
    Message,
    ModelRole,
    TokenUsage,
    ToolCall,
)

__all__ = [
    "ChatModel",
    "ChatModelProtocol",
    "ModelRole",
    "Message",
    "LLMResponse",
    "ToolCall",
    "TokenUsage",
    "assistant_message",
    "Pricing",
    "CostBreakdown",
    "DEFAULT_PRICING",
    "build_pricing_table",
    "resolve_pricing",
    "compute_cost",
    "accumulate_usage_cost",
    "LLMClientError",
    "LLMTimeout",
    "LLMConnectionError",
    "LLMRateLimit",
    "LLMServerError",
    "LLMInvalidResponse",
]
