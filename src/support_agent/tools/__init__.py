"""Tool layer: definitions, registry, sequential execution, and catalog tools."""

from support_agent.tools.catalog import (
    GET_PRODUCT_DETAILS,
    SEARCH_PRODUCT,
    build_catalog_registry,
)
from support_agent.tools.executor import ToolExecutionLayer, unknown_tool_payload
from support_agent.tools.registry import RegisteredTool, ToolRegistry
from support_agent.tools.types import ToolDefinition, ToolExecutionError, ToolParameter

__all__ = [
    "ToolDefinition",
    "ToolParameter",
    "ToolExecutionError",
    "ToolRegistry",
    "RegisteredTool",
    "ToolExecutionLayer",
    "unknown_tool_payload",
    "build_catalog_registry",
    "SEARCH_PRODUCT",
    "GET_PRODUCT_DETAILS",
]
