"""Tool registry for tool discovery and registration.

The registry stores each tool definition with its executor function and an
optional argument sanitizer that normalizes model-supplied arguments before
execution.
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from support_agent.telemetry import get_logger
from support_agent.tools.types import ToolDefinition

log = get_logger(__name__)

ArgumentSanitizer = Callable[[dict[str, Any]], dict[str, Any]]


@dataclass(frozen=True)
class RegisteredTool:
    definition: ToolDefinition
    executor: Callable[..., Any]
    sanitizer: ArgumentSanitizer | None = None


class ToolRegistry:
    """Central registry of available tools."""

    def __init__(self) -> None:
        """Initialize empty tool registry."""
        self._tools: dict[str, RegisteredTool] = {}

    def register(
        self,
        tool_def: ToolDefinition,
        executor: Callable[..., Any],
        sanitizer: ArgumentSanitizer | None = None,
    ) -> None:
        """Register a tool with its definition and executor function.

        Args:
            tool_def: Tool definition shown to the model.
            executor: Sync or async callable taking the tool parameters as
                keyword arguments and returning a JSON-serializable value.
            sanitizer: Optional callable that normalizes the decoded
                arguments before execution.

        Raises:
            ValueError: If tool name already registered.
        """
        if tool_def.name in self._tools:
            raise ValueError(f"Tool '{tool_def.name}' is already registered")

        self._tools[tool_def.name] = RegisteredTool(tool_def, executor, sanitizer)
        log.debug("tool_registered", tool_name=tool_def.name, sanitized=sanitizer is not None)

    def get_tool(self, name: str) -> RegisteredTool | None:
        """Retrieve a registered tool.

        Args:
            name: Tool name to retrieve.

        Returns:
            The RegisteredTool if found, None otherwise.
        """
        return self._tools.get(name)

    def list_tools(self) -> list[ToolDefinition]:
        """List all tool definitions in registration order."""
        return [tool.definition for tool in self._tools.values()]

    def list_tool_names(self) -> list[str]:
        """List names of all registered tools."""
        return list(self._tools.keys())

    def get_tool_definitions_for_llm(self) -> list[dict[str, Any]]:
        """Get tool definitions in OpenAI function calling format.

        Returns:
            List of tool definitions for binding to a chat model.
        """
        return [tool_def.to_openai_schema() for tool_def in self.list_tools()]

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools
