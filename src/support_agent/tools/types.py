"""Type definitions for the tool layer.

Pydantic models describing tools to the response model, plus the error
raised when a registered tool fails.
"""

from typing import Any, Literal

from pydantic import BaseModel, Field


class ToolExecutionError(Exception):
    """Raised when a tool call cannot be completed.

    Covers malformed arguments, executor exceptions and timeouts. Calls to
    unknown tools do not raise; they return an error payload instead.
    """

    def __init__(self, tool_name: str, message: str) -> None:
        super().__init__(f"{tool_name}: {message}")
        self.tool_name = tool_name


class ToolParameter(BaseModel):
    """Parameter definition for a tool."""

    name: str = Field(..., description="Parameter name")
    type: Literal["string", "number", "integer", "boolean", "object", "array"] = Field(
        ..., description="Parameter type"
    )
    description: str = Field(..., description="Parameter description for the model")
    required: bool = Field(True, description="Whether parameter is required")
    # Full JSON Schema for complex types (array items, object properties, etc.)
    json_schema: dict[str, Any] | None = Field(
        None, description="Full JSON Schema for complex nested types"
    )


class ToolDefinition(BaseModel):
    """OpenAI-style tool definition for function calling."""

    name: str = Field(..., min_length=1, description="Tool name (e.g., 'search_product')")
    description: str = Field(..., description="Clear description for the model")
    parameters: list[ToolParameter] = Field(default_factory=list, description="Tool parameters")
    timeout_seconds: float = Field(30.0, gt=0, description="Execution timeout in seconds")

    def to_openai_schema(self) -> dict[str, Any]:
        """Render the definition in OpenAI function-calling format."""
        properties: dict[str, Any] = {}
        for param in self.parameters:
            if param.json_schema:
                properties[param.name] = param.json_schema
            else:
                properties[param.name] = {"type": param.type, "description": param.description}
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": {
                    "type": "object",
                    "properties": properties,
                    "required": [p.name for p in self.parameters if p.required],
                },
            },
        }
