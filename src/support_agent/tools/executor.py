"""Tool execution layer with argument handling and telemetry.

Tools run one at a time in the order the model requested them. Each call
takes a JSON argument string and yields a JSON result string. Unknown tool
names produce an error payload so the model can recover; failures of known
tools raise ToolExecutionError and end the invocation.
"""

import asyncio
import inspect
import time
from typing import Any

import orjson

from support_agent.llm_client.types import Message
from support_agent.telemetry import (
    TOOL_CALL_COMPLETED,
    TOOL_CALL_FAILED,
    TOOL_CALL_STARTED,
    TOOL_UNKNOWN,
    TraceContext,
    get_logger,
)
from support_agent.tools.registry import ToolRegistry
from support_agent.tools.types import ToolExecutionError

log = get_logger(__name__)


def unknown_tool_payload(tool_name: str) -> str:
    """JSON returned to the model when it calls a tool that does not exist."""
    return orjson.dumps({"error": "unknown_tool", "name": tool_name, "note": "ignored"}).decode()


def _decode_arguments(tool_name: str, arguments_json: str) -> dict[str, Any]:
    if not arguments_json or not arguments_json.strip():
        return {}
    try:
        arguments = orjson.loads(arguments_json)
    except orjson.JSONDecodeError as e:
        raise ToolExecutionError(tool_name, f"arguments are not valid JSON: {e}") from None
    if not isinstance(arguments, dict):
        raise ToolExecutionError(tool_name, "arguments must be a JSON object")
    return arguments


def _encode_result(tool_name: str, result: Any) -> str:
    if isinstance(result, str):
        return result
    try:
        return orjson.dumps(result).decode()
    except TypeError as e:
        raise ToolExecutionError(tool_name, f"result is not JSON serializable: {e}") from None


class ToolExecutionLayer:
    """Executes registered tools on behalf of the response model."""

    def __init__(self, registry: ToolRegistry) -> None:
        """Initialize tool execution layer.

        Args:
            registry: Tool registry containing registered tools.
        """
        self.registry = registry

    async def execute(
        self,
        tool_name: str,
        arguments_json: str,
        trace_ctx: TraceContext | None = None,
    ) -> str:
        """Execute one tool call.

        Args:
            tool_name: Name of the tool the model asked for.
            arguments_json: JSON object string with the tool arguments.
            trace_ctx: Trace context for telemetry.

        Returns:
            JSON result string. For unknown tools, a structured error payload.

        Raises:
            ToolExecutionError: If the arguments are malformed, the tool
                raises, or it exceeds its timeout.
        """
        trace_id = trace_ctx.trace_id if trace_ctx else None

        registered = self.registry.get_tool(tool_name)
        if registered is None:
            log.warning(
                TOOL_UNKNOWN,
                tool_name=tool_name,
                available=self.registry.list_tool_names(),
                trace_id=trace_id,
            )
            return unknown_tool_payload(tool_name)

        arguments = _decode_arguments(tool_name, arguments_json)
        if registered.sanitizer is not None:
            arguments = registered.sanitizer(arguments)

        # Drop parameters the tool does not declare
        valid_names = {param.name for param in registered.definition.parameters}
        invalid = sorted(set(arguments) - valid_names)
        if invalid:
            log.warning(
                "tool_call_invalid_parameters_filtered",
                tool_name=tool_name,
                invalid_parameters=invalid,
                trace_id=trace_id,
            )
        arguments = {k: v for k, v in arguments.items() if k in valid_names}

        log.info(TOOL_CALL_STARTED, tool_name=tool_name, arguments=arguments, trace_id=trace_id)
        start_time = time.monotonic()
        timeout = registered.definition.timeout_seconds

        try:
            if inspect.iscoroutinefunction(registered.executor):
                call = registered.executor(**arguments)
            else:
                call = asyncio.to_thread(registered.executor, **arguments)
            result = await asyncio.wait_for(call, timeout=timeout)
        except asyncio.TimeoutError:
            log.error(TOOL_CALL_FAILED, tool_name=tool_name, error="timeout", trace_id=trace_id)
            raise ToolExecutionError(tool_name, f"timed out after {timeout}s") from None
        except Exception as e:
            log.error(
                TOOL_CALL_FAILED,
                tool_name=tool_name,
                error=str(e),
                error_type=type(e).__name__,
                latency_ms=(time.monotonic() - start_time) * 1000,
                trace_id=trace_id,
            )
            raise ToolExecutionError(tool_name, str(e)) from e

        encoded = _encode_result(tool_name, result)
        log.info(
            TOOL_CALL_COMPLETED,
            tool_name=tool_name,
            latency_ms=(time.monotonic() - start_time) * 1000,
            result_bytes=len(encoded),
            trace_id=trace_id,
        )
        return encoded

    async def run_tool_calls(
        self, message: Message, trace_ctx: TraceContext | None = None
    ) -> list[Message]:
        """Execute every tool call of an assistant message, sequentially.

        Args:
            message: Assistant message with OpenAI-style ``tool_calls``.
            trace_ctx: Trace context for telemetry.

        Returns:
            One ``tool`` role message per call, in request order.

        Raises:
            ToolExecutionError: On the first failing call; later calls do not run.
        """
        results: list[Message] = []
        for call in message.get("tool_calls") or []:
            function = call.get("function") or {}
            name = function.get("name") or ""
            content = await self.execute(name, function.get("arguments") or "", trace_ctx)
            results.append(
                {
                    "role": "tool",
                    "tool_call_id": call.get("id") or "",
                    "name": name,
                    "content": content,
                }
            )
        return results
