"""Adapters between OpenAI-style chat completions payloads and our types.

Requests are built from Message dicts; responses are normalized into
LLMResponse. ``assistant_message`` turns a response back into a Message for
the conversation history.
"""

from typing import Any

import orjson

from support_agent.llm_client.types import (
    LLMInvalidResponse,
    LLMResponse,
    Message,
    TokenUsage,
    ToolCall,
)


def _normalize_usage(raw_usage: Any) -> TokenUsage | None:
    if not isinstance(raw_usage, dict) or not raw_usage:
        return None
    # Counts below zero are treated as unreported
    prompt = max(0, int(raw_usage.get("prompt_tokens", raw_usage.get("input_tokens", 0)) or 0))
    completion = max(
        0, int(raw_usage.get("completion_tokens", raw_usage.get("output_tokens", 0)) or 0)
    )
    total = max(0, int(raw_usage.get("total_tokens", 0) or 0)) or prompt + completion
    return TokenUsage(prompt_tokens=prompt, completion_tokens=completion, total_tokens=total)


def adapt_chat_completions_response(response_data: dict[str, Any]) -> LLMResponse:
    """Adapt an OpenAI-style chat completions response to LLMResponse.

    Args:
        response_data: Raw response from the chat completions API.

    Returns:
        Normalized LLMResponse structure.

    Raises:
        LLMInvalidResponse: If response format is invalid or unexpected.
    """
    try:
        choices = response_data.get("choices", [])
        if not choices:
            raise LLMInvalidResponse("Response has no choices")

        message = choices[0].get("message") or {}
        content = message.get("content") or ""
        if not isinstance(content, str):
            raise LLMInvalidResponse(f"Unsupported content type: {type(content).__name__}")

        tool_calls: list[ToolCall] = []
        for tc in message.get("tool_calls") or []:
            if not isinstance(tc, dict):
                continue
            function = tc.get("function") or {}
            arguments = function.get("arguments")
            if isinstance(arguments, dict):
                # Some gateways return already-decoded arguments
                arguments = orjson.dumps(arguments).decode()
            tool_calls.append(
                ToolCall(
                    id=str(tc.get("id") or ""),
                    name=function.get("name") or "",
                    arguments=arguments or "{}",
                )
            )

        return LLMResponse(
            role=message.get("role") or "assistant",
            content=content,
            tool_calls=tool_calls,
            usage=_normalize_usage(response_data.get("usage")),
            model=response_data.get("model") or "",
            extra={},
            raw=response_data,
        )
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise LLMInvalidResponse(f"Invalid response format: {e}") from e


def build_chat_completions_request(
    messages: list[Message],
    model: str,
    tools: list[dict[str, Any]] | None = None,
    tool_choice: str | dict[str, Any] | None = None,
    max_tokens: int | None = None,
    temperature: float | None = None,
) -> dict[str, Any]:
    """Build a chat completions request payload.

    Args:
        messages: Conversation messages (system, user, assistant, tool).
        model: Model identifier.
        tools: Optional tool definitions in OpenAI function format.
        tool_choice: Tool choice parameter ("auto", "none", or specific tool).
        max_tokens: Maximum tokens to generate.
        temperature: Sampling temperature.

    Returns:
        Request payload dictionary.
    """
    normalized: list[Message] = []
    for msg in messages:
        msg_copy = dict(msg)
        msg_copy.pop("extra", None)
        if msg_copy.get("role") == "assistant" and msg_copy.get("tool_calls"):
            # Some backends reject tool calls without an index
            msg_copy["tool_calls"] = [
                {**tc, "index": tc.get("index", idx)} for idx, tc in enumerate(msg_copy["tool_calls"])
            ]
            if msg_copy.get("content") == "":
                msg_copy["content"] = None
        normalized.append(msg_copy)

    payload: dict[str, Any] = {"model": model, "messages": normalized}
    if tools:
        payload["tools"] = tools
        payload["tool_choice"] = tool_choice or "auto"
    if max_tokens is not None:
        payload["max_tokens"] = max_tokens
    if temperature is not None:
        payload["temperature"] = temperature
    return payload


def assistant_message(response: LLMResponse) -> Message:
    """Convert a normalized response into a history message.

    Tool calls are emitted in the nested OpenAI format so the message can be
    sent back to the provider unchanged.
    """
    message: Message = {"role": response["role"], "content": response["content"]}
    if response["tool_calls"]:
        message["tool_calls"] = [
            {
                "id": tc["id"],
                "type": "function",
                "function": {"name": tc["name"], "arguments": tc["arguments"]},
            }
            for tc in response["tool_calls"]
        ]
    if response["extra"]:
        message["extra"] = dict(response["extra"])
    return message
