"""Chat model client for OpenAI-compatible chat completions endpoints.

One ``ChatModel`` instance serves one role of the conversation turn (NLU or
response) with that role's model name and sampling settings. Requests are
retried with exponential backoff on timeouts, rate limits and server errors.
"""

import asyncio
import time
from typing import Any, Protocol

import httpx

from support_agent.llm_client.adapters import (
    adapt_chat_completions_response,
    build_chat_completions_request,
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
)
from support_agent.telemetry import (
    MODEL_CALL_COMPLETED,
    MODEL_CALL_ERROR,
    MODEL_CALL_RETRY,
    MODEL_CALL_STARTED,
    TraceContext,
    get_logger,
)

log = get_logger(__name__)


class ChatModelProtocol(Protocol):
    """What the pipeline needs from a model provider."""

    role: ModelRole
    model_name: str

    async def generate(
        self, messages: list[Message], trace_ctx: TraceContext | None = None
    ) -> LLMResponse: ...

    def bind_tools(self, tools: list[dict[str, Any]]) -> "ChatModelProtocol": ...


class ChatModel:
    """Client bound to one model role.

    Attributes:
        role: Role this client serves.
        model_name: Model identifier sent to the provider (and used for pricing).
        base_url: Base URL of the API, e.g. ".../v1beta/openai".
        tools: Tool definitions sent with every request (OpenAI format).
    """

    def __init__(
        self,
        role: ModelRole,
        model_name: str,
        base_url: str,
        api_key: str | None = None,
        timeout_seconds: float = 60.0,
        max_retries: int = 2,
        max_tokens: int | None = None,
        temperature: float | None = None,
        tools: list[dict[str, Any]] | None = None,
        backoff_base_seconds: float = 1.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            role: Role this client serves.
            model_name: Provider model identifier.
            base_url: Base URL of the chat completions API.
            api_key: Optional bearer token.
            timeout_seconds: Read timeout for one request.
            max_retries: Retries after the first attempt for retryable errors.
            max_tokens: Maximum completion tokens.
            temperature: Sampling temperature.
            tools: Tool definitions to bind.
            backoff_base_seconds: First retry delay; doubles per attempt.
            transport: Optional httpx transport (used by tests).
        """
        self.role = role
        self.model_name = model_name
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds
        self.max_retries = max_retries
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.tools = list(tools or [])
        self.backoff_base_seconds = backoff_base_seconds
        self._transport = transport

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/chat/completions"

    def bind_tools(self, tools: list[dict[str, Any]]) -> "ChatModel":
        """Return a copy of this client that sends the given tools.

        Args:
            tools: Tool definitions in OpenAI function format.

        Returns:
            New ChatModel sharing every other setting.
        """
        return ChatModel(
            role=self.role,
            model_name=self.model_name,
            base_url=self.base_url,
            api_key=self.api_key,
            timeout_seconds=self.timeout_seconds,
            max_retries=self.max_retries,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            tools=tools,
            backoff_base_seconds=self.backoff_base_seconds,
            transport=self._transport,
        )

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def _backoff(self, attempt: int, trace_ctx: TraceContext, reason: str) -> None:
        wait_time = self.backoff_base_seconds * 2**attempt
        log.warning(
            MODEL_CALL_RETRY,
            role=self.role.value,
            attempt=attempt + 1,
            wait_time=wait_time,
            reason=reason,
            trace_id=trace_ctx.trace_id,
        )
        await asyncio.sleep(wait_time)

    async def generate(
        self, messages: list[Message], trace_ctx: TraceContext | None = None
    ) -> LLMResponse:
        """Run one chat completion.

        Args:
            messages: Conversation messages to send.
            trace_ctx: Trace context for log correlation.

        Returns:
            Normalized LLMResponse.

        Raises:
            LLMTimeout: If every attempt timed out.
            LLMConnectionError: If the server cannot be reached.
            LLMRateLimit: If rate limiting persisted through all retries.
            LLMServerError: If 5xx responses persisted through all retries.
            LLMInvalidResponse: If the payload could not be understood.
            LLMClientError: For other HTTP or API errors.
        """
        if trace_ctx is None:
            trace_ctx = TraceContext.new_trace()
        _, span_id = trace_ctx.new_span()

        payload = build_chat_completions_request(
            messages=messages,
            model=self.model_name,
            tools=self.tools or None,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )
        timeout_config = httpx.Timeout(
            connect=10.0, read=self.timeout_seconds, write=10.0, pool=10.0
        )

        start_time = time.monotonic()
        log.info(
            MODEL_CALL_STARTED,
            role=self.role.value,
            model=self.model_name,
            message_count=len(messages),
            tools_count=len(self.tools),
            trace_id=trace_ctx.trace_id,
            span_id=span_id,
        )

        last_error: LLMClientError | None = None
        attempt = 0
        while attempt <= self.max_retries:
            try:
                async with httpx.AsyncClient(
                    timeout=timeout_config, headers=self._headers(), transport=self._transport
                ) as client:
                    response = await client.post(self.endpoint, json=payload)
                    response.raise_for_status()
                    response_data = response.json()

                if not isinstance(response_data, dict):
                    raise LLMInvalidResponse("Response body is not a JSON object")
                error_obj = response_data.get("error")
                if error_obj is not None:
                    message = (
                        error_obj.get("message", str(error_obj))
                        if isinstance(error_obj, dict)
                        else str(error_obj)
                    )
                    raise LLMClientError(f"API returned error: {message}")

                llm_response = adapt_chat_completions_response(response_data)
                usage = llm_response["usage"] or {}
                log.info(
                    MODEL_CALL_COMPLETED,
                    role=self.role.value,
                    model=self.model_name,
                    latency_ms=int((time.monotonic() - start_time) * 1000),
                    prompt_tokens=usage.get("prompt_tokens", 0),
                    completion_tokens=usage.get("completion_tokens", 0),
                    tool_calls=len(llm_response["tool_calls"]),
                    trace_id=trace_ctx.trace_id,
                    span_id=span_id,
                )
                return llm_response

            except httpx.TimeoutException:
                last_error = LLMTimeout(
                    f"Request to {self.endpoint} timed out after {self.timeout_seconds}s"
                )
                if attempt < self.max_retries:
                    await self._backoff(attempt, trace_ctx, "timeout")
                    attempt += 1
                    continue
                break

            except httpx.ConnectError as e:
                # Server is likely down; retrying will not help
                last_error = LLMConnectionError(f"Failed to connect to {self.endpoint}: {e}")
                break

            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                if status == 429:
                    last_error = LLMRateLimit(f"Rate limit exceeded: {e}")
                elif status >= 500:
                    last_error = LLMServerError(f"Server error {status}: {e}")
                else:
                    last_error = LLMClientError(f"HTTP error {status}: {e}")
                    break
                if attempt < self.max_retries:
                    await self._backoff(attempt, trace_ctx, f"http_{status}")
                    attempt += 1
                    continue
                break

            except httpx.RequestError as e:
                last_error = LLMConnectionError(f"Request error: {e}")
                break

            except LLMClientError as e:
                last_error = e
                break

            except ValueError as e:
                last_error = LLMInvalidResponse(f"Invalid response body: {e}")
                break

        log.error(
            MODEL_CALL_ERROR,
            role=self.role.value,
            model=self.model_name,
            error_type=type(last_error).__name__,
            error=str(last_error),
            latency_ms=int((time.monotonic() - start_time) * 1000),
            trace_id=trace_ctx.trace_id,
            span_id=span_id,
        )
        if last_error is None:
            raise LLMClientError("Request failed with unknown error")
        raise last_error
