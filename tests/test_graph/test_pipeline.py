"""End-to-end tests of the conversation-turn graph with scripted models."""

import asyncio
from typing import Any

import orjson
import pytest

from support_agent.conversations import InMemoryConversationStore
from support_agent.conversations.manager import MessagesManager
from support_agent.graph import (
    HANDOFF_MESSAGE,
    GraphConfigurationError,
    GraphDependencies,
    GraphError,
    InvocationCancelledError,
    InvocationState,
    StepExecutionError,
    StepName,
    SupportAgent,
    build_response_graph,
)
from support_agent.graph.prompts import NLUPromptConfig, ResponsePromptConfig
from support_agent.graph.steps import PipelineSteps
from support_agent.llm_client import LLMResponse, Message, ModelRole, Pricing
from support_agent.telemetry import TraceContext
from support_agent.tools import ToolExecutionError, ToolExecutionLayer, build_catalog_registry

NEUTRAL_NLU = (
    "(intent<||>inquiry_intent<||>0.8<||>0.5)##"
    "(entity<||>product<||>laptop<||>0.9)##"
    "(language<||>eng<||>0.99<||>1)##"
    "(sentiment<||>neutral<||>0.5)<|COMPLETE|>"
)
NEGATIVE_NLU = "(intent<||>complaint_intent<||>0.9<||>0.9)##(sentiment<||>negative<||>0.95)"

PROMPT = NLUPromptConfig(
    default_intents="greeting:0.1, inquiry_intent:0.5, complaint_intent:0.9",
    additional_intents="",
    default_entities="product, brand, price",
    additional_entities="",
)


def make_response(
    content: str = "",
    tool_calls: list[tuple[str, str, dict[str, Any]]] | None = None,
    usage: tuple[int, int] | None = None,
) -> LLMResponse:
    return LLMResponse(
        role="assistant",
        content=content,
        tool_calls=[
            {"id": call_id, "name": name, "arguments": orjson.dumps(args).decode()}
            for call_id, name, args in tool_calls or []
        ],
        usage=(
            {"prompt_tokens": usage[0], "completion_tokens": usage[1], "total_tokens": sum(usage)}
            if usage
            else None
        ),
        model="scripted",
        extra={},
        raw={},
    )


class ScriptedModel:
    """Chat model double returning queued responses and recording its inputs."""

    def __init__(self, role: ModelRole, model_name: str, responses: list[LLMResponse]) -> None:
        self.role = role
        self.model_name = model_name
        self.responses = list(responses)
        self.calls: list[list[Message]] = []
        self.bound_tools: list[dict[str, Any]] = []
        self.delay = 0.0

    def bind_tools(self, tools: list[dict[str, Any]]) -> "ScriptedModel":
        self.bound_tools = tools
        return self

    async def generate(
        self, messages: list[Message], trace_ctx: TraceContext | None = None
    ) -> LLMResponse:
        self.calls.append([dict(m) for m in messages])
        if self.delay:
            await asyncio.sleep(self.delay)
        if len(self.responses) > 1:
            return self.responses.pop(0)
        # The last scripted response repeats
        last = self.responses[0]
        return {**last, "tool_calls": [dict(tc) for tc in last["tool_calls"]], "extra": {}}


class FailingAssistantStore(InMemoryConversationStore):
    async def append_message(self, conversation_id: str, message: Message) -> None:
        if message.get("role") == "assistant":
            raise OSError("disk full")
        await super().append_message(conversation_id, message)


@pytest.fixture
def store() -> InMemoryConversationStore:
    return InMemoryConversationStore()


def make_agent(
    store: InMemoryConversationStore,
    nlu: ScriptedModel,
    response: ScriptedModel,
    **overrides: Any,
) -> SupportAgent:
    deps = GraphDependencies(
        store=store,
        nlu_model=nlu,
        response_model=response,
        nlu_prompt=PROMPT,
        **overrides,
    )
    return SupportAgent.from_dependencies(deps)


def nlu_model(content: str = NEUTRAL_NLU, usage: tuple[int, int] | None = None) -> ScriptedModel:
    return ScriptedModel(ModelRole.NLU, "nlu-test", [make_response(content, usage=usage)])


def response_model(*responses: LLMResponse) -> ScriptedModel:
    return ScriptedModel(ModelRole.RESPONSE, "response-test", list(responses))


@pytest.mark.asyncio
async def test_negative_sentiment_hands_off_without_response_model(
    store: InMemoryConversationStore,
) -> None:
    """Test that strong negative sentiment escalates and skips the response model."""
    nlu = nlu_model(NEGATIVE_NLU)
    response = response_model(make_response("should not be used"))
    agent = make_agent(store, nlu, response)

    result = await agent.invoke("conv-1", "This is the worst service ever!")

    assert result["handed_off"] is True
    assert result["reply"] == HANDOFF_MESSAGE
    assert response.calls == []
    assert [r["step"] for r in result["steps"]] == [
        "input_converter",
        "nlu_chat_model",
        "parser",
        "human_handoff",
    ]
    assert result["steps"][-1]["next_step"] == "end"
    # The escalation notice is not part of the stored conversation
    history = await store.load_history("conv-1")
    assert history == [{"role": "user", "content": "This is the worst service ever!"}]


@pytest.mark.asyncio
async def test_neutral_reply_is_saved(store: InMemoryConversationStore) -> None:
    """Test the straight path: no tools, reply saved to the store."""
    nlu = nlu_model()
    response = response_model(make_response("We have several laptops in stock."))
    agent = make_agent(store, nlu, response)

    result = await agent.invoke("conv-2", "Do you sell laptops?")

    assert result["handed_off"] is False
    assert result["reply"] == "We have several laptops in stock."
    assert result["conversation_id"] == "conv-2"
    assert result["tool_call_count"] == 0
    assert result["trace_id"]
    assert [r["step"] for r in result["steps"]] == [
        "input_converter",
        "nlu_chat_model",
        "parser",
        "response_assembler",
        "response_chat_model",
    ]
    assert await store.load_history("conv-2") == [
        {"role": "user", "content": "Do you sell laptops?"},
        {"role": "assistant", "content": "We have several laptops in stock."},
    ]


@pytest.mark.asyncio
async def test_model_inputs(store: InMemoryConversationStore) -> None:
    """Test what the NLU and response models are sent."""
    await store.append_message("conv-3", {"role": "user", "content": "Hi"})
    await store.append_message("conv-3", {"role": "assistant", "content": "Hello!"})
    nlu = nlu_model()
    response = response_model(make_response("Sure."))
    agent = make_agent(store, nlu, response)

    await agent.invoke("conv-3", "Show me laptops")

    nlu_messages = nlu.calls[0]
    assert nlu_messages[0]["role"] == "system"
    assert "<||>" in nlu_messages[0]["content"]
    assert "complaint_intent:0.9" in nlu_messages[0]["content"]
    assert nlu_messages[1] == {
        "role": "user",
        "content": (
            "<conversation_context>\n"
            "UserMessage(Hi)\n"
            "AssistantMessage(Hello!)\n"
            "UserMessage(Show me laptops)\n"
            "</conversation_context>\n"
            "<current_message_to_analyze>\n"
            "UserMessage(Show me laptops)\n"
            "</current_message_to_analyze>"
        ),
    }

    response_messages = response.calls[0]
    assert response_messages[0]["role"] == "system"
    assert "TechHub" in response_messages[0]["content"]
    assert "Primary intent: inquiry_intent" in response_messages[0]["content"]
    assert "product=laptop" in response_messages[0]["content"]
    assert [m["content"] for m in response_messages[1:]] == ["Hi", "Hello!", "Show me laptops"]

    tool_names = [t["function"]["name"] for t in response.bound_tools]
    assert tool_names == ["search_product", "get_product_details"]


@pytest.mark.asyncio
async def test_tool_round_then_reply(store: InMemoryConversationStore) -> None:
    """Test one tool round: results fed back, ids synthesized, reply saved."""
    nlu = nlu_model()
    response = response_model(
        make_response(tool_calls=[("", "search_product", {"query": "gaming"})]),
        make_response("The Lenovo IdeaPad 3 Gaming costs 29,500 THB."),
    )
    agent = make_agent(store, nlu, response)

    result = await agent.invoke("conv-4", "Any gaming laptops?")

    assert result["tool_call_count"] == 1
    assert result["reply"] == "The Lenovo IdeaPad 3 Gaming costs 29,500 THB."
    assert [r["step"] for r in result["steps"]][-3:] == [
        "response_chat_model",
        "tool_executor",
        "response_chat_model",
    ]

    second_call = response.calls[1]
    assistant = second_call[-2]
    tool_result = second_call[-1]
    assert assistant["tool_calls"][0]["id"] == "call_1"
    assert tool_result["role"] == "tool"
    assert tool_result["tool_call_id"] == "call_1"
    payload = orjson.loads(tool_result["content"])
    assert [p["id"] for p in payload["products"]] == ["prod-010"]

    # Only the user query and the final reply are stored
    history = await store.load_history("conv-4")
    assert [m["role"] for m in history] == ["user", "assistant"]


@pytest.mark.asyncio
async def test_tool_budget_exhaustion_adds_one_notice_and_ends(
    store: InMemoryConversationStore,
) -> None:
    """Test that after the last allowed round the model gets one wrap-up notice."""
    nlu = nlu_model()
    looping = make_response(
        "Here is what I found so far.",
        tool_calls=[("", "search_product", {"query": "laptop"})],
    )
    response = response_model(
        make_response(tool_calls=[("", "search_product", {"query": "laptop"})]),
        make_response(tool_calls=[("", "search_product", {"query": "laptop"})]),
        looping,
    )
    agent = make_agent(store, nlu, response, max_tool_calls=2)

    result = await agent.invoke("conv-5", "Compare all laptops")

    assert result["tool_call_count"] == 2
    assert len(response.calls) == 3
    notices = [
        m
        for call in response.calls
        for m in call
        if m["role"] == "system" and "maximum tool call limit (2)" in m["content"]
    ]
    assert len(notices) == 1
    assert "maximum tool call limit" in response.calls[2][-1]["content"]
    assert result["steps"][-1]["step"] == "response_chat_model"
    assert result["steps"][-1]["next_step"] == "end"
    assert result["reply"] == "Here is what I found so far."
    history = await store.load_history("conv-5")
    assert history[-1] == {"role": "assistant", "content": "Here is what I found so far."}


@pytest.mark.asyncio
async def test_unknown_tool_is_reported_to_model(store: InMemoryConversationStore) -> None:
    """Test that a call to a missing tool yields an error payload, not a failure."""
    nlu = nlu_model()
    response = response_model(
        make_response(tool_calls=[("t1", "check_warranty", {})]),
        make_response("I cannot check warranties."),
    )
    agent = make_agent(store, nlu, response)

    result = await agent.invoke("conv-6", "Is my laptop under warranty?")

    assert result["reply"] == "I cannot check warranties."
    tool_result = response.calls[1][-1]
    assert orjson.loads(tool_result["content"]) == {
        "error": "unknown_tool",
        "name": "check_warranty",
        "note": "ignored",
    }


@pytest.mark.asyncio
async def test_tool_failure_aborts_turn(store: InMemoryConversationStore) -> None:
    """Test that a failing tool ends the invocation with a step error."""
    nlu = nlu_model()
    response = response_model(
        make_response(tool_calls=[("t1", "get_product_details", {"product_id": "prod-999"})]),
    )
    agent = make_agent(store, nlu, response)

    with pytest.raises(StepExecutionError) as exc_info:
        await agent.invoke("conv-7", "Details of prod-999")

    assert exc_info.value.step is StepName.TOOL_EXECUTOR
    assert isinstance(exc_info.value.cause, ToolExecutionError)


@pytest.mark.asyncio
async def test_save_failure_does_not_fail_turn() -> None:
    """Test that the reply is still returned when saving it fails."""
    store = FailingAssistantStore()
    agent = make_agent(store, nlu_model(), response_model(make_response("Hello!")))

    result = await agent.invoke("conv-8", "Hi")

    assert result["reply"] == "Hello!"
    assert await store.count_messages("conv-8") == 1


@pytest.mark.asyncio
async def test_cost_is_accumulated_across_models(store: InMemoryConversationStore) -> None:
    """Test that NLU and response costs add up in the turn result."""
    nlu = nlu_model(usage=(100, 50))
    response = response_model(make_response("Hi there", usage=(200, 100)))
    pricing = {
        "nlu-test": Pricing(input_per_million=1.0, output_per_million=2.0),
        "response-test": Pricing(input_per_million=1.0, output_per_million=2.0),
    }
    agent = make_agent(store, nlu, response, pricing_table=pricing)

    result = await agent.invoke("conv-9", "Hello")

    expected = (100 * 1.0 + 50 * 2.0 + 200 * 1.0 + 100 * 2.0) / 1_000_000
    assert result["total_cost_usd"] == pytest.approx(expected)


@pytest.mark.asyncio
async def test_each_invocation_starts_fresh(store: InMemoryConversationStore) -> None:
    """Test that budgets and costs do not leak between turns."""
    nlu = nlu_model(usage=(1000, 0))
    response = response_model(
        make_response(tool_calls=[("t1", "search_product", {"query": "ipad"})]),
        make_response("Found it."),
    )
    pricing = {"nlu-test": Pricing(input_per_million=1.0)}
    agent = make_agent(store, nlu, response, pricing_table=pricing)

    first = await agent.invoke("conv-10", "iPad?")
    second = await agent.invoke("conv-10", "Thanks")

    assert first["tool_call_count"] == 1
    assert second["tool_call_count"] == 0
    assert first["total_cost_usd"] == pytest.approx(0.001)
    assert second["total_cost_usd"] == pytest.approx(0.001)
    assert first["trace_id"] != second["trace_id"]


@pytest.mark.asyncio
async def test_deadline_cancels_turn(store: InMemoryConversationStore) -> None:
    """Test that a slow model call is cancelled at the deadline."""
    nlu = nlu_model()
    nlu.delay = 5
    agent = make_agent(store, nlu, response_model(make_response("late")))

    with pytest.raises(InvocationCancelledError):
        await agent.invoke("conv-11", "Hello", timeout=0.01)


class TestBuildValidation:
    """Tests for dependency validation at build time."""

    def test_missing_store(self) -> None:
        """Test that a store is required."""
        deps = GraphDependencies(
            store=None, nlu_model=nlu_model(), response_model=response_model(), nlu_prompt=PROMPT
        )
        with pytest.raises(GraphConfigurationError, match="conversation store is required"):
            build_response_graph(deps)

    @pytest.mark.parametrize("missing", ["nlu_model", "response_model"])
    def test_missing_model(self, missing: str) -> None:
        """Test that both chat models are required."""
        kwargs: dict[str, Any] = {
            "store": InMemoryConversationStore(),
            "nlu_model": nlu_model(),
            "response_model": response_model(make_response("x")),
            "nlu_prompt": PROMPT,
        }
        kwargs[missing] = None
        with pytest.raises(GraphConfigurationError, match="chat models are not properly"):
            build_response_graph(GraphDependencies(**kwargs))

    def test_missing_prompt(self) -> None:
        """Test that prompt configuration is required."""
        deps = GraphDependencies(
            store=InMemoryConversationStore(),
            nlu_model=nlu_model(),
            response_model=response_model(make_response("x")),
            nlu_prompt=None,
        )
        with pytest.raises(GraphConfigurationError, match="prompt configuration is required"):
            build_response_graph(deps)

    def test_ceiling_follows_budget(self) -> None:
        """Test that the step ceiling grows with the tool budget."""
        deps = GraphDependencies(
            store=InMemoryConversationStore(),
            nlu_model=nlu_model(),
            response_model=response_model(make_response("x")),
            nlu_prompt=PROMPT,
            max_tool_calls=25,
        )

        graph = build_response_graph(deps)

        assert graph.max_steps == 60
        assert graph.entry is StepName.INPUT_CONVERTER
        assert len(graph.step_names) == 7


class TestPipelineSteps:
    """Tests for individual step functions."""

    def make_steps(self, store: InMemoryConversationStore) -> PipelineSteps:
        return PipelineSteps(
            messages=MessagesManager(store),
            nlu_model=nlu_model(),
            response_model=response_model(make_response("x")),
            tool_layer=ToolExecutionLayer(build_catalog_registry()),
            nlu_prompt=PROMPT,
            response_prompt=ResponsePromptConfig(),
        )

    @pytest.mark.asyncio
    async def test_assembler_requires_analysis(self, store: InMemoryConversationStore) -> None:
        """Test that the assembler refuses to run without an NLU analysis."""
        steps = self.make_steps(store)

        with pytest.raises(GraphError, match="missing NLU analysis in state"):
            await steps.response_assembler(None, InvocationState())  # type: ignore[arg-type]

    @pytest.mark.asyncio
    async def test_response_pre_extends_history(self, store: InMemoryConversationStore) -> None:
        """Test that inbound messages are appended and the full history returned."""
        steps = self.make_steps(store)
        state = InvocationState(
            history=[{"role": "assistant", "content": "", "tool_calls": [{"id": "abc"}]}]
        )
        inbound = [{"role": "tool", "tool_call_id": "", "content": "{}"}]

        messages = await steps.response_chat_model_pre(inbound, state)

        assert len(messages) == 2
        assert messages[-1]["tool_call_id"] == "abc"
        assert state.history == messages
        assert messages is not state.history
