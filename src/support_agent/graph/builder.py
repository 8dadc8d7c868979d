"""Graph construction and the SupportAgent runner.

``build_response_graph`` wires the pipeline steps into a compiled graph:

    input_converter -> nlu_chat_model -> parser
    parser -> human_handoff | response_assembler
    human_handoff -> END
    response_assembler -> response_chat_model
    response_chat_model -> tool_executor | END
    tool_executor -> response_chat_model

``SupportAgent`` runs one conversation turn per ``invoke`` call, each over a
fresh InvocationState.
"""

import time
import uuid
from dataclasses import dataclass, field

from support_agent.config.pricing_loader import load_pricing_config
from support_agent.config.settings import AppConfig
from support_agent.conversations.manager import MessagesManager
from support_agent.conversations.store import ConversationStore
from support_agent.graph.budget import (
    HandoffPolicy,
    decide_after_response,
    normalize_max_tool_calls,
)
from support_agent.graph.executor import CompiledGraph, StepGraph, step_ceiling
from support_agent.graph.prompts import NLUPromptConfig, ResponsePromptConfig
from support_agent.graph.steps import PipelineSteps, TurnInput
from support_agent.graph.types import (
    GraphConfigurationError,
    InvocationCancelledError,
    InvocationState,
    StepName,
    TurnResult,
)
from support_agent.llm_client.client import ChatModel, ChatModelProtocol
from support_agent.llm_client.cost import Pricing, build_pricing_table
from support_agent.llm_client.types import ModelRole
from support_agent.nlu.types import ImportanceWeights
from support_agent.telemetry import (
    INVOCATION_CANCELLED,
    INVOCATION_COMPLETED,
    INVOCATION_FAILED,
    INVOCATION_STARTED,
    get_logger,
)
from support_agent.tools.catalog import build_catalog_registry
from support_agent.tools.executor import ToolExecutionLayer
from support_agent.tools.registry import ToolRegistry

log = get_logger(__name__)


@dataclass
class GraphDependencies:
    """Everything the graph needs, supplied by the caller.

    Attributes:
        store: Conversation store (required).
        nlu_model: NLU model client (required).
        response_model: Response model client (required). Tools from
            ``tool_registry`` are bound to it during the build.
        nlu_prompt: NLU catalogues (required).
        response_prompt: Business identity (required).
        tool_registry: Tools offered to the response model.
        max_tool_calls: Tool rounds per turn; non-positive means 10.
        nlu_max_turns: History messages shown to the NLU model.
        handoff_policy: Escalation rule.
        importance_weights: Importance score weights.
        importance_log_threshold: Importance above which a turn is flagged.
        pricing_table: Pricing by model name (None for built-in defaults).
    """

    store: ConversationStore | None
    nlu_model: ChatModelProtocol | None
    response_model: ChatModelProtocol | None
    nlu_prompt: NLUPromptConfig | None
    response_prompt: ResponsePromptConfig | None = field(default_factory=ResponsePromptConfig)
    tool_registry: ToolRegistry = field(default_factory=build_catalog_registry)
    max_tool_calls: int = 10
    nlu_max_turns: int = 5
    handoff_policy: HandoffPolicy = field(default_factory=HandoffPolicy)
    importance_weights: ImportanceWeights = field(default_factory=ImportanceWeights)
    importance_log_threshold: float = 0.7
    pricing_table: dict[str, Pricing] | None = None


def _validate(deps: GraphDependencies) -> None:
    if deps.store is None:
        raise GraphConfigurationError("conversation store is required")
    if deps.nlu_model is None or deps.response_model is None:
        raise GraphConfigurationError("chat models are not properly initialized")
    if deps.nlu_prompt is None or deps.response_prompt is None:
        raise GraphConfigurationError("prompt configuration is required")


def build_response_graph(deps: GraphDependencies) -> CompiledGraph:
    """Validate the dependencies and compile the conversation-turn graph.

    Args:
        deps: Collaborators and policy settings.

    Returns:
        Compiled graph whose entry takes a ``TurnInput``.

    Raises:
        GraphConfigurationError: If a required dependency is missing.
    """
    _validate(deps)
    assert deps.store is not None and deps.nlu_model is not None
    assert deps.response_model is not None and deps.nlu_prompt is not None
    assert deps.response_prompt is not None

    max_tool_calls = normalize_max_tool_calls(deps.max_tool_calls)
    response_model = deps.response_model.bind_tools(
        deps.tool_registry.get_tool_definitions_for_llm()
    )
    steps = PipelineSteps(
        messages=MessagesManager(deps.store, deps.nlu_max_turns),
        nlu_model=deps.nlu_model,
        response_model=response_model,
        tool_layer=ToolExecutionLayer(deps.tool_registry),
        nlu_prompt=deps.nlu_prompt,
        response_prompt=deps.response_prompt,
        max_tool_calls=max_tool_calls,
        handoff_policy=deps.handoff_policy,
        importance_weights=deps.importance_weights,
        importance_log_threshold=deps.importance_log_threshold,
        pricing_table=deps.pricing_table,
    )

    graph = StepGraph()
    graph.add_step(
        StepName.INPUT_CONVERTER, steps.input_converter, pre_handler=steps.input_converter_pre
    )
    graph.add_step(
        StepName.NLU_CHAT_MODEL, steps.nlu_chat_model, post_handler=steps.nlu_chat_model_post
    )
    graph.add_step(StepName.PARSER, steps.parser, post_handler=steps.parser_post)
    graph.add_step(StepName.HUMAN_HANDOFF, steps.human_handoff)
    graph.add_step(StepName.RESPONSE_ASSEMBLER, steps.response_assembler)
    graph.add_step(
        StepName.RESPONSE_CHAT_MODEL,
        steps.response_chat_model,
        pre_handler=steps.response_chat_model_pre,
        post_handler=steps.response_chat_model_post,
    )
    graph.add_step(
        StepName.TOOL_EXECUTOR, steps.tool_executor, pre_handler=steps.tool_executor_pre
    )

    graph.set_entry(StepName.INPUT_CONVERTER)
    graph.add_edge(StepName.INPUT_CONVERTER, StepName.NLU_CHAT_MODEL)
    graph.add_edge(StepName.NLU_CHAT_MODEL, StepName.PARSER)
    graph.add_branch(
        StepName.PARSER,
        steps.decide_after_analysis,
        {StepName.HUMAN_HANDOFF, StepName.RESPONSE_ASSEMBLER},
    )
    graph.add_edge(StepName.HUMAN_HANDOFF, StepName.END)
    graph.add_edge(StepName.RESPONSE_ASSEMBLER, StepName.RESPONSE_CHAT_MODEL)
    graph.add_branch(
        StepName.RESPONSE_CHAT_MODEL,
        decide_after_response,
        {StepName.TOOL_EXECUTOR, StepName.END},
    )
    graph.add_edge(StepName.TOOL_EXECUTOR, StepName.RESPONSE_CHAT_MODEL)

    return graph.compile(max_steps=step_ceiling(max_tool_calls))


class SupportAgent:
    """Runs conversation turns over a compiled graph."""

    def __init__(self, graph: CompiledGraph, default_timeout: float | None = None) -> None:
        self.graph = graph
        self.default_timeout = default_timeout

    @classmethod
    def from_dependencies(
        cls, deps: GraphDependencies, default_timeout: float | None = None
    ) -> "SupportAgent":
        return cls(build_response_graph(deps), default_timeout)

    @classmethod
    def from_settings(cls, settings: AppConfig, store: ConversationStore) -> "SupportAgent":
        """Build an agent with HTTP model clients configured from settings.

        Raises:
            GraphConfigurationError: If the store is missing.
            PricingConfigError: If the pricing file is invalid.
        """
        pricing_config = (
            load_pricing_config(settings.pricing_config_path)
            if settings.pricing_config_path
            else None
        )
        nlu_model = ChatModel(
            role=ModelRole.NLU,
            model_name=settings.nlu_model,
            base_url=settings.llm_base_url,
            api_key=settings.llm_api_key,
            timeout_seconds=settings.llm_timeout_seconds,
            max_retries=settings.llm_max_retries,
            max_tokens=settings.nlu_max_tokens,
            temperature=settings.nlu_temperature,
        )
        response_model = ChatModel(
            role=ModelRole.RESPONSE,
            model_name=settings.response_model,
            base_url=settings.llm_base_url,
            api_key=settings.llm_api_key,
            timeout_seconds=settings.llm_timeout_seconds,
            max_retries=settings.llm_max_retries,
            max_tokens=settings.response_max_tokens,
            temperature=settings.response_temperature,
        )
        deps = GraphDependencies(
            store=store,
            nlu_model=nlu_model,
            response_model=response_model,
            nlu_prompt=NLUPromptConfig.from_settings(settings),
            response_prompt=ResponsePromptConfig.from_settings(settings),
            max_tool_calls=settings.conversation_tool_max_calls,
            nlu_max_turns=settings.conversation_nlu_max_turns,
            handoff_policy=HandoffPolicy(
                label=settings.handoff_sentiment_label,
                min_confidence=settings.handoff_confidence_threshold,
            ),
            importance_weights=ImportanceWeights(
                confidence=settings.importance_confidence_weight,
                priority=settings.importance_priority_weight,
            ),
            importance_log_threshold=settings.importance_log_threshold,
            pricing_table=build_pricing_table(pricing_config),
        )
        return cls.from_dependencies(deps, settings.invocation_timeout_seconds)

    async def invoke(
        self, conversation_id: str, query: str, *, timeout: float | None = None
    ) -> TurnResult:
        """Process one user message.

        Args:
            conversation_id: Conversation the message belongs to.
            query: The user's message.
            timeout: Deadline in seconds; defaults to the agent's default.

        Returns:
            TurnResult with the reply and turn statistics.

        Raises:
            StepExecutionError: If a step failed (model, store or tool error).
            StepLimitExceededError: If the step ceiling was exceeded.
            InvocationCancelledError: If the deadline expired.
        """
        state = InvocationState(trace_id=str(uuid.uuid4()))
        if timeout is None:
            timeout = self.default_timeout

        log.info(
            INVOCATION_STARTED,
            trace_id=state.trace_id,
            conversation_id=conversation_id,
            query_length=len(query),
        )
        start_time = time.monotonic()
        try:
            final = await self.graph.invoke(
                TurnInput(conversation_id=conversation_id, query=query), state, timeout=timeout
            )
        except InvocationCancelledError:
            log.warning(
                INVOCATION_CANCELLED,
                trace_id=state.trace_id,
                conversation_id=conversation_id,
                timeout=timeout,
                steps_count=len(state.steps),
            )
            raise
        except Exception as e:
            log.error(
                INVOCATION_FAILED,
                trace_id=state.trace_id,
                conversation_id=conversation_id,
                error=str(e),
                error_type=type(e).__name__,
                steps_count=len(state.steps),
            )
            raise

        reply = final.get("content") or ""
        log.info(
            INVOCATION_COMPLETED,
            trace_id=state.trace_id,
            conversation_id=conversation_id,
            duration_ms=int((time.monotonic() - start_time) * 1000),
            steps_count=len(state.steps),
            tool_call_count=state.tool_call_count,
            total_cost_usd=state.total_cost_usd,
            handed_off=state.handed_off,
            reply_length=len(reply),
        )
        return TurnResult(
            reply=reply,
            conversation_id=state.conversation_id or conversation_id,
            trace_id=state.trace_id,
            total_cost_usd=state.total_cost_usd,
            tool_call_count=state.tool_call_count,
            handed_off=state.handed_off,
            steps=list(state.steps),
        )
