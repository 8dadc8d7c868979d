"""Step functions of the conversation-turn graph.

Every step, pre-handler and post-handler takes ``(payload, state)`` and
returns the payload for what runs next:

    input_converter      TurnInput      -> NLU messages
    nlu_chat_model       NLU messages   -> LLMResponse
    parser               LLMResponse    -> NLUAnalysis
    human_handoff        NLUAnalysis    -> system message
    response_assembler   NLUAnalysis    -> response messages
    response_chat_model  messages       -> assistant message
    tool_executor        assistant msg  -> tool messages
"""

from dataclasses import dataclass

from support_agent.conversations.manager import MessagesManager
from support_agent.graph.budget import (
    HandoffPolicy,
    assign_missing_tool_call_ids,
    backfill_tool_result_id,
    check_and_mark_tool_limit,
    increment_tool_call_and_check,
    normalize_max_tool_calls,
    wrap_up_notice,
)
from support_agent.graph.prompts import (
    NLUPromptConfig,
    ResponsePromptConfig,
    render_nlu_system,
    render_response_system,
)
from support_agent.graph.types import GraphError, InvocationState, StepName
from support_agent.llm_client.adapters import assistant_message
from support_agent.llm_client.client import ChatModelProtocol
from support_agent.llm_client.cost import Pricing, accumulate_usage_cost
from support_agent.llm_client.types import LLMResponse, Message
from support_agent.nlu.parser import parse_nlu_response
from support_agent.nlu.types import ImportanceWeights, NLUAnalysis
from support_agent.telemetry import (
    CONVERSATION_SAVE_FAILED,
    HUMAN_INTERVENTION_REQUIRED,
    NLU_ANALYSIS_STORED,
    NLU_HIGH_IMPORTANCE,
    TOOL_BUDGET_EXHAUSTED,
    TOOL_WRAP_UP_NOTICE_ADDED,
    TraceContext,
    get_logger,
)
from support_agent.tools.executor import ToolExecutionLayer

log = get_logger(__name__)

HANDOFF_MESSAGE = "Human intervention required for negative sentiment. Case escalated to admin."


@dataclass(frozen=True)
class TurnInput:
    """Input of one invocation."""

    conversation_id: str
    query: str


def _trace(state: InvocationState) -> TraceContext:
    return TraceContext(trace_id=state.trace_id, conversation_id=state.conversation_id)


class PipelineSteps:
    """Step functions bound to their collaborators.

    Attributes:
        messages: Conversation assembler over the store.
        nlu_model: Model producing the delimited NLU analysis.
        response_model: Model answering the customer, with tools bound.
        tool_layer: Executes the response model's tool calls.
        nlu_prompt: Catalogues for the NLU system prompt.
        response_prompt: Business identity for the response system prompt.
        max_tool_calls: Tool rounds allowed per turn.
        handoff_policy: When to escalate to a human.
        importance_weights: Weights of the importance score.
        importance_log_threshold: Importance above which a turn is flagged.
        pricing_table: Pricing by model name (None for built-in defaults).
    """

    def __init__(
        self,
        messages: MessagesManager,
        nlu_model: ChatModelProtocol,
        response_model: ChatModelProtocol,
        tool_layer: ToolExecutionLayer,
        nlu_prompt: NLUPromptConfig,
        response_prompt: ResponsePromptConfig,
        max_tool_calls: int = 10,
        handoff_policy: HandoffPolicy | None = None,
        importance_weights: ImportanceWeights | None = None,
        importance_log_threshold: float = 0.7,
        pricing_table: dict[str, Pricing] | None = None,
    ) -> None:
        self.messages = messages
        self.nlu_model = nlu_model
        self.response_model = response_model
        self.tool_layer = tool_layer
        self.nlu_prompt = nlu_prompt
        self.response_prompt = response_prompt
        self.max_tool_calls = normalize_max_tool_calls(max_tool_calls)
        self.handoff_policy = handoff_policy or HandoffPolicy()
        self.importance_weights = importance_weights or ImportanceWeights()
        self.importance_log_threshold = importance_log_threshold
        self.pricing_table = pricing_table

    # ------------------------------------------------------------------
    # input_converter
    # ------------------------------------------------------------------

    async def input_converter_pre(self, turn: TurnInput, state: InvocationState) -> TurnInput:
        if not state.conversation_id:
            state.conversation_id = turn.conversation_id
        state.reset_turn()
        return turn

    async def input_converter(self, turn: TurnInput, state: InvocationState) -> list[Message]:
        """Record the query and build the NLU model's messages."""
        context = await self.messages.process_nlu_message(turn.conversation_id, turn.query)
        return [
            {"role": "system", "content": render_nlu_system(self.nlu_prompt)},
            {"role": "user", "content": context},
        ]

    # ------------------------------------------------------------------
    # nlu_chat_model
    # ------------------------------------------------------------------

    async def nlu_chat_model(self, messages: list[Message], state: InvocationState) -> LLMResponse:
        return await self.nlu_model.generate(messages, _trace(state))

    async def nlu_chat_model_post(
        self, response: LLMResponse, state: InvocationState
    ) -> LLMResponse:
        accumulate_usage_cost(
            response,
            state,
            self.nlu_model.model_name,
            self.pricing_table,
            trace_id=state.trace_id,
            conversation_id=state.conversation_id,
            step="nlu_chat_model",
        )
        return response

    # ------------------------------------------------------------------
    # parser
    # ------------------------------------------------------------------

    async def parser(self, response: LLMResponse, state: InvocationState) -> NLUAnalysis:
        return parse_nlu_response(response["content"], weights=self.importance_weights)

    async def parser_post(self, analysis: NLUAnalysis, state: InvocationState) -> NLUAnalysis:
        state.nlu_analysis = analysis
        log.debug(
            NLU_ANALYSIS_STORED,
            trace_id=state.trace_id,
            conversation_id=state.conversation_id,
            analysis=analysis.summary(),
        )
        if analysis.importance_score > self.importance_log_threshold:
            log.info(
                NLU_HIGH_IMPORTANCE,
                trace_id=state.trace_id,
                conversation_id=state.conversation_id,
                importance_score=analysis.importance_score,
                primary_intent=analysis.primary_intent,
            )
        return analysis

    def decide_after_analysis(self, analysis: NLUAnalysis, state: InvocationState) -> StepName:
        return self.handoff_policy.decide_after_analysis(analysis, state)

    # ------------------------------------------------------------------
    # human_handoff
    # ------------------------------------------------------------------

    async def human_handoff(self, analysis: NLUAnalysis, state: InvocationState) -> Message:
        """Escalate the conversation. No model is called."""
        state.handed_off = True
        log.warning(
            HUMAN_INTERVENTION_REQUIRED,
            trace_id=state.trace_id,
            conversation_id=state.conversation_id,
            sentiment_label=analysis.sentiment.label,
            sentiment_confidence=analysis.sentiment.confidence,
        )
        return {"role": "system", "content": HANDOFF_MESSAGE}

    # ------------------------------------------------------------------
    # response_assembler
    # ------------------------------------------------------------------

    async def response_assembler(
        self, analysis: NLUAnalysis, state: InvocationState
    ) -> list[Message]:
        """Build ``[system prompt] + stored history`` for the response model.

        Raises:
            GraphError: If the parser step has not stored an analysis.
        """
        if state.nlu_analysis is None:
            raise GraphError("missing NLU analysis in state")
        system_prompt = render_response_system(self.response_prompt, state.nlu_analysis)
        return await self.messages.build_response_context(state.conversation_id, system_prompt)

    # ------------------------------------------------------------------
    # response_chat_model
    # ------------------------------------------------------------------

    async def response_chat_model_pre(
        self, inbound: list[Message], state: InvocationState
    ) -> list[Message]:
        """Append the inbound messages to history and return the full history.

        Adds the wrap-up notice when the tool budget is used up.
        """
        backfill_tool_result_id(inbound, state.history)
        state.history.extend(inbound)

        if check_and_mark_tool_limit(state, self.max_tool_calls):
            state.history.append(wrap_up_notice(self.max_tool_calls))
            log.info(
                TOOL_WRAP_UP_NOTICE_ADDED,
                trace_id=state.trace_id,
                conversation_id=state.conversation_id,
                tool_call_count=state.tool_call_count,
                max_tool_calls=self.max_tool_calls,
            )
        return list(state.history)

    async def response_chat_model(
        self, messages: list[Message], state: InvocationState
    ) -> LLMResponse:
        return await self.response_model.generate(messages, _trace(state))

    async def response_chat_model_post(
        self, response: LLMResponse, state: InvocationState
    ) -> Message:
        """Price the call, fix tool-call ids, record the reply.

        The reply is saved to the store when it is final (no tool calls, or
        the budget is exhausted) and has content. A failed save is logged and
        does not fail the turn.
        """
        accumulate_usage_cost(
            response,
            state,
            self.response_model.model_name,
            self.pricing_table,
            trace_id=state.trace_id,
            conversation_id=state.conversation_id,
            step="response_chat_model",
        )
        assign_missing_tool_call_ids(response, state)

        message = assistant_message(response)
        state.history.append(message)

        is_final = not response["tool_calls"] or state.tool_call_limit_reached
        content = response["content"]
        if response["role"] == "assistant" and is_final and content.strip():
            try:
                await self.messages.save_response(state.conversation_id, content)
            except Exception as e:
                log.error(
                    CONVERSATION_SAVE_FAILED,
                    trace_id=state.trace_id,
                    conversation_id=state.conversation_id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
        return message

    # ------------------------------------------------------------------
    # tool_executor
    # ------------------------------------------------------------------

    async def tool_executor_pre(self, message: Message, state: InvocationState) -> Message:
        if increment_tool_call_and_check(state, self.max_tool_calls):
            log.warning(
                TOOL_BUDGET_EXHAUSTED,
                trace_id=state.trace_id,
                conversation_id=state.conversation_id,
                tool_call_count=state.tool_call_count,
                max_tool_calls=self.max_tool_calls,
            )
        return message

    async def tool_executor(self, message: Message, state: InvocationState) -> list[Message]:
        return await self.tool_layer.run_tool_calls(message, _trace(state))
