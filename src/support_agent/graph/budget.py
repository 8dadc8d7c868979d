"""Tool-call budget tracking and branch decisions.

Two branch points exist in the graph:

- after the parser: escalate to a human, or assemble a response
- after the response model: run the requested tools, or finish

The tool budget caps tool rounds per turn. The round that crosses the cap is
still allowed through; the next response-model call gets a single wrap-up
notice and its output always ends the turn.
"""

from dataclasses import dataclass

from support_agent.graph.types import InvocationState, StepName
from support_agent.llm_client.types import LLMResponse, Message
from support_agent.nlu.types import NLUAnalysis
from support_agent.telemetry import (
    HUMAN_HANDOFF_TRIGGERED,
    TOOL_BUDGET_EXHAUSTED,
    TOOL_CALL_ID_BACKFILLED,
    TOOL_CALL_ID_SYNTHESIZED,
    get_logger,
)

log = get_logger(__name__)

DEFAULT_MAX_TOOL_CALLS = 10

WRAP_UP_NOTICE = (
    "SYSTEM NOTICE: You have reached the maximum tool call limit ({max_tool_calls}). "
    "Please synthesize a helpful response using the information you've already gathered. "
    "Acknowledge any limitations in your response if you couldn't complete all necessary "
    "tool calls."
)


def normalize_max_tool_calls(max_tool_calls: int) -> int:
    """Fall back to the default budget for non-positive values."""
    if max_tool_calls <= 0:
        return DEFAULT_MAX_TOOL_CALLS
    return max_tool_calls


def increment_tool_call_and_check(state: InvocationState, max_tool_calls: int) -> bool:
    """Count a tool round and flag the state once the budget is exceeded.

    The round that exceeds the budget still runs.

    Returns:
        True if the count is now above the budget.
    """
    max_tool_calls = normalize_max_tool_calls(max_tool_calls)
    state.tool_call_count += 1
    if state.tool_call_count > max_tool_calls:
        state.tool_call_limit_reached = True
        return True
    return False


def check_and_mark_tool_limit(state: InvocationState, max_tool_calls: int) -> bool:
    """Mark the limit as reached if the budget is used up.

    Returns:
        True only when the flag was set by this call, so the caller adds the
        wrap-up notice exactly once per turn.
    """
    max_tool_calls = normalize_max_tool_calls(max_tool_calls)
    if not state.tool_call_limit_reached and state.tool_call_count >= max_tool_calls:
        state.tool_call_limit_reached = True
        return True
    return False


def wrap_up_notice(max_tool_calls: int) -> Message:
    """System message telling the model to answer with what it has."""
    return {
        "role": "system",
        "content": WRAP_UP_NOTICE.format(max_tool_calls=normalize_max_tool_calls(max_tool_calls)),
    }


def decide_after_response(message: Message, state: InvocationState) -> StepName:
    """Route the response model's output.

    END once the limit is reached, even if more tools were requested;
    otherwise TOOL_EXECUTOR when the message carries tool calls, else END.
    """
    if state.tool_call_limit_reached:
        if message.get("tool_calls"):
            log.warning(
                TOOL_BUDGET_EXHAUSTED,
                trace_id=state.trace_id,
                conversation_id=state.conversation_id,
                tool_call_count=state.tool_call_count,
                dropped_tool_calls=len(message["tool_calls"]),
            )
        return StepName.END
    if message.get("tool_calls"):
        return StepName.TOOL_EXECUTOR
    return StepName.END


@dataclass(frozen=True)
class HandoffPolicy:
    """When a turn is escalated to a human.

    Attributes:
        label: Sentiment label that escalates (exact match).
        min_confidence: Escalate only when confidence is strictly above this.
    """

    label: str = "negative"
    min_confidence: float = 0.94

    def should_hand_off(self, analysis: NLUAnalysis) -> bool:
        sentiment = analysis.sentiment
        return sentiment.label == self.label and sentiment.confidence > self.min_confidence

    def decide_after_analysis(self, analysis: NLUAnalysis, state: InvocationState) -> StepName:
        """Route the parser's output to HUMAN_HANDOFF or RESPONSE_ASSEMBLER."""
        if self.should_hand_off(analysis):
            log.info(
                HUMAN_HANDOFF_TRIGGERED,
                trace_id=state.trace_id,
                conversation_id=state.conversation_id,
                sentiment_label=analysis.sentiment.label,
                sentiment_confidence=analysis.sentiment.confidence,
            )
            return StepName.HUMAN_HANDOFF
        return StepName.RESPONSE_ASSEMBLER


def backfill_tool_result_id(messages: list[Message], history: list[Message]) -> bool:
    """Give the last tool result a ``tool_call_id`` if it lacks one.

    The id is borrowed from the first tool call of the most recent assistant
    message in ``history`` that carries tool calls.

    Returns:
        True if an id was filled in.
    """
    if not messages:
        return False
    last = messages[-1]
    if last.get("role") != "tool" or str(last.get("tool_call_id") or "").strip():
        return False

    for message in reversed(history):
        if message.get("role") != "assistant" or not message.get("tool_calls"):
            continue
        call_id = str(message["tool_calls"][0].get("id") or "").strip()
        if not call_id:
            return False
        last["tool_call_id"] = call_id
        log.debug(TOOL_CALL_ID_BACKFILLED, tool_call_id=call_id)
        return True
    return False


def assign_missing_tool_call_ids(response: LLMResponse, state: InvocationState) -> int:
    """Synthesize ``call_<n>`` ids for tool calls the provider left blank.

    Returns:
        Number of ids synthesized.
    """
    assigned = 0
    for tool_call in response["tool_calls"]:
        if tool_call["id"].strip():
            continue
        state.tool_call_id_seq += 1
        tool_call["id"] = f"call_{state.tool_call_id_seq}"
        assigned += 1
        log.debug(
            TOOL_CALL_ID_SYNTHESIZED,
            trace_id=state.trace_id,
            tool_name=tool_call["name"],
            tool_call_id=tool_call["id"],
        )
    return assigned
