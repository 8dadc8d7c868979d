"""Core types for the conversation-turn graph.

This module defines the data structures shared by the executor and the steps:
- StepName: identifiers of the steps (plus the END marker)
- InvocationState: mutable state container owned by one invocation
- StepRecord: per-step observability record
- TurnResult: final result returned to callers
- Error classes: GraphError hierarchy
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from typing_extensions import TypedDict

from support_agent.llm_client.types import Message
from support_agent.nlu.types import NLUAnalysis


class StepName(str, Enum):
    """Steps of the conversation-turn graph."""

    INPUT_CONVERTER = "input_converter"
    NLU_CHAT_MODEL = "nlu_chat_model"
    PARSER = "parser"
    HUMAN_HANDOFF = "human_handoff"
    RESPONSE_ASSEMBLER = "response_assembler"
    RESPONSE_CHAT_MODEL = "response_chat_model"
    TOOL_EXECUTOR = "tool_executor"
    END = "end"  # Terminal marker, never registered as a step


class StepRecord(TypedDict):
    """One executed step, recorded for observability.

    Fields:
        step: Step name.
        index: 1-based execution index within the invocation.
        duration_ms: Wall time of pre-handler, body and post-handler together.
        next_step: Successor chosen after the step ("end" when terminal).
    """

    step: str
    index: int
    duration_ms: float
    next_step: str


@dataclass
class InvocationState:
    """Mutable state container passed through every step of one invocation.

    A fresh instance is created per invocation and discarded afterwards; no
    other component may hold on to it.

    Attributes:
        conversation_id: Conversation the invocation belongs to.
        history: Messages exchanged with the response model, append-only.
        nlu_analysis: Set once by the parser step.
        tool_call_count: Tool-execution steps run in this turn.
        tool_call_limit_reached: Whether the tool budget is exhausted.
        tool_call_id_seq: Counter for synthesized tool-call ids.
        total_cost_usd: Running model cost of this turn; never decreases.
        trace_id: Trace identifier for log correlation.
        steps: Executed step records.
        handed_off: Whether the turn was escalated to a human.
    """

    conversation_id: str = ""
    history: list[Message] = field(default_factory=list)
    nlu_analysis: NLUAnalysis | None = None
    tool_call_count: int = 0
    tool_call_limit_reached: bool = False
    tool_call_id_seq: int = 0
    total_cost_usd: float = 0.0
    trace_id: str = ""
    steps: list[StepRecord] = field(default_factory=list)
    handed_off: bool = False

    def reset_turn(self) -> None:
        """Zero the per-turn budget counters and cost total."""
        self.tool_call_count = 0
        self.tool_call_limit_reached = False
        self.tool_call_id_seq = 0
        self.total_cost_usd = 0.0


class TurnResult(TypedDict):
    """Final result of one conversation turn.

    Fields:
        reply: Text of the final message ("" if the model produced none).
        conversation_id: Conversation the turn belongs to.
        trace_id: Trace ID for log correlation.
        total_cost_usd: Model cost of the turn.
        tool_call_count: Tool-execution steps run.
        handed_off: Whether the turn was escalated to a human.
        steps: Executed step records.
    """

    reply: str
    conversation_id: str
    trace_id: str
    total_cost_usd: float
    tool_call_count: int
    handed_off: bool
    steps: list[StepRecord]


# Error hierarchy


class GraphError(Exception):
    """Base exception for graph construction and execution errors."""

    pass


class GraphConfigurationError(GraphError):
    """Raised when the graph or its dependencies are wired incorrectly."""

    pass


class InvalidRouteError(GraphError):
    """Raised when a branch decision names a successor it did not declare."""

    def __init__(self, step: StepName, target: Any, allowed: frozenset[StepName]) -> None:
        self.step = step
        self.target = target
        self.allowed = allowed
        names = ", ".join(sorted(s.value for s in allowed))
        super().__init__(f"step {step.value} routed to {target!r}; allowed: {names}")


class StepLimitExceededError(GraphError):
    """Raised when an invocation runs more steps than the ceiling allows."""

    def __init__(self, max_steps: int, step: StepName) -> None:
        self.max_steps = max_steps
        self.step = step
        super().__init__(f"too many steps: limit {max_steps} reached before {step.value}")


class StepExecutionError(GraphError):
    """Raised when a step's handler, body or branch decision fails.

    Attributes:
        step: Step that failed.
        cause: Original exception (also chained as ``__cause__``).
    """

    def __init__(self, step: StepName, cause: BaseException) -> None:
        self.step = step
        self.cause = cause
        super().__init__(f"step {step.value} failed: {cause}")


class InvocationCancelledError(GraphError):
    """Raised when an invocation's deadline expires."""

    pass
