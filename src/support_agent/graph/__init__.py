"""Conversation-turn graph: bounded executor, budget policy, steps, and runner."""

from support_agent.graph.budget import (
    DEFAULT_MAX_TOOL_CALLS,
    HandoffPolicy,
    assign_missing_tool_call_ids,
    backfill_tool_result_id,
    check_and_mark_tool_limit,
    decide_after_response,
    increment_tool_call_and_check,
    normalize_max_tool_calls,
)
from support_agent.graph.builder import GraphDependencies, SupportAgent, build_response_graph
from support_agent.graph.executor import CompiledGraph, StepGraph, step_ceiling
from support_agent.graph.steps import HANDOFF_MESSAGE, PipelineSteps, TurnInput
from support_agent.graph.types import (
    GraphConfigurationError,
    GraphError,
    InvalidRouteError,
    InvocationCancelledError,
    InvocationState,
    StepExecutionError,
    StepLimitExceededError,
    StepName,
    StepRecord,
    TurnResult,
)

__all__ = [
    # Runner
    "SupportAgent",
    "GraphDependencies",
    "build_response_graph",
    "TurnInput",
    "TurnResult",
    "PipelineSteps",
    "HANDOFF_MESSAGE",
    # Executor
    "StepGraph",
    "CompiledGraph",
    "StepName",
    "StepRecord",
    "InvocationState",
    "step_ceiling",
    # Budget and branching
    "DEFAULT_MAX_TOOL_CALLS",
    "HandoffPolicy",
    "normalize_max_tool_calls",
    "increment_tool_call_and_check",
    "check_and_mark_tool_limit",
    "decide_after_response",
    "backfill_tool_result_id",
    "assign_missing_tool_call_ids",
    # Errors
    "GraphError",
    "GraphConfigurationError",
    "InvalidRouteError",
    "StepLimitExceededError",
    "StepExecutionError",
    "InvocationCancelledError",
]
