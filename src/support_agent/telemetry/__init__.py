"""Telemetry module for structured logging and trace correlation.

This module provides:
- TraceContext for per-invocation correlation
- Structured logging via structlog
- Semantic event constants
"""

from support_agent.telemetry.events import (
    BRANCH_DECISION,
    CONVERSATION_CLEARED,
    CONVERSATION_EXPIRED,
    CONVERSATION_MESSAGE_APPENDED,
    CONVERSATION_SAVE_FAILED,
    GRAPH_COMPILED,
    HUMAN_HANDOFF_TRIGGERED,
    HUMAN_INTERVENTION_REQUIRED,
    INVOCATION_CANCELLED,
    INVOCATION_COMPLETED,
    INVOCATION_FAILED,
    INVOCATION_STARTED,
    MODEL_CALL_COMPLETED,
    MODEL_CALL_ERROR,
    MODEL_CALL_RETRY,
    MODEL_CALL_STARTED,
    MODEL_USAGE_COST,
    NLU_ANALYSIS_STORED,
    NLU_CONTENT_TRUNCATED,
    NLU_HIGH_IMPORTANCE,
    NLU_PARSED,
    NLU_PARSER_FAULT,
    NLU_RECORDS_CAPPED,
    STEP_COMPLETED,
    STEP_FAILED,
    STEP_LIMIT_EXCEEDED,
    STEP_STARTED,
    TOOL_BUDGET_EXHAUSTED,
    TOOL_CALL_COMPLETED,
    TOOL_CALL_FAILED,
    TOOL_CALL_ID_BACKFILLED,
    TOOL_CALL_ID_SYNTHESIZED,
    TOOL_CALL_STARTED,
    TOOL_UNKNOWN,
    TOOL_WRAP_UP_NOTICE_ADDED,
)
from support_agent.telemetry.logger import configure_logging, get_logger
from support_agent.telemetry.trace import TraceContext

__all__ = [
    "TraceContext",
    "get_logger",
    "configure_logging",
    # Event constants
    "INVOCATION_STARTED",
    "INVOCATION_COMPLETED",
    "INVOCATION_FAILED",
    "INVOCATION_CANCELLED",
    "GRAPH_COMPILED",
    "STEP_STARTED",
    "STEP_COMPLETED",
    "STEP_FAILED",
    "BRANCH_DECISION",
    "STEP_LIMIT_EXCEEDED",
    "HUMAN_HANDOFF_TRIGGERED",
    "HUMAN_INTERVENTION_REQUIRED",
    "TOOL_BUDGET_EXHAUSTED",
    "TOOL_WRAP_UP_NOTICE_ADDED",
    "TOOL_CALL_ID_BACKFILLED",
    "TOOL_CALL_ID_SYNTHESIZED",
    "NLU_PARSED",
    "NLU_ANALYSIS_STORED",
    "NLU_CONTENT_TRUNCATED",
    "NLU_RECORDS_CAPPED",
    "NLU_PARSER_FAULT",
    "NLU_HIGH_IMPORTANCE",
    "MODEL_CALL_STARTED",
    "MODEL_CALL_COMPLETED",
    "MODEL_CALL_RETRY",
    "MODEL_CALL_ERROR",
    "MODEL_USAGE_COST",
    "TOOL_CALL_STARTED",
    "TOOL_CALL_COMPLETED",
    "TOOL_CALL_FAILED",
    "TOOL_UNKNOWN",
    "CONVERSATION_MESSAGE_APPENDED",
    "CONVERSATION_CLEARED",
    "CONVERSATION_EXPIRED",
    "CONVERSATION_SAVE_FAILED",
]
