"""Semantic event constants for structured logging.

All log events should use these constants rather than magic strings so that
log queries stay stable when messages are reworded.
"""

# Invocation lifecycle
INVOCATION_STARTED = "invocation_started"
INVOCATION_COMPLETED = "invocation_completed"
INVOCATION_FAILED = "invocation_failed"
INVOCATION_CANCELLED = "invocation_cancelled"

# Step executor
GRAPH_COMPILED = "graph_compiled"
STEP_STARTED = "step_started"
STEP_COMPLETED = "step_completed"
STEP_FAILED = "step_failed"
BRANCH_DECISION = "branch_decision"
STEP_LIMIT_EXCEEDED = "step_limit_exceeded"

# Branching and budget
HUMAN_HANDOFF_TRIGGERED = "human_handoff_triggered"
HUMAN_INTERVENTION_REQUIRED = "human_intervention_required"
TOOL_BUDGET_EXHAUSTED = "tool_budget_exhausted"
TOOL_WRAP_UP_NOTICE_ADDED = "tool_wrap_up_notice_added"
TOOL_CALL_ID_BACKFILLED = "tool_call_id_backfilled"
TOOL_CALL_ID_SYNTHESIZED = "tool_call_id_synthesized"

# NLU parser
NLU_PARSED = "nlu_parsed"
NLU_ANALYSIS_STORED = "nlu_analysis_stored"
NLU_CONTENT_TRUNCATED = "nlu_content_truncated"
NLU_RECORDS_CAPPED = "nlu_records_capped"
NLU_PARSER_FAULT = "nlu_parser_fault"
NLU_HIGH_IMPORTANCE = "nlu_high_importance"

# LLM client
MODEL_CALL_STARTED = "model_call_started"
MODEL_CALL_COMPLETED = "model_call_completed"
MODEL_CALL_RETRY = "model_call_retry"
MODEL_CALL_ERROR = "model_call_error"
MODEL_USAGE_COST = "model_usage_cost"

# Tool execution
TOOL_CALL_STARTED = "tool_call_started"
TOOL_CALL_COMPLETED = "tool_call_completed"
TOOL_CALL_FAILED = "tool_call_failed"
TOOL_UNKNOWN = "tool_unknown"

# Conversation store
CONVERSATION_MESSAGE_APPENDED = "conversation_message_appended"
CONVERSATION_CLEARED = "conversation_cleared"
CONVERSATION_EXPIRED = "conversation_expired"
CONVERSATION_SAVE_FAILED = "conversation_save_failed"
