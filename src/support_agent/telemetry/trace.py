"""Trace context for correlating the log events of one invocation."""

import uuid
from dataclasses import dataclass


@dataclass(frozen=True)
class TraceContext:
    """Immutable correlation identifiers for one conversation turn.

    Attributes:
        trace_id: Unique identifier for the invocation (UUID string).
        conversation_id: Conversation the invocation belongs to.
        parent_span_id: Span of the enclosing operation, if any.
    """

    trace_id: str
    conversation_id: str = ""
    parent_span_id: str | None = None

    @classmethod
    def new_trace(cls, conversation_id: str = "") -> "TraceContext":
        """Start a new trace for a conversation turn.

        Args:
            conversation_id: Conversation identifier to carry on every span.

        Returns:
            A new TraceContext with a generated trace_id and no parent span.
        """
        return cls(trace_id=str(uuid.uuid4()), conversation_id=conversation_id)

    def new_span(self) -> tuple["TraceContext", str]:
        """Create a child span within this trace.

        Returns:
            Tuple of (child context whose parent is the new span, new span_id).
        """
        span_id = uuid.uuid4().hex[:16]
        child = TraceContext(
            trace_id=self.trace_id,
            conversation_id=self.conversation_id,
            parent_span_id=span_id,
        )
        return child, span_id
