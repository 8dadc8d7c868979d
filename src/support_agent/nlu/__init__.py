"""NLU analysis types and the delimited-response parser."""

from support_agent.nlu.parser import (
    COMPLETION_MARKER,
    MAX_CONTENT_BYTES,
    MAX_RECORDS,
    RECORD_DELIMITER,
    TUPLE_DELIMITER,
    parse_nlu_response,
)
from support_agent.nlu.types import (
    Entity,
    ImportanceWeights,
    Intent,
    Language,
    NLUAnalysis,
    NLUParserError,
    Sentiment,
)

__all__ = [
    "parse_nlu_response",
    "NLUAnalysis",
    "Intent",
    "Entity",
    "Language",
    "Sentiment",
    "ImportanceWeights",
    "NLUParserError",
    "RECORD_DELIMITER",
    "TUPLE_DELIMITER",
    "COMPLETION_MARKER",
    "MAX_CONTENT_BYTES",
    "MAX_RECORDS",
]
