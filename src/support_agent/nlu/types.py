"""Structured NLU analysis types.

The parser fills these from the delimited text the NLU model emits. All
numeric fields are already range-checked when an instance exists.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


class NLUParserError(Exception):
    """Raised when the parser hits an unexpected internal fault.

    Malformed records never raise; they are recorded as diagnostics.
    """

    pass


@dataclass(frozen=True)
class ImportanceWeights:
    """Weights for the importance score of the primary intent."""

    confidence: float = 0.6
    priority: float = 0.4


@dataclass
class Intent:
    name: str
    confidence: float
    priority: float
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class Entity:
    type: str
    value: str
    confidence: float
    position: tuple[int, int] | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class Language:
    code: str
    confidence: float
    is_primary: bool
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class Sentiment:
    label: str = ""
    confidence: float = 0.0
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class NLUAnalysis:
    """Result of parsing one NLU model response.

    Attributes:
        intents: Intents in input order.
        entities: Entities in input order.
        languages: Detected languages in input order.
        sentiment: Last valid sentiment record (empty label if none).
        primary_intent: Name of the first highest-confidence intent, "" if none.
        primary_language: Code of the first primary language, else of the
            first highest-confidence language, "" if none.
        importance_score: Weighted confidence/priority of the primary intent.
        metadata: Parser identification.
        parsing_metadata: Diagnostics: ``truncated``, ``records_capped`` and
            ``parsing_errors`` (list of messages), each present only when set.
        timestamp: UTC time the analysis was produced.
    """

    intents: list[Intent] = field(default_factory=list)
    entities: list[Entity] = field(default_factory=list)
    languages: list[Language] = field(default_factory=list)
    sentiment: Sentiment = field(default_factory=Sentiment)
    primary_intent: str = ""
    primary_language: str = ""
    importance_score: float = 0.0
    metadata: dict[str, Any] = field(default_factory=lambda: {"parser": "lite"})
    parsing_metadata: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def parsing_errors(self) -> list[str]:
        """Per-record diagnostic messages (empty when every record parsed)."""
        return list(self.parsing_metadata.get("parsing_errors", []))

    def add_error(self, message: str) -> None:
        self.parsing_metadata.setdefault("parsing_errors", []).append(message)

    def summary(self) -> dict[str, Any]:
        """Compact view used in log events."""
        return {
            "primary_intent": self.primary_intent,
            "primary_language": self.primary_language,
            "importance_score": round(self.importance_score, 4),
            "sentiment": {"label": self.sentiment.label, "confidence": self.sentiment.confidence},
            "intents": [{"name": i.name, "confidence": i.confidence} for i in self.intents],
            "entities": [{"type": e.type, "value": e.value} for e in self.entities],
        }
