"""Parser for the delimited NLU response protocol.

The NLU model answers with records separated by ``##``, each record a
parenthesised tuple whose fields are separated by ``<||>``; output ends at
``<|COMPLETE|>``::

    (intent<||>purchase_intent<||>0.92<||>0.8<||>{"source": "explicit"})##
    (entity<||>product<||>iPhone 15 Pro<||>0.95<||>{"entity_position": [8, 21]})##
    (language<||>eng<||>0.99<||>1)##
    (sentiment<||>neutral<||>0.7<||>{"polarity": 0.1})##
    <|COMPLETE|>

Record layouts (metadata is an optional JSON object in the last slot):

    intent     name, confidence, priority, [metadata]
    entity     type, value, confidence, [metadata]
    language   code, confidence, is_primary ("1" = true), [metadata]
    sentiment  label, confidence, [metadata]

Parsing is lenient per record and strict per field: a malformed record is
skipped with a diagnostic in ``parsing_metadata["parsing_errors"]`` and the
rest of the response is still used. Size limits bound the work done on any
input.
"""

import math
from collections.abc import Callable
from typing import Any

import orjson

from support_agent.nlu.types import (
    Entity,
    ImportanceWeights,
    Intent,
    Language,
    NLUAnalysis,
    NLUParserError,
    Sentiment,
)
from support_agent.telemetry import (
    NLU_CONTENT_TRUNCATED,
    NLU_PARSED,
    NLU_PARSER_FAULT,
    NLU_RECORDS_CAPPED,
    get_logger,
)

log = get_logger(__name__)

RECORD_DELIMITER = "##"
TUPLE_DELIMITER = "<||>"
COMPLETION_MARKER = "<|COMPLETE|>"

MAX_CONTENT_BYTES = 128 * 1024
MAX_RECORDS = 500
MAX_TUPLE_BYTES = 8 * 1024
MAX_METADATA_BYTES = 4 * 1024
MAX_ERROR_SNIPPET_BYTES = 200
MAX_TUPLE_FIELDS = 5


class _MalformedRecord(ValueError):
    pass


def _byte_len(text: str) -> int:
    # Text is decoded with surrogateescape, so undecodable bytes round-trip.
    return len(text.encode("utf-8", "surrogateescape"))


def _is_valid_text(text: str) -> bool:
    """True when the text contains no undecodable bytes or lone surrogates."""
    try:
        text.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


def _snippet(text: str) -> str:
    raw = text.strip().encode("utf-8", "surrogateescape")[:MAX_ERROR_SNIPPET_BYTES]
    return raw.decode("utf-8", "replace")


def _decode_capped(content: str | bytes) -> tuple[str, bool]:
    """Cap the input at MAX_CONTENT_BYTES and return it as text.

    Invalid UTF-8 is kept as escaped surrogates so that only the records
    containing it are rejected.

    Returns:
        Tuple of (text, truncated).
    """
    if isinstance(content, bytes):
        raw = content
    elif isinstance(content, str):
        raw = content.encode("utf-8", "surrogatepass")
    else:
        raise TypeError(f"content must be str or bytes, got {type(content).__name__}")

    truncated = len(raw) > MAX_CONTENT_BYTES
    if truncated:
        raw = raw[:MAX_CONTENT_BYTES]
    return raw.decode("utf-8", "surrogateescape"), truncated


def _split_tuple(record: str) -> tuple[str, list[str]]:
    """Split one record into its type and raw fields.

    Args:
        record: A stripped, non-empty record.

    Returns:
        Tuple of (record type, fields) where fields[0] is the raw type field.

    Raises:
        _MalformedRecord: If the record is oversized, not parenthesised, or
            has fewer than two fields.
    """
    if _byte_len(record) > MAX_TUPLE_BYTES:
        raise _MalformedRecord("tuple too large")
    if len(record) < 2 or record[0] != "(" or record[-1] != ")":
        raise _MalformedRecord("invalid tuple parens")
    # The last field keeps any further delimiters (metadata JSON may contain them)
    fields = record[1:-1].split(TUPLE_DELIMITER, MAX_TUPLE_FIELDS - 1)
    if len(fields) < 2:
        raise _MalformedRecord("invalid tuple parts")
    return fields[0].strip(), fields


def _parse_number(text: str, lower: float, upper: float) -> float:
    """Parse a finite decimal within [lower, upper].

    Raises:
        ValueError: If the text is not a number, is NaN/infinite, or out of range.
    """
    text = text.strip()
    if "_" in text or not text.isascii():
        raise ValueError(f"invalid number {text!r}")
    value = float(text)
    if not math.isfinite(value):
        raise ValueError(f"non-finite number {text!r}")
    if value < lower or value > upper:
        raise ValueError(f"{value} outside [{lower}, {upper}]")
    return value


def _parse_metadata(text: str) -> dict[str, Any]:
    """Parse the optional metadata field.

    Returns:
        The decoded JSON object, or {} for an empty field.

    Raises:
        ValueError: If the field is too large or not a JSON object.
    """
    text = text.strip()
    if not text:
        return {}
    if _byte_len(text) > MAX_METADATA_BYTES:
        raise ValueError("metadata too large")
    if not (text.startswith("{") and text.endswith("}")):
        raise ValueError("metadata not json object")
    decoded = orjson.loads(text)
    if not isinstance(decoded, dict):
        raise ValueError("metadata not json object")
    return decoded


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _entity_position(metadata: dict[str, Any]) -> tuple[int, int] | None:
    raw = metadata.get("entity_position")
    if not isinstance(raw, list) or len(raw) != 2:
        return None
    if not all(_is_number(v) and math.isfinite(v) for v in raw):
        return None
    start, end = int(raw[0]), int(raw[1])
    if start < 0 or end < 0 or start > end:
        return None
    return start, end


def _sanitize_language_metadata(metadata: dict[str, Any]) -> None:
    tokens = metadata.get("detected_tokens")
    if _is_number(tokens) and (not math.isfinite(tokens) or tokens < 0):
        del metadata["detected_tokens"]
    if not isinstance(metadata.get("script"), str):
        metadata.pop("script", None)


def _keep_number_in_range(
    metadata: dict[str, Any], key: str, lower: float, upper: float
) -> None:
    value = metadata.get(key)
    if not (_is_number(value) and math.isfinite(value) and lower <= value <= upper):
        metadata.pop(key, None)


def _sanitize_sentiment_metadata(metadata: dict[str, Any]) -> None:
    _keep_number_in_range(metadata, "polarity", -1.0, 1.0)
    _keep_number_in_range(metadata, "subjectivity", 0.0, 1.0)


def _optional_metadata(
    fields: list[str], index: int, record_type: str, analysis: NLUAnalysis
) -> dict[str, Any]:
    if len(fields) <= index:
        return {}
    try:
        return _parse_metadata(fields[index])
    except ValueError:
        analysis.add_error(f"{record_type}: invalid metadata json")
        return {}


def _required_text(value: str) -> str | None:
    value = value.strip()
    if not value or not _is_valid_text(value):
        return None
    return value


def _parse_intent(fields: list[str], analysis: NLUAnalysis) -> None:
    if len(fields) < 4:
        analysis.add_error("intent: insufficient parts")
        return
    name = _required_text(fields[1])
    if name is None:
        analysis.add_error("intent: invalid name utf8")
        return
    try:
        confidence = _parse_number(fields[2], 0.0, 1.0)
    except ValueError:
        analysis.add_error("intent: invalid confidence")
        return
    try:
        priority = _parse_number(fields[3], 0.0, 1.0)
    except ValueError:
        analysis.add_error("intent: invalid priority")
        return
    metadata = _optional_metadata(fields, 4, "intent", analysis)
    analysis.intents.append(Intent(name, confidence, priority, metadata))


def _parse_entity(fields: list[str], analysis: NLUAnalysis) -> None:
    if len(fields) < 4:
        analysis.add_error("entity: insufficient parts")
        return
    entity_type = _required_text(fields[1])
    if entity_type is None:
        analysis.add_error("entity: invalid type utf8")
        return
    value = _required_text(fields[2])
    if value is None:
        analysis.add_error("entity: invalid value utf8")
        return
    try:
        confidence = _parse_number(fields[3], 0.0, 1.0)
    except ValueError:
        analysis.add_error("entity: invalid confidence")
        return
    metadata = _optional_metadata(fields, 4, "entity", analysis)
    analysis.entities.append(
        Entity(
            type=entity_type,
            value=value,
            confidence=confidence,
            position=_entity_position(metadata),
            metadata=metadata,
        )
    )


def _parse_language(fields: list[str], analysis: NLUAnalysis) -> None:
    if len(fields) < 4:
        analysis.add_error("language: insufficient parts")
        return
    code = fields[1].strip().lower()
    if len(code) != 3 or not all("a" <= c <= "z" for c in code):
        analysis.add_error("language: invalid code")
        return
    try:
        confidence = _parse_number(fields[2], 0.0, 1.0)
    except ValueError:
        analysis.add_error("language: invalid confidence")
        return
    is_primary = fields[3].strip() == "1"
    metadata = _optional_metadata(fields, 4, "language", analysis)
    _sanitize_language_metadata(metadata)
    analysis.languages.append(Language(code, confidence, is_primary, metadata))


def _parse_sentiment(fields: list[str], analysis: NLUAnalysis) -> None:
    if len(fields) < 3:
        analysis.add_error("sentiment: insufficient parts")
        return
    label = _required_text(fields[1])
    if label is None:
        analysis.add_error("sentiment: invalid label utf8")
        return
    try:
        confidence = _parse_number(fields[2], 0.0, 1.0)
    except ValueError:
        analysis.add_error("sentiment: invalid confidence")
        return
    metadata = _optional_metadata(fields, 3, "sentiment", analysis)
    _sanitize_sentiment_metadata(metadata)
    # Later sentiment records replace earlier ones
    analysis.sentiment = Sentiment(label, confidence, metadata)


_RECORD_PARSERS: dict[str, Callable[[list[str], NLUAnalysis], None]] = {
    "intent": _parse_intent,
    "entity": _parse_entity,
    "language": _parse_language,
    "sentiment": _parse_sentiment,
}


def _derive_fields(analysis: NLUAnalysis, weights: ImportanceWeights) -> None:
    primary: Intent | None = None
    for intent in analysis.intents:
        if primary is None or intent.confidence > primary.confidence:
            primary = intent
    if primary is not None:
        analysis.primary_intent = primary.name
        analysis.importance_score = (
            weights.confidence * primary.confidence + weights.priority * primary.priority
        )

    flagged = next((lang for lang in analysis.languages if lang.is_primary), None)
    if flagged is not None:
        analysis.primary_language = flagged.code
    else:
        best: Language | None = None
        for lang in analysis.languages:
            if best is None or lang.confidence > best.confidence:
                best = lang
        analysis.primary_language = best.code if best is not None else ""


def _parse(content: str | bytes, weights: ImportanceWeights) -> NLUAnalysis:
    text, truncated = _decode_capped(content)
    analysis = NLUAnalysis()
    if truncated:
        analysis.parsing_metadata["truncated"] = True
        log.warning(NLU_CONTENT_TRUNCATED, max_bytes=MAX_CONTENT_BYTES)

    marker = text.find(COMPLETION_MARKER)
    if marker >= 0:
        text = text[:marker]

    processed = 0
    for raw_record in text.split(RECORD_DELIMITER):
        record = raw_record.strip()
        if not record:
            continue
        if processed >= MAX_RECORDS:
            analysis.parsing_metadata["records_capped"] = True
            log.warning(NLU_RECORDS_CAPPED, max_records=MAX_RECORDS)
            break
        processed += 1

        try:
            record_type, fields = _split_tuple(record)
        except _MalformedRecord:
            analysis.add_error(f"bad_record: {_snippet(record)}")
            continue

        record_parser = _RECORD_PARSERS.get(record_type)
        if record_parser is None:
            analysis.add_error("unknown tuple type")
            continue
        record_parser(fields, analysis)

    _derive_fields(analysis, weights)
    return analysis


def parse_nlu_response(
    content: str | bytes, *, weights: ImportanceWeights | None = None
) -> NLUAnalysis:
    """Parse a delimited NLU model response into an NLUAnalysis.

    Args:
        content: Raw model output. Bytes are decoded as UTF-8; invalid
            sequences only invalidate the records that contain them.
        weights: Importance weights for the primary intent. Defaults to
            0.6 confidence / 0.4 priority.

    Returns:
        The analysis. Empty input yields an empty analysis with a zero
        importance score.

    Raises:
        NLUParserError: On an unexpected internal fault. Malformed records
            never raise.
    """
    weights = weights or ImportanceWeights()
    try:
        analysis = _parse(content, weights)
    except Exception as e:
        log.error(NLU_PARSER_FAULT, error_type=type(e).__name__, exc_info=True)
        raise NLUParserError("nlu parser internal error") from e

    log.debug(
        NLU_PARSED,
        intents=len(analysis.intents),
        entities=len(analysis.entities),
        languages=len(analysis.languages),
        sentiment=analysis.sentiment.label,
        primary_intent=analysis.primary_intent,
        errors=len(analysis.parsing_metadata.get("parsing_errors", [])),
    )
    return analysis
