"""System prompts for the NLU and response models.

The NLU prompt teaches the delimited record protocol consumed by
``support_agent.nlu.parser``; its placeholders are replaced literally so the
JSON examples in the template keep their braces. The response prompt is a
plain ``str.format`` template.
"""

from dataclasses import dataclass

from support_agent.config.settings import AppConfig
from support_agent.nlu.parser import COMPLETION_MARKER, RECORD_DELIMITER, TUPLE_DELIMITER
from support_agent.nlu.types import NLUAnalysis
from support_agent.tools.catalog import GET_PRODUCT_DETAILS, SEARCH_PRODUCT


@dataclass(frozen=True)
class NLUPromptConfig:
    """Intent and entity catalogues offered to the NLU model."""

    default_intents: str
    additional_intents: str
    default_entities: str
    additional_entities: str

    @classmethod
    def from_settings(cls, settings: AppConfig) -> "NLUPromptConfig":
        return cls(
            default_intents=settings.nlu_default_intents,
            additional_intents=settings.nlu_additional_intents,
            default_entities=settings.nlu_default_entities,
            additional_entities=settings.nlu_additional_entities,
        )


@dataclass(frozen=True)
class ResponsePromptConfig:
    """Business identity used by the response model."""

    business_type: str = "electronics store"
    business_name: str = "TechHub"

    @classmethod
    def from_settings(cls, settings: AppConfig) -> "ResponsePromptConfig":
        return cls(
            business_type=settings.prompt_business_type,
            business_name=settings.prompt_business_name,
        )


# ============================================================================
# NLU System Prompt
# ============================================================================

NLU_SYSTEM_PROMPT = """You are a natural language understanding engine for a customer support assistant.
Analyze ONLY the message inside <current_message_to_analyze>. Use <conversation_context> to resolve
references such as "it" or "the cheaper one", but never analyze earlier messages.

**Output format:**
Emit one record per finding. Wrap every record in parentheses, separate its fields with {TD},
separate records with {RD}, and finish with {CD}. Output nothing else.

Record types:
(intent{TD}<name>{TD}<confidence 0-1>{TD}<priority 0-1>{TD}<optional JSON metadata>)
(entity{TD}<type>{TD}<value>{TD}<confidence 0-1>{TD}<optional JSON metadata>)
(language{TD}<ISO 639-3 code>{TD}<confidence 0-1>{TD}<1 if primary else 0>{TD}<optional JSON metadata>)
(sentiment{TD}<positive|neutral|negative>{TD}<confidence 0-1>{TD}<optional JSON metadata>)

**Intents** (name:priority). Prefer the core list and use the priority shown:
- Core: {default_intent}
- Additional: {additional_intent}

**Entities.** Prefer these types:
- Core: {default_entity}
- Additional: {additional_entity}
For entities, metadata may carry the character span of the value as
{"entity_position": [start, end]}.

**Language.** Use three-letter lowercase codes (eng, tha, ...). Mark exactly one language as primary.

**Sentiment.** Emit exactly one sentiment record. Metadata may carry
{"polarity": -1..1, "subjectivity": 0..1}.

**Example:**
(intent{TD}inquiry_intent{TD}0.9{TD}0.7){RD}(entity{TD}product{TD}laptop{TD}0.95{TD}{"entity_position": [18, 24]}){RD}(language{TD}eng{TD}0.99{TD}1){RD}(sentiment{TD}neutral{TD}0.8{TD}{"polarity": 0.1, "subjectivity": 0.3}){CD}
"""


def render_nlu_system(config: NLUPromptConfig) -> str:
    """Fill the NLU prompt's protocol delimiters and catalogues."""
    replacements = {
        "{TD}": TUPLE_DELIMITER,
        "{RD}": RECORD_DELIMITER,
        "{CD}": COMPLETION_MARKER,
        "{default_intent}": config.default_intents,
        "{additional_intent}": config.additional_intents,
        "{default_entity}": config.default_entities,
        "{additional_entity}": config.additional_entities,
    }
    content = NLU_SYSTEM_PROMPT
    for token, value in replacements.items():
        content = content.replace(token, value)
    return content


# ============================================================================
# Response System Prompt
# ============================================================================

RESPONSE_SYSTEM_PROMPT = """You are the customer support assistant of {business_name} ({business_type}).
Reply in the language with ISO 639-3 code "{primary_language}".

**Tools:**
- {search_tool}: find products by keyword. Call it whenever the customer mentions a product.
- {details_tool}: get the full specification of one product id returned by {search_tool}.
Never invent products, prices or stock levels; only state what the tools returned.

**Analysis of the customer's latest message:**
- Primary intent: {primary_intent}
- Sentiment: {sentiment_label} ({sentiment_confidence:.2f})
- Entities: {entities}

Be concise and friendly. If the customer's need is unclear, ask one clarifying question.
"""

_LANGUAGE_ALIASES = {"th": "tha", "en": "eng"}


def normalize_language(code: str) -> str:
    """Map an NLU language code to the three-letter form used in the prompt."""
    code = code.strip().lower()
    if not code:
        return "eng"
    return _LANGUAGE_ALIASES.get(code, code)


def render_response_system(config: ResponsePromptConfig, analysis: NLUAnalysis) -> str:
    """Render the response prompt for one turn.

    Args:
        config: Business identity.
        analysis: NLU analysis of the customer's latest message.

    Returns:
        System prompt text.
    """
    entities = ", ".join(f"{e.type}={e.value}" for e in analysis.entities) or "none"
    return RESPONSE_SYSTEM_PROMPT.format(
        business_name=config.business_name,
        business_type=config.business_type,
        primary_language=normalize_language(analysis.primary_language),
        search_tool=SEARCH_PRODUCT,
        details_tool=GET_PRODUCT_DETAILS,
        primary_intent=analysis.primary_intent or "unknown",
        sentiment_label=analysis.sentiment.label or "unknown",
        sentiment_confidence=analysis.sentiment.confidence,
        entities=entities,
    )
