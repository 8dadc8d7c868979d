"""Application configuration settings.

This module provides the AppConfig class and the settings singleton. Every
field can be set through a ``SUPPORT_``-prefixed environment variable, e.g.
``SUPPORT_CONVERSATION_TOOL_MAX_CALLS=5``.
"""

from pathlib import Path

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from support_agent.config.env_loader import Environment, get_environment, load_env_files
from support_agent.config.validators import (
    parse_weighted_labels,
    resolve_path,
    validate_log_format,
    validate_log_level,
)
from support_agent.telemetry import get_logger

log = get_logger(__name__)

DEFAULT_GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai"


class AppConfig(BaseSettings):
    """Unified application configuration.

    Loads configuration from environment variables (after .env files have
    been applied by ``load_env_files``) and defaults. Validates all values
    using Pydantic.
    """

    model_config = SettingsConfigDict(
        # .env files are loaded manually via env_loader to honour priority order
        env_prefix="SUPPORT_",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    environment: Environment = Field(
        default_factory=get_environment, description="Current environment"
    )
    debug: bool = Field(default=False, description="Debug mode flag")

    # Telemetry
    log_dir: Path | None = Field(
        default=None, description="Directory for JSON log files (None disables file logging)"
    )
    log_level: str = Field(
        default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    log_format: str = Field(default="console", description="Console log format (json or console)")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        return validate_log_level(v)

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Validate log format."""
        return validate_log_format(v)

    @field_validator("log_dir", "conversation_store_path", "pricing_config_path", mode="before")
    @classmethod
    def resolve_paths(cls, v: Path | str | None) -> Path | None:
        """Resolve relative paths to absolute."""
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        return resolve_path(v)

    # LLM client (OpenAI-compatible chat completions endpoint)
    llm_base_url: str = Field(
        default=DEFAULT_GEMINI_BASE_URL, description="Base URL of the chat completions API"
    )
    llm_api_key: str | None = Field(default=None, description="Bearer token for the LLM API")
    llm_timeout_seconds: float = Field(default=60.0, gt=0, description="Per-request timeout")
    llm_max_retries: int = Field(default=2, ge=0, description="Maximum retry attempts")

    # NLU model
    nlu_model: str = Field(default="gemini-2.5-flash-lite", description="NLU model name")
    nlu_max_tokens: int = Field(default=2000, ge=1, description="NLU max output tokens")
    nlu_temperature: float = Field(default=0.1, ge=0, le=2, description="NLU temperature")
    nlu_default_intents: str = Field(
        default=(
            "greet:0.1, purchase_intent:0.8, inquiry_intent:0.7, "
            "support_intent:0.6, complain_intent:0.6"
        ),
        description="Core intent catalogue as 'name:priority' pairs",
    )
    nlu_additional_intents: str = Field(
        default=(
            "complaint:0.5, cancel_order:0.4, ask_price:0.6, "
            "compare_product:0.5, delivery_issue:0.7"
        ),
        description="Extra intent catalogue as 'name:priority' pairs",
    )
    nlu_default_entities: str = Field(
        default="product, quantity, brand, price", description="Core entity types"
    )
    nlu_additional_entities: str = Field(
        default="color, model, spec, budget, warranty, delivery",
        description="Extra entity types",
    )

    @field_validator("nlu_default_intents", "nlu_additional_intents")
    @classmethod
    def validate_intent_catalogue(cls, v: str) -> str:
        """Reject malformed 'name:priority' lists early."""
        parse_weighted_labels(v)
        return v

    # Response model
    response_model: str = Field(default="gemini-2.5-flash", description="Response model name")
    response_max_tokens: int = Field(default=2000, ge=1, description="Response max output tokens")
    response_temperature: float = Field(
        default=0.4, ge=0, le=2, description="Response temperature"
    )

    # Response prompt
    prompt_business_type: str = Field(
        default="electronics store", description="Kind of business the assistant represents"
    )
    prompt_business_name: str = Field(default="TechHub", description="Business display name")

    # Conversation
    conversation_ttl_seconds: int = Field(
        default=900, ge=1, description="Idle time before a stored conversation expires"
    )
    conversation_nlu_max_turns: int = Field(
        default=5, ge=0, description="History messages included in the NLU context"
    )
    conversation_tool_max_calls: int = Field(
        default=10,
        description="Tool rounds allowed per turn (values <= 0 fall back to 10)",
    )
    conversation_store_path: Path | None = Field(
        default=None, description="Directory for the JSONL conversation store used by the CLI"
    )

    # Branching policy
    handoff_sentiment_label: str = Field(
        default="negative", min_length=1, description="Sentiment label that escalates"
    )
    handoff_confidence_threshold: float = Field(
        default=0.94,
        ge=0,
        le=1,
        description="Escalate when sentiment confidence is strictly above this value",
    )

    # Importance scoring
    importance_confidence_weight: float = Field(default=0.6, ge=0, le=1)
    importance_priority_weight: float = Field(default=0.4, ge=0, le=1)
    importance_log_threshold: float = Field(
        default=0.7, ge=0, le=1, description="Importance above which a turn is flagged in logs"
    )

    @model_validator(mode="after")
    def validate_importance_weights(self) -> "AppConfig":
        """Importance weights must sum to 1 so the score stays within [0, 1]."""
        total = self.importance_confidence_weight + self.importance_priority_weight
        if abs(total - 1.0) > 1e-9:
            raise ValueError(f"importance weights must sum to 1.0, got {total}")
        return self

    # Pricing
    pricing_config_path: Path | None = Field(
        default=None, description="Optional YAML file overriding the model pricing table"
    )

    # Invocation
    invocation_timeout_seconds: float | None = Field(
        default=None, gt=0, description="Deadline for one conversation turn"
    )


_settings: AppConfig | None = None


def load_app_config() -> AppConfig:
    """Load and validate application configuration.

    This function:
    1. Loads .env files in priority order (via env_loader)
    2. Creates AppConfig instance (reads from environment variables)
    3. Validates all values using Pydantic

    Returns:
        Validated AppConfig instance.

    Raises:
        ValidationError: If configuration validation fails.
    """
    log.info("loading_app_config", environment=get_environment().value)

    load_env_files()

    try:
        config = AppConfig()
    except Exception as e:
        log.error("app_config_load_failed", error=str(e), error_type=type(e).__name__)
        raise

    log.info(
        "app_config_loaded",
        environment=config.environment.value,
        nlu_model=config.nlu_model,
        response_model=config.response_model,
        tool_max_calls=config.conversation_tool_max_calls,
    )
    return config


def get_settings() -> AppConfig:
    """Get the application settings singleton.

    Returns:
        AppConfig instance (singleton pattern).
    """
    global _settings
    if _settings is None:
        _settings = load_app_config()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next ``get_settings`` call reloads."""
    global _settings
    _settings = None
