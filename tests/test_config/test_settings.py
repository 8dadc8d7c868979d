"""Tests for configuration settings."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from support_agent.config import AppConfig, Environment, get_environment, get_settings
from support_agent.config.env_loader import load_env_files
from support_agent.config.settings import reset_settings


class TestEnvironmentDetection:
    """Test environment detection."""

    def test_get_environment_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test default environment is development."""
        monkeypatch.delenv("SUPPORT_ENV", raising=False)

        assert get_environment() == Environment.DEVELOPMENT

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("production", Environment.PRODUCTION),
            ("prod", Environment.PRODUCTION),
            ("staging", Environment.STAGING),
            ("stage", Environment.STAGING),
            ("TEST", Environment.TEST),
            ("qa", Environment.DEVELOPMENT),
        ],
    )
    def test_get_environment_aliases(
        self, monkeypatch: pytest.MonkeyPatch, value: str, expected: Environment
    ) -> None:
        """Test environment names and aliases."""
        monkeypatch.setenv("SUPPORT_ENV", value)

        assert get_environment() == expected


class TestAppConfig:
    """Test AppConfig defaults and validation."""

    def test_defaults(self) -> None:
        """Test the default pipeline settings."""
        config = AppConfig()

        assert config.conversation_tool_max_calls == 10
        assert config.conversation_nlu_max_turns == 5
        assert config.conversation_ttl_seconds == 900
        assert config.handoff_sentiment_label == "negative"
        assert config.handoff_confidence_threshold == 0.94
        assert config.importance_confidence_weight == 0.6
        assert config.importance_priority_weight == 0.4
        assert config.nlu_model == "gemini-2.5-flash-lite"
        assert config.response_model == "gemini-2.5-flash"
        assert config.prompt_business_name == "TechHub"
        assert config.pricing_config_path is None
        assert config.invocation_timeout_seconds is None

    def test_environment_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that SUPPORT_ variables override defaults."""
        monkeypatch.setenv("SUPPORT_CONVERSATION_TOOL_MAX_CALLS", "3")
        monkeypatch.setenv("SUPPORT_HANDOFF_CONFIDENCE_THRESHOLD", "0.8")
        monkeypatch.setenv("SUPPORT_LOG_LEVEL", "debug")

        config = AppConfig()

        assert config.conversation_tool_max_calls == 3
        assert config.handoff_confidence_threshold == 0.8
        assert config.log_level == "DEBUG"

    def test_invalid_log_level(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that unknown log levels are rejected."""
        monkeypatch.setenv("SUPPORT_LOG_LEVEL", "LOUD")

        with pytest.raises(ValidationError):
            AppConfig()

    def test_importance_weights_must_sum_to_one(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test the importance weight constraint."""
        monkeypatch.setenv("SUPPORT_IMPORTANCE_CONFIDENCE_WEIGHT", "0.7")

        with pytest.raises(ValidationError, match="must sum to 1.0"):
            AppConfig()

    def test_invalid_intent_catalogue(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that intent priorities must be within [0, 1]."""
        monkeypatch.setenv("SUPPORT_NLU_DEFAULT_INTENTS", "greet:2")

        with pytest.raises(ValidationError):
            AppConfig()

    def test_threshold_range(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that the handoff threshold is a probability."""
        monkeypatch.setenv("SUPPORT_HANDOFF_CONFIDENCE_THRESHOLD", "1.5")

        with pytest.raises(ValidationError):
            AppConfig()

    def test_relative_paths_are_resolved(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        """Test that relative paths are anchored at the working directory."""
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("SUPPORT_PRICING_CONFIG_PATH", "pricing.yaml")
        monkeypatch.setenv("SUPPORT_CONVERSATION_STORE_PATH", "")

        config = AppConfig()

        assert config.pricing_config_path == tmp_path.resolve() / "pricing.yaml"
        assert config.conversation_store_path is None


class TestEnvFiles:
    """Test .env layering."""

    def test_priority_order(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        """Test that .env.local wins over .env and real variables win over both."""
        monkeypatch.delenv("SUPPORT_ENV", raising=False)
        for name in ("SUPPORT_NLU_MODEL", "SUPPORT_RESPONSE_MODEL"):
            monkeypatch.setenv(name, "placeholder")
            monkeypatch.delenv(name)
        monkeypatch.setenv("SUPPORT_PROMPT_BUSINESS_NAME", "FromProcess")

        (tmp_path / ".env").write_text(
            "SUPPORT_NLU_MODEL=from-env\n"
            "SUPPORT_RESPONSE_MODEL=from-env\n"
            "SUPPORT_PROMPT_BUSINESS_NAME=FromFile\n"
        )
        (tmp_path / ".env.local").write_text("SUPPORT_NLU_MODEL=from-local\n")

        loaded = load_env_files(tmp_path)
        config = AppConfig()

        assert loaded == [tmp_path / ".env", tmp_path / ".env.local"]
        assert config.nlu_model == "from-local"
        assert config.response_model == "from-env"
        assert config.prompt_business_name == "FromProcess"

    def test_no_files(self, tmp_path: Path) -> None:
        """Test that a directory without .env files loads nothing."""
        assert load_env_files(tmp_path) == []


class TestSettingsSingleton:
    """Test get_settings caching."""

    def test_get_settings_is_cached(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        """Test that settings are loaded once until reset."""
        monkeypatch.chdir(tmp_path)
        reset_settings()
        try:
            first = get_settings()
            assert get_settings() is first

            reset_settings()
            assert get_settings() is not first
        finally:
            reset_settings()
