"""Tests for YAML loading and the pricing table loader."""

from pathlib import Path

import pytest

from support_agent.config import ConfigLoadError, PricingConfigError, load_pricing_config
from support_agent.config.loader import load_yaml_file
from support_agent.config.validators import parse_weighted_labels


class TestLoadYamlFile:
    """Tests for load_yaml_file."""

    def test_mapping(self, tmp_path: Path) -> None:
        """Test that a mapping is returned as a dict."""
        path = tmp_path / "config.yaml"
        path.write_text("a: 1\nb: [x, y]\n")

        assert load_yaml_file(path) == {"a": 1, "b": ["x", "y"]}

    def test_empty_file(self, tmp_path: Path) -> None:
        """Test that an empty file yields an empty dict."""
        path = tmp_path / "empty.yaml"
        path.write_text("")

        assert load_yaml_file(path) == {}

    def test_missing_file(self, tmp_path: Path) -> None:
        """Test that a missing file raises the configured error class."""
        with pytest.raises(ConfigLoadError, match="not found"):
            load_yaml_file(tmp_path / "missing.yaml")

    def test_syntax_error(self, tmp_path: Path) -> None:
        """Test that invalid YAML raises."""
        path = tmp_path / "bad.yaml"
        path.write_text("a: [1, 2\n")

        with pytest.raises(ConfigLoadError, match="Failed to parse"):
            load_yaml_file(path)

    def test_top_level_must_be_mapping(self, tmp_path: Path) -> None:
        """Test that a list document is rejected."""
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")

        with pytest.raises(ConfigLoadError, match="Expected a mapping"):
            load_yaml_file(path)


class TestLoadPricingConfig:
    """Tests for load_pricing_config."""

    def test_valid_file(self, tmp_path: Path) -> None:
        """Test that rates are parsed per model."""
        path = tmp_path / "pricing.yaml"
        path.write_text(
            "currency: USD\n"
            "models:\n"
            "  gemini-2.5-flash:\n"
            "    input_per_million: 0.30\n"
            "    output_per_million: 2.50\n"
        )

        config = load_pricing_config(path)

        assert config.currency == "USD"
        assert config.models["gemini-2.5-flash"].input_per_million == pytest.approx(0.30)
        assert config.models["gemini-2.5-flash"].output_per_million == pytest.approx(2.50)

    def test_missing_file(self, tmp_path: Path) -> None:
        """Test that a missing pricing file raises PricingConfigError."""
        with pytest.raises(PricingConfigError, match="not found"):
            load_pricing_config(tmp_path / "missing.yaml")

    def test_negative_rate(self, tmp_path: Path) -> None:
        """Test that negative rates fail validation with the field path."""
        path = tmp_path / "pricing.yaml"
        path.write_text(
            "models:\n  m:\n    input_per_million: -1\n    output_per_million: 1\n"
        )

        with pytest.raises(PricingConfigError, match="models -> m -> input_per_million"):
            load_pricing_config(path)

    def test_empty_file(self, tmp_path: Path) -> None:
        """Test that an empty file is an empty table."""
        path = tmp_path / "pricing.yaml"
        path.write_text("")

        assert load_pricing_config(path).models == {}

    def test_is_config_load_error(self) -> None:
        """Test the exception hierarchy."""
        assert issubclass(PricingConfigError, ConfigLoadError)


class TestParseWeightedLabels:
    """Tests for the intent catalogue parser."""

    def test_labels_with_weights(self) -> None:
        """Test label:weight pairs and the 0.5 default."""
        assert parse_weighted_labels("greet:0.1, ask_price , refund:1") == {
            "greet": 0.1,
            "ask_price": 0.5,
            "refund": 1.0,
        }

    def test_empty(self) -> None:
        """Test that an empty catalogue is allowed."""
        assert parse_weighted_labels("") == {}

    @pytest.mark.parametrize("value", ["greet:high", "greet:1.5", ":0.5"])
    def test_invalid(self, value: str) -> None:
        """Test malformed entries."""
        with pytest.raises(ValueError):
            parse_weighted_labels(value)
