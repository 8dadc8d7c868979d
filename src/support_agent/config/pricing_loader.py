"""Load the model pricing table from YAML.

The file maps model names to per-million-token rates::

    currency: USD
    models:
      gemini-2.5-flash:
        input_per_million: 0.30
        output_per_million: 2.50

Models listed in the file replace or extend the built-in defaults.
"""

from pathlib import Path

from pydantic import ValidationError

from support_agent.config.loader import ConfigLoadError, load_yaml_file
from support_agent.llm_client.models import PricingConfig
from support_agent.telemetry import get_logger

log = get_logger(__name__)


class PricingConfigError(ConfigLoadError):
    """Raised when the pricing file cannot be loaded or is invalid."""

    pass


def load_pricing_config(config_path: Path) -> PricingConfig:
    """Load and validate a pricing table.

    Args:
        config_path: Path to the pricing YAML file.

    Returns:
        Validated PricingConfig (an empty file yields an empty table).

    Raises:
        PricingConfigError: If the file is missing, unparsable, or fails validation.
    """
    config_path = Path(config_path)
    if not config_path.is_file():
        raise PricingConfigError(f"Pricing config file not found: {config_path}")

    content = load_yaml_file(config_path, error_class=PricingConfigError)
    if not content:
        log.warning("pricing_config_empty", config_path=str(config_path))
        return PricingConfig()

    try:
        config = PricingConfig.model_validate(content)
    except ValidationError as e:
        details = "\n".join(
            f"{' -> '.join(str(loc) for loc in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise PricingConfigError(f"Pricing configuration validation failed:\n{details}") from None

    log.info(
        "pricing_config_loaded",
        config_path=str(config_path),
        models=sorted(config.models),
        currency=config.currency,
    )
    return config
