"""Unified configuration management for the support agent.

Single source of truth for configuration: environment variables (with
``.env`` layering), defaults, and optional YAML files.
"""

from support_agent.config.env_loader import Environment, get_environment
from support_agent.config.loader import ConfigLoadError
from support_agent.config.pricing_loader import PricingConfigError, load_pricing_config
from support_agent.config.settings import AppConfig, get_settings, load_app_config

__all__ = [
    "AppConfig",
    "get_settings",
    "load_app_config",
    "Environment",
    "get_environment",
    "load_pricing_config",
    "ConfigLoadError",
    "PricingConfigError",
]
