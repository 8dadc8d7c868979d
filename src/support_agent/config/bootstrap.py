"""Bootstrap configuration helpers (pre-settings).

Logging has to be configured before the Pydantic settings singleton can be
imported, because settings loading itself logs. These helpers read the few
logging knobs straight from the environment.

Constraints:
- Keep this module dependency-light (no telemetry imports) to avoid circular imports.
- Validate values with the same validators the settings model uses.
"""

from __future__ import annotations

import os
from pathlib import Path

from support_agent.config.validators import (
    resolve_path,
    validate_log_format,
    validate_log_level,
)

ENV_PREFIX = "SUPPORT_"


def get_bootstrap_log_level(default: str = "INFO") -> str:
    """Get logging level from environment without importing settings.

    Args:
        default: Default log level if not set or invalid.

    Returns:
        Uppercased, validated log level string.
    """
    value = os.getenv(f"{ENV_PREFIX}LOG_LEVEL", default)
    try:
        return validate_log_level(value)
    except ValueError:
        return validate_log_level(default)


def get_bootstrap_log_format(default: str = "console") -> str:
    """Get console log format from environment without importing settings.

    Args:
        default: Format to use if not set or invalid.

    Returns:
        "json" or "console".
    """
    value = os.getenv(f"{ENV_PREFIX}LOG_FORMAT", default)
    try:
        return validate_log_format(value)
    except ValueError:
        return validate_log_format(default)


def get_bootstrap_log_dir() -> Path | None:
    """Get the JSON log directory, or None when file logging is off.

    File logging is enabled by setting ``SUPPORT_LOG_DIR``.
    """
    value = os.getenv(f"{ENV_PREFIX}LOG_DIR", "").strip()
    if not value:
        return None
    return resolve_path(value)
