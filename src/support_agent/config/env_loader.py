"""Environment variable file loader with priority-based loading.

Loads ``.env`` files from the project root (the working directory by default)
so that ``SUPPORT_*`` variables can live in files during development.
"""

import os
from enum import Enum
from pathlib import Path

from dotenv import load_dotenv

from support_agent.telemetry import get_logger

log = get_logger(__name__)


class Environment(str, Enum):
    """Application environment types."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TEST = "test"


def get_environment() -> Environment:
    """Detect current environment from the SUPPORT_ENV environment variable.

    Returns:
        Environment enum value.

    Environment variable mapping:
    - "production" or "prod" → Environment.PRODUCTION
    - "staging" or "stage" → Environment.STAGING
    - "test" → Environment.TEST
    - Default → Environment.DEVELOPMENT

    Note: This reads os.environ directly because the environment decides which
    .env files to load, which has to happen before settings exist.
    """
    value = os.getenv("SUPPORT_ENV", "").lower()

    if value in ("production", "prod"):
        return Environment.PRODUCTION
    elif value in ("staging", "stage"):
        return Environment.STAGING
    elif value == "test":
        return Environment.TEST
    else:
        return Environment.DEVELOPMENT


def load_env_files(project_root: Path | None = None) -> list[Path]:
    """Load .env files in priority order.

    Priority order (highest to lowest):
    1. `.env.{environment}.local`
    2. `.env.{environment}`
    3. `.env.local`
    4. `.env`

    Variables already present in the process environment always win.

    Args:
        project_root: Directory holding the .env files. Defaults to the
            current working directory.

    Returns:
        The files that were loaded, lowest priority first.
    """
    if project_root is None:
        project_root = Path.cwd()

    env_name = get_environment().value

    # Highest priority first: load_dotenv(override=False) never replaces a
    # variable that an earlier file (or the real environment) already set.
    candidates = [
        project_root / f".env.{env_name}.local",
        project_root / f".env.{env_name}",
        project_root / ".env.local",
        project_root / ".env",
    ]

    loaded: list[Path] = []
    for env_file in candidates:
        if env_file.is_file():
            load_dotenv(env_file, override=False)
            loaded.append(env_file)
    loaded.reverse()

    if loaded:
        log.info(
            "env_files_loaded",
            environment=env_name,
            files=[str(p.relative_to(project_root)) for p in loaded],
            project_root=str(project_root),
        )
    else:
        log.debug("no_env_files_found", environment=env_name, project_root=str(project_root))
    return loaded
