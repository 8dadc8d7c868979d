"""Custom validators for configuration values.

Shared by the Pydantic settings model and the pre-settings bootstrap helpers.
"""

from pathlib import Path


def validate_log_level(value: str) -> str:
    """Validate log level is one of the standard levels.

    Args:
        value: Log level string.

    Returns:
        Uppercased log level.

    Raises:
        ValueError: If log level is not valid.
    """
    valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
    if value.upper() not in valid_levels:
        raise ValueError(f"log_level must be one of {sorted(valid_levels)}, got {value}")
    return value.upper()


def validate_log_format(value: str) -> str:
    """Validate log format is 'json' or 'console'.

    Args:
        value: Log format string.

    Returns:
        Lowercased log format.

    Raises:
        ValueError: If log format is not valid.
    """
    valid_formats = {"json", "console"}
    if value.lower() not in valid_formats:
        raise ValueError(f"log_format must be one of {sorted(valid_formats)}, got {value}")
    return value.lower()


def resolve_path(value: Path | str) -> Path:
    """Resolve a path, anchoring relative paths at the current working directory.

    Args:
        value: Path value (string or Path). ``~`` is expanded.

    Returns:
        Absolute Path.
    """
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = Path.cwd() / path
    return path.resolve()


def parse_weighted_labels(value: str) -> dict[str, float]:
    """Parse a "label:weight, label:weight" list.

    Used for the intent catalogues handed to the NLU prompt. Labels without
    a weight default to 0.5.

    Args:
        value: Comma-separated ``label[:weight]`` entries.

    Returns:
        Mapping of label to weight, in input order.

    Raises:
        ValueError: If a weight is not a number in [0, 1] or a label is empty.
    """
    result: dict[str, float] = {}
    for raw in value.split(","):
        item = raw.strip()
        if not item:
            continue
        label, sep, weight_text = item.partition(":")
        label = label.strip()
        if not label:
            raise ValueError(f"empty label in {value!r}")
        weight = 0.5
        if sep:
            try:
                weight = float(weight_text.strip())
            except ValueError:
                raise ValueError(f"invalid weight for {label!r}: {weight_text!r}") from None
            if not 0.0 <= weight <= 1.0:
                raise ValueError(f"weight for {label!r} must be within [0, 1], got {weight}")
        result[label] = weight
    return result
