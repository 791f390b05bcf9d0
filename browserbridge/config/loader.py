"""Configuration loading utilities."""

from typing import Any

from pydantic import ValidationError

from browserbridge.config.schema import BridgeConfig


def load_config(**overrides: Any) -> BridgeConfig:
    """
    Build the process configuration.

    Args:
        **overrides: Values from the command line. ``None`` means "not given"
            and falls through to the ``MCP_*`` environment, then defaults.

    Returns:
        Frozen configuration object.
    """
    given = {key: value for key, value in overrides.items() if value is not None}
    try:
        return BridgeConfig(**given)
    except ValidationError as e:
        raise ValueError(f"Invalid configuration: {e}") from e
