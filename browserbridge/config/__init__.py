"""Configuration module for browserbridge."""

from browserbridge.config.loader import load_config
from browserbridge.config.schema import DEFAULT_HOST, DEFAULT_PORT, TOOL_TIMEOUT_MS, BridgeConfig

__all__ = ["BridgeConfig", "DEFAULT_HOST", "DEFAULT_PORT", "TOOL_TIMEOUT_MS", "load_config"]
