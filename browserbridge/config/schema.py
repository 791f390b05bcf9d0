"""Configuration schema using Pydantic.

Resolved once at process start (CLI flags over ``MCP_*`` environment over
defaults) and frozen afterwards.
"""

from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 3456
TOOL_TIMEOUT_MS = 60_000


class BridgeConfig(BaseSettings):
    """Root configuration for browserbridge."""

    model_config = SettingsConfigDict(env_prefix="MCP_", extra="ignore", frozen=True)

    host: str = DEFAULT_HOST
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535)
    # Empty disables bearer auth.
    auth_token: str = ""
    # Empty means loopback origins only.
    cors_origins: Annotated[list[str], NoDecode] = Field(default_factory=list)
    tool_timeout_ms: int = Field(default=TOOL_TIMEOUT_MS, gt=0)
    log_level: str = "INFO"
    log_file: bool = True

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _split_origins(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            value = value.split(",")
        return [str(origin).strip() for origin in value if str(origin).strip()]

    @field_validator("auth_token", mode="before")
    @classmethod
    def _strip_token(cls, value):
        return (value or "").strip()

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return (value or "INFO").strip().upper()

    @property
    def auth_enabled(self) -> bool:
        return bool(self.auth_token)

    @property
    def endpoint_url(self) -> str:
        """URL MCP clients should be pointed at."""
        host = "localhost" if self.host in ("127.0.0.1", "0.0.0.0", "::1", "::") else self.host
        return f"http://{host}:{self.port}/mcp"
