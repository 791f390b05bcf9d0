"""Bearer-token and Origin policy for the HTTP gateway."""

from __future__ import annotations

import hmac
import re
from typing import Any

from browserbridge.config.schema import BridgeConfig

AUTH_REALM = 'Bearer realm="MCP"'
AUTH_ERROR_CODE = -32001

# Origins accepted when no explicit list is configured.
LOOPBACK_ORIGIN_REGEX = r"^https?://(localhost|127\.0\.0\.1|\[::1\])(:\d+)?$"
_LOOPBACK_ORIGIN = re.compile(LOOPBACK_ORIGIN_REGEX, re.IGNORECASE)

CORS_METHODS = ["GET", "POST", "DELETE", "OPTIONS"]
CORS_HEADERS = ["Content-Type", "Accept", "Authorization", "Mcp-Session-Id", "Mcp-Protocol-Version"]
CORS_EXPOSE_HEADERS = ["Mcp-Session-Id", "WWW-Authenticate"]

_BEARER = re.compile(r"^Bearer\s+", re.IGNORECASE)


def extract_bearer_token(header: str | None) -> str:
    """Token part of an ``Authorization: Bearer ...`` header; empty when absent."""
    if not header:
        return ""
    return _BEARER.sub("", header, count=1).strip()


class AccessPolicy:
    """Decides which requests may reach the MCP endpoint."""

    def __init__(self, *, auth_token: str = "", cors_origins: list[str] | None = None):
        self.auth_token = auth_token
        self.cors_origins = list(cors_origins or [])

    @classmethod
    def from_config(cls, config: BridgeConfig) -> AccessPolicy:
        return cls(auth_token=config.auth_token, cors_origins=config.cors_origins)

    @property
    def auth_enabled(self) -> bool:
        return bool(self.auth_token)

    def is_authorized(self, authorization: str | None) -> bool:
        if not self.auth_enabled:
            return True
        provided = extract_bearer_token(authorization)
        if not provided:
            return False
        return hmac.compare_digest(provided.encode("utf-8"), self.auth_token.encode("utf-8"))

    def is_origin_allowed(self, origin: str | None) -> bool:
        """Requests without an Origin header are not browser cross-origin requests and pass."""
        if not origin:
            return True
        if self.cors_origins:
            return "*" in self.cors_origins or origin in self.cors_origins
        return bool(_LOOPBACK_ORIGIN.match(origin))

    def cors_options(self) -> dict[str, Any]:
        """Keyword arguments for Starlette's CORSMiddleware matching this policy."""
        options: dict[str, Any] = {
            "allow_credentials": True,
            "allow_methods": CORS_METHODS,
            "allow_headers": CORS_HEADERS,
            "expose_headers": CORS_EXPOSE_HEADERS,
        }
        if self.cors_origins:
            options["allow_origins"] = self.cors_origins
        else:
            options["allow_origin_regex"] = LOOPBACK_ORIGIN_REGEX
        return options
