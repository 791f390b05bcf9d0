"""
Exception hierarchy and error handling utilities for browserbridge.

Provides:
- Custom exception classes with error codes
- Error categorization (recoverable, retryable, fatal)
- Safe error message formatting (no token leak into logs)
- HTTP status mapping for the gateway
"""

from __future__ import annotations

import asyncio
import json
import re
from enum import Enum
from typing import Any


class ErrorCategory(Enum):
    """Error categories for classification."""
    RECOVERABLE = "recoverable"
    RETRYABLE = "retryable"
    FATAL = "fatal"
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    PERMISSION = "permission"
    TIMEOUT = "timeout"


class BridgeError(Exception):
    """Base exception for all browserbridge errors."""

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        category: ErrorCategory = ErrorCategory.FATAL,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.code,
            "message": self.message,
            "category": self.category.value,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class FrameLengthError(BridgeError):
    """Length prefix outside (0, max]; the stdio stream is desynchronized."""

    def __init__(self, length: int, max_size: int, decoded: list[Any] | None = None):
        super().__init__(
            f"Invalid message length: {length}",
            code="FRAME_LENGTH_INVALID",
            category=ErrorCategory.FATAL,
            details={"length": length, "max_size": max_size},
        )
        self.length = length
        # Frames completed earlier in the same chunk, before the bad prefix.
        self.decoded = decoded or []


class PayloadDecodeError(BridgeError):
    """A complete frame whose payload is not a JSON object."""

    def __init__(self, message: str, size: int):
        super().__init__(
            f"Failed to parse message: {message}",
            code="PAYLOAD_DECODE_ERROR",
            category=ErrorCategory.VALIDATION,
            details={"size": size},
        )


class UnknownMessageError(BridgeError):
    """Peer message with a tag outside the known vocabulary."""

    def __init__(self, message_type: str):
        super().__init__(
            f"Unknown message type: {message_type}",
            code="UNKNOWN_MESSAGE_TYPE",
            category=ErrorCategory.VALIDATION,
            details={"type": message_type},
        )
        self.message_type = message_type


class ChannelClosedError(BridgeError):
    """Write attempted on a closed peer channel."""

    def __init__(self, message: str = "peer channel is closed"):
        super().__init__(message, code="CHANNEL_CLOSED", category=ErrorCategory.FATAL)


class TabGroupInitError(BridgeError):
    """The shared tab group could not be bootstrapped."""

    def __init__(self, message: str = "Failed to initialize browser tab group. Please ensure the Chrome extension is active."):
        super().__init__(message, code="TAB_GROUP_INIT_FAILED", category=ErrorCategory.RETRYABLE)


class SessionNotFoundError(BridgeError):
    """Request referenced a session id that is not registered."""

    def __init__(self, session_id: str):
        super().__init__(
            f"session not found: {session_id}",
            code="SESSION_NOT_FOUND",
            category=ErrorCategory.NOT_FOUND,
            details={"session_id": session_id},
        )


class AuthenticationError(BridgeError):
    """Missing or wrong bearer token."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message, code="UNAUTHORIZED", category=ErrorCategory.PERMISSION)


class PortBindError(BridgeError):
    """The configured HTTP port could not be bound. There is no fallback port."""

    def __init__(self, host: str, port: int, reason: str):
        super().__init__(
            f"Failed to bind to {host}:{port}: {reason}",
            code="PORT_UNAVAILABLE",
            category=ErrorCategory.FATAL,
            details={"host": host, "port": port},
        )
        self.host = host
        self.port = port


_SENSITIVE_PATTERNS = [
    re.compile(r"(api[_-]?key|token|secret|password|auth)[=:]\s*['\"]?([^\s'\"]+)['\"]?", re.IGNORECASE),
    re.compile(r"bearer\s+[a-zA-Z0-9\-._~+/]+=*", re.IGNORECASE),
    re.compile(r"[a-zA-Z0-9]{32,}"),
]


def sanitize_error_message(message: str, replacement: str = "[REDACTED]") -> str:
    """Remove sensitive information from error messages."""
    sanitized = message
    for pattern in _SENSITIVE_PATTERNS:
        sanitized = pattern.sub(replacement, sanitized)
    return sanitized


def classify_exception(exc: Exception) -> tuple[str, ErrorCategory, bool]:
    """
    Classify an exception and return (error_code, category, should_retry).

    Returns:
        Tuple of (error_code, category, should_retry)
    """
    if isinstance(exc, BridgeError):
        return exc.code, exc.category, exc.category == ErrorCategory.RETRYABLE

    if isinstance(exc, asyncio.TimeoutError):
        return "TIMEOUT", ErrorCategory.TIMEOUT, True

    if isinstance(exc, (BrokenPipeError, ConnectionResetError)):
        return "CHANNEL_CLOSED", ErrorCategory.FATAL, False

    if isinstance(exc, ConnectionError):
        return "CONNECTION_ERROR", ErrorCategory.RETRYABLE, True

    if isinstance(exc, json.JSONDecodeError):
        return "JSON_PARSE_ERROR", ErrorCategory.VALIDATION, False

    if isinstance(exc, (ValueError, TypeError)):
        return "INVALID_VALUE", ErrorCategory.VALIDATION, False

    if isinstance(exc, KeyError):
        return "MISSING_KEY", ErrorCategory.VALIDATION, False

    exc_str = str(exc).lower()
    if "timeout" in exc_str or "timed out" in exc_str:
        return "TIMEOUT", ErrorCategory.TIMEOUT, True

    return "INTERNAL_ERROR", ErrorCategory.FATAL, False


def classify_http_status(exc: Exception) -> int:
    """Map exception to appropriate HTTP status code."""
    _, category, _ = classify_exception(exc)
    category_to_status = {
        ErrorCategory.VALIDATION: 400,
        ErrorCategory.NOT_FOUND: 404,
        ErrorCategory.PERMISSION: 401,
        ErrorCategory.TIMEOUT: 504,
        ErrorCategory.RETRYABLE: 503,
    }
    return category_to_status.get(category, 500)
