"""Utility functions for browserbridge."""

from browserbridge.utils.exceptions import (
    AuthenticationError,
    BridgeError,
    ChannelClosedError,
    ErrorCategory,
    FrameLengthError,
    PayloadDecodeError,
    PortBindError,
    SessionNotFoundError,
    TabGroupInitError,
    UnknownMessageError,
    classify_exception,
    classify_http_status,
    sanitize_error_message,
)

__all__ = [
    "AuthenticationError",
    "BridgeError",
    "ChannelClosedError",
    "ErrorCategory",
    "FrameLengthError",
    "PayloadDecodeError",
    "PortBindError",
    "SessionNotFoundError",
    "TabGroupInitError",
    "UnknownMessageError",
    "classify_exception",
    "classify_http_status",
    "sanitize_error_message",
]
