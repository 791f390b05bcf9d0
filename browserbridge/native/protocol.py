"""Peer message vocabulary for the extension <-> host stdio protocol.

Direction (host = this process, peer = browser extension):
- peer sends: pong, status_response, tool_response, mcp_connected, mcp_disconnected,
  ping, get_status, get_mcp_endpoint
- host sends: ping, pong, get_status, status_response, tool_request,
  mcp_connected, mcp_disconnected, mcp_endpoint
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar

from browserbridge.utils.exceptions import UnknownMessageError


def safe_dict(value: Any) -> dict[str, Any]:
    """Return the value when dict-like, otherwise an empty dict."""
    return value if isinstance(value, dict) else {}


@dataclass(frozen=True, slots=True)
class PeerMessage:
    """Base for every tagged message on the stdio channel."""

    type: ClassVar[str] = ""

    def to_wire(self) -> dict[str, Any]:
        return {"type": self.type}

    @classmethod
    def from_wire(cls, obj: dict[str, Any]) -> PeerMessage:
        return cls()


@dataclass(frozen=True, slots=True)
class Ping(PeerMessage):
    type: ClassVar[str] = "ping"


@dataclass(frozen=True, slots=True)
class Pong(PeerMessage):
    type: ClassVar[str] = "pong"

    timestamp: int | None = None

    def to_wire(self) -> dict[str, Any]:
        out: dict[str, Any] = {"type": self.type}
        if self.timestamp is not None:
            out["timestamp"] = self.timestamp
        return out

    @classmethod
    def from_wire(cls, obj: dict[str, Any]) -> Pong:
        ts = obj.get("timestamp")
        return cls(timestamp=int(ts) if isinstance(ts, (int, float)) else None)


@dataclass(frozen=True, slots=True)
class GetStatus(PeerMessage):
    type: ClassVar[str] = "get_status"


@dataclass(frozen=True, slots=True)
class StatusResponse(PeerMessage):
    type: ClassVar[str] = "status_response"

    native_host_version: str | None = None

    def to_wire(self) -> dict[str, Any]:
        out: dict[str, Any] = {"type": self.type}
        if self.native_host_version is not None:
            out["native_host_version"] = self.native_host_version
        return out

    @classmethod
    def from_wire(cls, obj: dict[str, Any]) -> StatusResponse:
        version = obj.get("native_host_version")
        return cls(native_host_version=str(version) if version is not None else None)


@dataclass(frozen=True, slots=True)
class ToolRequest(PeerMessage):
    """Tool invocation sent to the extension. Carries no correlation id."""

    type: ClassVar[str] = "tool_request"

    tool: str = ""
    args: dict[str, Any] = field(default_factory=dict)
    client_id: str | None = None

    def to_wire(self) -> dict[str, Any]:
        params: dict[str, Any] = {"tool": self.tool, "args": self.args}
        if self.client_id is not None:
            params["client_id"] = self.client_id
        return {"type": self.type, "method": "execute_tool", "params": params}

    @classmethod
    def from_wire(cls, obj: dict[str, Any]) -> ToolRequest:
        params = safe_dict(obj.get("params"))
        client_id = params.get("client_id")
        return cls(
            tool=str(params.get("tool") or ""),
            args=safe_dict(params.get("args")),
            client_id=str(client_id) if client_id is not None else None,
        )


@dataclass(frozen=True, slots=True)
class ToolResponse(PeerMessage):
    """Reply to the oldest outstanding tool_request; ``result`` and ``error`` are opaque."""

    type: ClassVar[str] = "tool_response"

    result: dict[str, Any] | None = None
    error: dict[str, Any] | None = None

    def to_wire(self) -> dict[str, Any]:
        out: dict[str, Any] = {"type": self.type}
        if self.result is not None:
            out["result"] = self.result
        if self.error is not None:
            out["error"] = self.error
        return out

    @classmethod
    def from_wire(cls, obj: dict[str, Any]) -> ToolResponse:
        result = obj.get("result")
        error = obj.get("error")
        if error is not None and not isinstance(error, dict):
            error = {"content": error}
        return cls(
            result=result if isinstance(result, dict) else None,
            error=error or None,
        )

    @property
    def tab_context(self) -> dict[str, Any] | None:
        row = safe_dict(self.result)
        ctx = row.get("tabContext") or row.get("context")
        return ctx if isinstance(ctx, dict) else None


@dataclass(frozen=True, slots=True)
class McpConnected(PeerMessage):
    type: ClassVar[str] = "mcp_connected"


@dataclass(frozen=True, slots=True)
class McpDisconnected(PeerMessage):
    type: ClassVar[str] = "mcp_disconnected"


@dataclass(frozen=True, slots=True)
class GetMcpEndpoint(PeerMessage):
    type: ClassVar[str] = "get_mcp_endpoint"


@dataclass(frozen=True, slots=True)
class McpEndpoint(PeerMessage):
    type: ClassVar[str] = "mcp_endpoint"

    url: str = ""

    def to_wire(self) -> dict[str, Any]:
        return {"type": self.type, "url": self.url}

    @classmethod
    def from_wire(cls, obj: dict[str, Any]) -> McpEndpoint:
        return cls(url=str(obj.get("url") or ""))


MESSAGE_TYPES: dict[str, type[PeerMessage]] = {
    cls.type: cls
    for cls in (
        Ping,
        Pong,
        GetStatus,
        StatusResponse,
        ToolRequest,
        ToolResponse,
        McpConnected,
        McpDisconnected,
        GetMcpEndpoint,
        McpEndpoint,
    )
}

# Messages only this process originates; seeing one inbound is a peer bug.
HOST_ONLY_TYPES = frozenset({ToolRequest.type, McpEndpoint.type})


def parse_peer_message(obj: dict[str, Any]) -> PeerMessage:
    """Map a decoded frame to its typed message. Raises UnknownMessageError."""
    mtype = str(obj.get("type") or "")
    cls = MESSAGE_TYPES.get(mtype)
    if cls is None:
        raise UnknownMessageError(mtype or "<missing>")
    return cls.from_wire(obj)
