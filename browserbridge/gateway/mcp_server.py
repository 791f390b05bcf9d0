"""MCP JSON-RPC method handling for one session transport.

Only the server-side methods a tool bridge needs are implemented: lifecycle
(``initialize``, ``ping``), tool discovery and tool calls. Models and error
codes come from the MCP SDK so wire shapes follow the protocol revision it
ships.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any, Protocol

from loguru import logger
from mcp.shared.version import SUPPORTED_PROTOCOL_VERSIONS
from mcp.types import (
    INVALID_PARAMS,
    INVALID_REQUEST,
    LATEST_PROTOCOL_VERSION,
    METHOD_NOT_FOUND,
    CallToolResult,
    EmptyResult,
    Implementation,
    InitializeResult,
    ListToolsResult,
    ServerCapabilities,
    ToolsCapability,
)

from browserbridge import __version__
from browserbridge.bridge.format import error_result
from browserbridge.gateway.catalog import SERVER_INSTRUCTIONS, has_tool, list_tools

if TYPE_CHECKING:
    from browserbridge.gateway.sessions import SessionTransport

SERVER_NAME = "browserbridge"
JSONRPC_VERSION = "2.0"


class ToolCaller(Protocol):
    async def __call__(
        self, name: str, arguments: dict[str, Any] | None = None, *, client_id: str | None = None
    ) -> CallToolResult: ...


def jsonrpc_error(code: int, message: str, request_id: Any = None, data: Any = None) -> dict[str, Any]:
    error: dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": JSONRPC_VERSION, "error": error, "id": request_id}


def jsonrpc_result(request_id: Any, result: Any) -> dict[str, Any]:
    if hasattr(result, "model_dump"):
        result = result.model_dump(by_alias=True, exclude_none=True, mode="json")
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "result": result}


class _InvalidParams(Exception):
    pass


Handler = Callable[["SessionTransport", dict[str, Any]], Awaitable[Any]]


class McpProtocolServer:
    """Dispatches JSON-RPC messages to MCP method handlers."""

    def __init__(
        self,
        call_tool: ToolCaller,
        *,
        name: str = SERVER_NAME,
        version: str = __version__,
        instructions: str | None = SERVER_INSTRUCTIONS,
    ):
        self._call_tool = call_tool
        self.name = name
        self.version = version
        self.instructions = instructions
        self._requests: dict[str, Handler] = {
            "initialize": self._initialize,
            "ping": self._ping,
            "tools/list": self._tools_list,
            "tools/call": self._tools_call,
        }
        self._notifications: dict[str, Handler] = {
            "notifications/initialized": self._initialized,
            "notifications/cancelled": self._cancelled,
        }

    async def handle_message(self, transport: SessionTransport, message: Any) -> dict[str, Any] | None:
        """
        Handle one JSON-RPC message.

        Returns the response object for requests and None for notifications
        and client responses. Handler exceptions propagate.
        """
        if not isinstance(message, dict) or message.get("jsonrpc") != JSONRPC_VERSION:
            request_id = message.get("id") if isinstance(message, dict) else None
            return jsonrpc_error(INVALID_REQUEST, "Invalid Request", request_id)

        method = message.get("method")
        if method is None:
            # Client-side response to a server request; this server never issues any.
            if "result" in message or "error" in message:
                return None
            return jsonrpc_error(INVALID_REQUEST, "Invalid Request", message.get("id"))
        if not isinstance(method, str):
            return jsonrpc_error(INVALID_REQUEST, "Invalid Request", message.get("id"))

        params = message.get("params")
        if params is not None and not isinstance(params, dict):
            if "id" in message:
                return jsonrpc_error(INVALID_PARAMS, "params must be an object", message.get("id"))
            return None
        params = params or {}

        if "id" not in message:
            handler = self._notifications.get(method)
            if handler is None:
                logger.debug("Ignoring notification {} on session {}", method, transport.session_id)
                return None
            await handler(transport, params)
            return None

        request_id = message["id"]
        handler = self._requests.get(method)
        if handler is None:
            return jsonrpc_error(METHOD_NOT_FOUND, f"Method not found: {method}", request_id)
        try:
            result = await handler(transport, params)
        except _InvalidParams as e:
            return jsonrpc_error(INVALID_PARAMS, str(e), request_id)
        return jsonrpc_result(request_id, result)

    async def _initialize(self, transport: SessionTransport, params: dict[str, Any]) -> InitializeResult:
        requested = params.get("protocolVersion")
        version = requested if requested in SUPPORTED_PROTOCOL_VERSIONS else LATEST_PROTOCOL_VERSION
        client_info = params.get("clientInfo")
        transport.protocol_version = version
        transport.client_info = client_info if isinstance(client_info, dict) else None
        logger.info(
            "Session {} initialize: client={} protocol={}",
            transport.session_id,
            (transport.client_info or {}).get("name", "unknown"),
            version,
        )
        return InitializeResult(
            protocolVersion=version,
            capabilities=ServerCapabilities(tools=ToolsCapability(listChanged=False)),
            serverInfo=Implementation(name=self.name, version=self.version),
            instructions=self.instructions,
        )

    async def _initialized(self, transport: SessionTransport, params: dict[str, Any]) -> None:
        transport.initialized = True

    async def _cancelled(self, transport: SessionTransport, params: dict[str, Any]) -> None:
        # The extension has no cancel message; the request runs to completion or timeout.
        logger.debug("Session {} cancelled request {}", transport.session_id, params.get("requestId"))

    async def _ping(self, transport: SessionTransport, params: dict[str, Any]) -> EmptyResult:
        return EmptyResult()

    async def _tools_list(self, transport: SessionTransport, params: dict[str, Any]) -> ListToolsResult:
        return ListToolsResult(tools=list_tools())

    async def _tools_call(self, transport: SessionTransport, params: dict[str, Any]) -> CallToolResult:
        name = params.get("name")
        if not isinstance(name, str) or not name:
            raise _InvalidParams("tools/call requires a tool name")
        arguments = params.get("arguments")
        if arguments is not None and not isinstance(arguments, dict):
            raise _InvalidParams("tools/call arguments must be an object")
        if not has_tool(name):
            return error_result(f"Unknown tool: {name}")
        return await self._call_tool(name, arguments or {}, client_id=transport.session_id)
