"""Session gateway: MCP Streamable HTTP endpoint, sessions, access policy."""

from browserbridge.gateway.app import create_gateway_app
from browserbridge.gateway.auth import AccessPolicy
from browserbridge.gateway.catalog import SERVER_INSTRUCTIONS, list_tools
from browserbridge.gateway.mcp_server import McpProtocolServer
from browserbridge.gateway.sessions import Session, SessionManager, SessionTransport

__all__ = [
    "SERVER_INSTRUCTIONS",
    "AccessPolicy",
    "McpProtocolServer",
    "Session",
    "SessionManager",
    "SessionTransport",
    "create_gateway_app",
    "list_tools",
]
