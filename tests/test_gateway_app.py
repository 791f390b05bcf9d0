"""HTTP tests for the MCP gateway app (sessions, auth, origin policy, health)."""

from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient
from mcp.types import LATEST_PROTOCOL_VERSION, CallToolResult, TextContent

from browserbridge.config import BridgeConfig
from browserbridge.gateway.app import SESSION_HEADER, create_gateway_app
from browserbridge.gateway.mcp_server import McpProtocolServer
from browserbridge.gateway.sessions import SessionManager


class Harness:
    def __init__(self, *, tool_error: Exception | None = None):
        self.tool_calls = []
        self.peer_events = []
        self.tool_error = tool_error

    async def call_tool(self, name, arguments=None, *, client_id=None):
        if self.tool_error is not None:
            raise self.tool_error
        self.tool_calls.append((name, arguments, client_id))
        return CallToolResult(content=[TextContent(type="text", text=f"{name} done")])

    async def attached(self):
        self.peer_events.append("mcp_connected")

    async def detached(self):
        self.peer_events.append("mcp_disconnected")


def _build(harness: Harness, **config_values):
    server = McpProtocolServer(harness.call_tool)
    sessions = SessionManager(server, on_attach=harness.attached, on_detach=harness.detached)
    config = BridgeConfig(**config_values)
    app = create_gateway_app(sessions, config, status=lambda: {"pending_requests": 0})
    return app, sessions


@pytest.fixture
def harness():
    return Harness()


@pytest.fixture
async def client(harness):
    app, _ = _build(harness)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://127.0.0.1:3456") as c:
        yield c


def _rpc(method, params=None, request_id=1):
    body = {"jsonrpc": "2.0", "method": method}
    if params is not None:
        body["params"] = params
    if request_id is not None:
        body["id"] = request_id
    return body


async def _initialize(client) -> str:
    r = await client.post(
        "/mcp",
        json=_rpc(
            "initialize",
            {"protocolVersion": LATEST_PROTOCOL_VERSION, "capabilities": {}, "clientInfo": {"name": "t", "version": "1"}},
        ),
    )
    assert r.status_code == 200, r.text
    return r.headers[SESSION_HEADER]


@pytest.mark.asyncio
async def test_initialize_creates_session_and_notifies_peer(client, harness):
    r = await client.post(
        "/mcp",
        json=_rpc("initialize", {"protocolVersion": LATEST_PROTOCOL_VERSION, "clientInfo": {"name": "t"}}),
    )
    assert r.status_code == 200
    assert r.headers[SESSION_HEADER]
    result = r.json()["result"]
    assert result["protocolVersion"] == LATEST_PROTOCOL_VERSION
    assert result["serverInfo"]["name"] == "browserbridge"
    assert "tools" in result["capabilities"]
    assert "tab group" in result["instructions"]
    assert harness.peer_events == ["mcp_connected"]


@pytest.mark.asyncio
async def test_unsupported_protocol_version_falls_back_to_latest(client):
    r = await client.post("/mcp", json=_rpc("initialize", {"protocolVersion": "1999-01-01"}))
    assert r.json()["result"]["protocolVersion"] == LATEST_PROTOCOL_VERSION


@pytest.mark.asyncio
async def test_initialized_notification_is_accepted(client):
    sid = await _initialize(client)
    r = await client.post("/mcp", json=_rpc("notifications/initialized", request_id=None), headers={SESSION_HEADER: sid})
    assert r.status_code == 202
    assert r.content == b""


@pytest.mark.asyncio
async def test_tools_list_returns_catalogue(client):
    sid = await _initialize(client)
    r = await client.post("/mcp", json=_rpc("tools/list", {}, 2), headers={SESSION_HEADER: sid})
    names = {tool["name"] for tool in r.json()["result"]["tools"]}
    assert {"navigate", "computer", "tabs_context", "tabs_create", "javascript_tool"} <= names
    assert all("inputSchema" in tool for tool in r.json()["result"]["tools"])


@pytest.mark.asyncio
async def test_tools_call_routes_with_session_as_client_id(client, harness):
    sid = await _initialize(client)
    r = await client.post(
        "/mcp",
        json=_rpc("tools/call", {"name": "navigate", "arguments": {"url": "https://example.com"}}, 3),
        headers={SESSION_HEADER: sid},
    )
    body = r.json()
    assert body["id"] == 3
    assert body["result"]["content"] == [{"type": "text", "text": "navigate done"}]
    assert harness.tool_calls == [("navigate", {"url": "https://example.com"}, sid)]


@pytest.mark.asyncio
async def test_unknown_tool_is_an_error_result(client, harness):
    sid = await _initialize(client)
    r = await client.post("/mcp", json=_rpc("tools/call", {"name": "launch_rocket"}, 4), headers={SESSION_HEADER: sid})
    result = r.json()["result"]
    assert result["isError"] is True
    assert result["content"][0]["text"] == "Error: Unknown tool: launch_rocket"
    assert harness.tool_calls == []


@pytest.mark.asyncio
async def test_unknown_method(client):
    sid = await _initialize(client)
    r = await client.post("/mcp", json=_rpc("resources/list", {}, 5), headers={SESSION_HEADER: sid})
    assert r.json()["error"]["code"] == -32601


@pytest.mark.asyncio
async def test_batch_returns_list_of_responses(client):
    sid = await _initialize(client)
    r = await client.post(
        "/mcp",
        json=[_rpc("ping", None, 10), _rpc("notifications/initialized", request_id=None), _rpc("ping", None, 11)],
        headers={SESSION_HEADER: sid},
    )
    assert r.status_code == 200
    assert [item["id"] for item in r.json()] == [10, 11]


@pytest.mark.asyncio
async def test_invalid_json_is_parse_error(client):
    r = await client.post("/mcp", content=b"{not json", headers={"Content-Type": "application/json"})
    assert r.status_code == 400
    assert r.json()["error"]["code"] == -32700


@pytest.mark.asyncio
async def test_unknown_session_is_404(client):
    r = await client.post("/mcp", json=_rpc("ping"), headers={SESSION_HEADER: "nope"})
    assert r.status_code == 404
    assert r.json()["error"] == {"code": -32600, "message": "Session not found"}
    assert r.json()["id"] is None


@pytest.mark.asyncio
async def test_get_requires_known_session(client):
    r = await client.get("/mcp")
    assert r.status_code == 400
    assert r.json()["error"]["message"] == "Missing session ID for GET request"

    r = await client.get("/mcp", headers={SESSION_HEADER: "nope"})
    assert r.status_code == 404

    sid = await _initialize(client)
    r = await client.get("/mcp", headers={SESSION_HEADER: sid})
    assert r.status_code == 405


@pytest.mark.asyncio
async def test_delete_closes_session_and_last_close_notifies_once(client, harness):
    first = await _initialize(client)
    second = await _initialize(client)
    assert harness.peer_events == ["mcp_connected", "mcp_connected"]

    r = await client.delete("/mcp", headers={SESSION_HEADER: first})
    assert r.status_code == 200
    assert harness.peer_events.count("mcp_disconnected") == 0

    r = await client.delete("/mcp", headers={SESSION_HEADER: second})
    assert r.status_code == 200
    assert harness.peer_events.count("mcp_disconnected") == 1

    r = await client.delete("/mcp", headers={SESSION_HEADER: second})
    assert r.status_code == 404
    r = await client.post("/mcp", json=_rpc("ping"), headers={SESSION_HEADER: second})
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_tool_handler_failure_is_internal_error():
    harness = Harness(tool_error=RuntimeError("kaboom"))
    app, _ = _build(harness)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://127.0.0.1:3456") as c:
        sid = await _initialize(c)
        r = await c.post("/mcp", json=_rpc("tools/call", {"name": "find"}, 6), headers={SESSION_HEADER: sid})
    assert r.status_code == 500
    assert r.json()["error"] == {"code": -32603, "message": "Internal error"}


@pytest.mark.asyncio
async def test_health_reports_sessions_and_status(client):
    await _initialize(client)
    r = await client.get("/health")
    assert r.status_code == 200
    data = r.json()
    assert data["status"] == "ok"
    assert data["sessions"] == 1
    assert data["pending_requests"] == 0


@pytest.fixture
async def secured_client(harness):
    app, _ = _build(harness, auth_token="s3cret")
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://127.0.0.1:3456") as c:
        yield c


@pytest.mark.asyncio
async def test_missing_token_is_rejected_before_session_creation(secured_client, harness):
    r = await secured_client.post("/mcp", json=_rpc("initialize", {}))
    assert r.status_code == 401
    assert r.headers["WWW-Authenticate"] == 'Bearer realm="MCP"'
    assert r.json()["error"] == {"code": -32001, "message": "Authentication required"}
    assert SESSION_HEADER not in r.headers
    assert harness.peer_events == []


@pytest.mark.asyncio
async def test_wrong_token_is_rejected(secured_client):
    r = await secured_client.get("/health", headers={"Authorization": "Bearer wrong"})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_correct_token_is_accepted(secured_client):
    r = await secured_client.post(
        "/mcp", json=_rpc("initialize", {}), headers={"Authorization": "Bearer s3cret"}
    )
    assert r.status_code == 200
    assert r.headers[SESSION_HEADER]


@pytest.mark.asyncio
async def test_preflight_skips_auth(secured_client):
    r = await secured_client.options(
        "/mcp",
        headers={
            "Origin": "http://localhost:5173",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "authorization, content-type, mcp-session-id",
        },
    )
    assert r.status_code == 200
    assert r.headers["access-control-allow-origin"] == "http://localhost:5173"
    assert r.headers["access-control-allow-credentials"] == "true"


@pytest.mark.asyncio
async def test_loopback_origin_gets_cors_headers(client):
    r = await client.post("/mcp", json=_rpc("initialize", {}), headers={"Origin": "http://127.0.0.1:8080"})
    assert r.status_code == 200
    assert r.headers["access-control-allow-origin"] == "http://127.0.0.1:8080"
    assert "mcp-session-id" in r.headers["access-control-expose-headers"].lower()


@pytest.mark.asyncio
async def test_foreign_origin_is_forbidden(client, harness):
    r = await client.post("/mcp", json=_rpc("initialize", {}), headers={"Origin": "https://evil.example"})
    assert r.status_code == 403
    assert "access-control-allow-origin" not in r.headers
    assert harness.peer_events == []


@pytest.mark.asyncio
async def test_configured_origins_replace_loopback_default(harness):
    app, _ = _build(harness, cors_origins=["https://app.example"])
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://127.0.0.1:3456") as c:
        r = await c.get("/health", headers={"Origin": "https://app.example"})
        assert r.status_code == 200
        assert r.headers["access-control-allow-origin"] == "https://app.example"

        r = await c.get("/health", headers={"Origin": "http://localhost:3000"})
        assert r.status_code == 403
