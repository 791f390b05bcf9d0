"""Tests for browserbridge.gateway.sessions and the MCP method handlers."""

from __future__ import annotations

import pytest

from browserbridge.gateway.mcp_server import McpProtocolServer
from browserbridge.gateway.sessions import SessionManager, SessionTransport
from browserbridge.utils.exceptions import SessionNotFoundError


async def _no_tools(name, arguments=None, *, client_id=None):
    raise AssertionError("no tool calls expected")


@pytest.fixture
def events():
    return []


@pytest.fixture
def manager(events):
    async def attach():
        events.append("connected")

    async def detach():
        events.append("disconnected")

    return SessionManager(McpProtocolServer(_no_tools), on_attach=attach, on_detach=detach)


@pytest.mark.asyncio
async def test_create_and_lookup(manager, events):
    session = await manager.create()
    assert len(manager) == 1
    assert session.id in manager
    assert manager.get(session.id) is session
    assert manager.get(None) is None
    assert events == ["connected"]


@pytest.mark.asyncio
async def test_require_unknown_raises(manager):
    with pytest.raises(SessionNotFoundError):
        manager.require("missing")


@pytest.mark.asyncio
async def test_close_all_notifies_disconnect_once(manager, events):
    for _ in range(3):
        await manager.create()
    await manager.close_all()
    assert len(manager) == 0
    assert events.count("disconnected") == 1


@pytest.mark.asyncio
async def test_transport_close_is_idempotent(manager, events):
    session = await manager.create()
    await session.transport.close()
    await session.transport.close()
    assert await manager.close(session.id) is False
    assert events == ["connected", "disconnected"]


@pytest.mark.asyncio
async def test_notifier_failure_does_not_block_session(events):
    async def broken():
        raise OSError("pipe closed")

    manager = SessionManager(McpProtocolServer(_no_tools), on_attach=broken, on_detach=broken)
    session = await manager.create()
    assert session.id in manager
    assert await manager.close(session.id) is True


@pytest.mark.asyncio
async def test_initialize_records_client_on_transport():
    server = McpProtocolServer(_no_tools)
    transport = SessionTransport(session_id="s1")
    reply = await server.handle_message(
        transport,
        {"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": {"clientInfo": {"name": "cli"}}},
    )
    assert reply["result"]["serverInfo"]["name"] == "browserbridge"
    assert transport.client_info == {"name": "cli"}
    assert transport.protocol_version == reply["result"]["protocolVersion"]

    assert await server.handle_message(transport, {"jsonrpc": "2.0", "method": "notifications/initialized"}) is None
    assert transport.initialized


@pytest.mark.asyncio
async def test_malformed_messages():
    server = McpProtocolServer(_no_tools)
    transport = SessionTransport(session_id="s1")

    reply = await server.handle_message(transport, {"id": 1, "method": "ping"})
    assert reply["error"]["code"] == -32600

    reply = await server.handle_message(transport, {"jsonrpc": "2.0", "id": 2, "method": "tools/call", "params": {}})
    assert reply["error"]["code"] == -32602

    reply = await server.handle_message(transport, {"jsonrpc": "2.0", "id": 3, "method": "ping", "params": [1]})
    assert reply["error"]["code"] == -32602

    # Responses from the client and unknown notifications produce nothing.
    assert await server.handle_message(transport, {"jsonrpc": "2.0", "id": 9, "result": {}}) is None
    assert await server.handle_message(transport, {"jsonrpc": "2.0", "method": "notifications/progress"}) is None


@pytest.mark.asyncio
async def test_ping_returns_empty_result():
    server = McpProtocolServer(_no_tools)
    reply = await server.handle_message(SessionTransport(session_id="s"), {"jsonrpc": "2.0", "id": "p", "method": "ping"})
    assert reply == {"jsonrpc": "2.0", "id": "p", "result": {}}
