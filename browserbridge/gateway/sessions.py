"""MCP client sessions keyed by the ``Mcp-Session-Id`` header."""

from __future__ import annotations

import time
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from loguru import logger

from browserbridge.utils.exceptions import SessionNotFoundError, sanitize_error_message

if TYPE_CHECKING:
    from browserbridge.gateway.mcp_server import McpProtocolServer

PeerNotifier = Callable[[], Awaitable[None]]


@dataclass
class SessionTransport:
    """Per-session JSON-RPC endpoint state."""

    session_id: str
    initialized: bool = False
    protocol_version: str | None = None
    client_info: dict[str, Any] | None = None
    last_seen: float = field(default_factory=time.time)
    closed: bool = False
    onclose: Callable[[], Awaitable[None]] | None = None

    def touch(self) -> None:
        self.last_seen = time.time()

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        logger.info("Transport closed for session: {}", self.session_id)
        if self.onclose is not None:
            await self.onclose()


@dataclass
class Session:
    id: str
    transport: SessionTransport
    created_at: float = field(default_factory=time.time)


class SessionManager:
    """
    Creates, looks up and closes sessions.

    The peer is told ``mcp_connected`` for every new session and
    ``mcp_disconnected`` once, when the last open session goes away.
    """

    def __init__(
        self,
        server: McpProtocolServer,
        *,
        on_attach: PeerNotifier | None = None,
        on_detach: PeerNotifier | None = None,
    ):
        self.server = server
        self._on_attach = on_attach
        self._on_detach = on_detach
        self._sessions: dict[str, Session] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    async def create(self) -> Session:
        session_id = str(uuid.uuid4())
        transport = SessionTransport(session_id=session_id)
        session = Session(id=session_id, transport=transport)
        transport.onclose = lambda: self._forget(session_id)
        self._sessions[session_id] = session
        logger.info("New MCP session: {}", session_id)
        await self._notify(self._on_attach, "mcp_connected")
        return session

    def get(self, session_id: str | None) -> Session | None:
        if not session_id:
            return None
        return self._sessions.get(session_id)

    def require(self, session_id: str) -> Session:
        session = self.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    async def dispatch(self, session: Session, message: Any) -> dict[str, Any] | None:
        """Handle one JSON-RPC message on ``session``; None for notifications."""
        session.transport.touch()
        return await self.server.handle_message(session.transport, message)

    async def close(self, session_id: str) -> bool:
        session = self._sessions.get(session_id)
        if session is None:
            return False
        await session.transport.close()
        return True

    async def close_all(self) -> None:
        for session_id in list(self._sessions):
            await self.close(session_id)

    async def _forget(self, session_id: str) -> None:
        if self._sessions.pop(session_id, None) is None:
            return
        logger.info("Cleaning up session: {}", session_id)
        if not self._sessions:
            await self._notify(self._on_detach, "mcp_disconnected")

    async def _notify(self, notifier: PeerNotifier | None, label: str) -> None:
        if notifier is None:
            return
        try:
            await notifier()
        except Exception as e:
            logger.warning("Failed to notify peer ({}): {}", label, sanitize_error_message(str(e)))
