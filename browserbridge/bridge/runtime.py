"""Bridge lifecycle: wires the peer channel, correlator and HTTP gateway together.

All shared state lives on one BridgeRuntime instance and is only touched from
the event loop.
"""

from __future__ import annotations

import asyncio
import contextlib
import signal
import sys
from typing import Any

import uvicorn
from loguru import logger

from browserbridge import __version__
from browserbridge.bridge.correlator import RequestCorrelator
from browserbridge.bridge.router import ToolRouter
from browserbridge.bridge.tab_group import TabGroupInitializer
from browserbridge.cli.shared.network_utils import bind_listen_socket
from browserbridge.config.schema import BridgeConfig
from browserbridge.gateway.app import create_gateway_app
from browserbridge.gateway.mcp_server import McpProtocolServer
from browserbridge.gateway.sessions import SessionManager
from browserbridge.native.channel import (
    ChannelClosed,
    ChannelError,
    ChannelEvent,
    PeerChannel,
    UnknownMessage,
    open_stdio_channel,
)
from browserbridge.native.protocol import (
    HOST_ONLY_TYPES,
    GetMcpEndpoint,
    GetStatus,
    McpConnected,
    McpDisconnected,
    Ping,
    Pong,
    StatusResponse,
    ToolResponse,
)
from browserbridge.utils.exceptions import BridgeError, sanitize_error_message

EXIT_OK = 0
EXIT_FATAL = 1


class _EmbeddedServer(uvicorn.Server):
    """uvicorn server that leaves signal handling to the runtime."""

    @contextlib.contextmanager
    def capture_signals(self):
        yield

    def install_signal_handlers(self) -> None:
        return None


class BridgeRuntime:
    """One bridge process: a peer channel on one side, MCP sessions on the other."""

    def __init__(self, config: BridgeConfig, channel: PeerChannel):
        self.config = config
        self.channel = channel
        self.correlator = RequestCorrelator(channel, timeout_ms=config.tool_timeout_ms)
        self.tab_group = TabGroupInitializer(self.correlator)
        self.router = ToolRouter(self.correlator, self.tab_group)
        self.server = McpProtocolServer(self.router.call_tool)
        self.sessions = SessionManager(
            self.server,
            on_attach=self._notify_connected,
            on_detach=self._notify_disconnected,
        )
        self.app = create_gateway_app(self.sessions, config, status=self.status)
        self._http: uvicorn.Server | None = None
        self._fatal = False
        self._shutting_down = False

    def status(self) -> dict[str, Any]:
        return {
            "peer_connected": not self.channel.closed,
            "pending_requests": self.correlator.pending_count,
            "correlator": self.correlator.stats.to_dict(),
            "tab_group_id": self.tab_group.group_id,
        }

    async def _notify_connected(self) -> None:
        if not self.channel.closed:
            await self.channel.send_mcp_connected()

    async def _notify_disconnected(self) -> None:
        if not self.channel.closed:
            await self.channel.send_mcp_disconnected()

    async def handle_peer_event(self, event: ChannelEvent) -> bool:
        """Act on one peer event. Returns False when the peer stream is over."""
        if isinstance(event, ChannelClosed):
            logger.info("Chrome disconnected ({}), shutting down...", event.reason)
            return False
        if isinstance(event, ChannelError):
            if event.fatal:
                logger.error("Native channel corrupted: {}", event.error.message)
                self._fatal = True
                return False
            logger.warning("Dropped native message: {}", event.error.message)
            return True
        if isinstance(event, UnknownMessage):
            logger.warning("Unknown native message type: {}", event.message_type)
            return True

        try:
            await self._dispatch(event)
        except (BridgeError, OSError) as e:
            logger.warning("Failed to reply to {}: {}", event.type, sanitize_error_message(str(e)))
        return True

    async def _dispatch(self, message: Any) -> None:
        if isinstance(message, ToolResponse):
            self.correlator.resolve(message)
        elif isinstance(message, Ping):
            logger.debug("Received ping, sending pong")
            await self.channel.send_pong()
        elif isinstance(message, GetStatus):
            logger.debug("Received get_status, sending status_response")
            await self.channel.send_status_response(__version__)
        elif isinstance(message, GetMcpEndpoint):
            await self.channel.send_mcp_endpoint(self.config.endpoint_url)
        elif isinstance(message, Pong):
            logger.debug("Received pong from Chrome")
        elif isinstance(message, StatusResponse):
            logger.info("Chrome status: native_host_version={}", message.native_host_version)
        elif isinstance(message, McpConnected):
            logger.info("MCP client connected notification from Chrome")
        elif isinstance(message, McpDisconnected):
            logger.info("MCP client disconnected notification from Chrome")
        elif message.type in HOST_ONLY_TYPES:
            logger.warning("Ignoring host-only message type from Chrome: {}", message.type)

    async def pump_peer(self) -> None:
        """Single consumer of the peer channel; returns at end of stream or fatal corruption."""
        async for event in self.channel.messages():
            if not await self.handle_peer_event(event):
                break

    async def run(self) -> int:
        """Serve until the peer goes away, a signal arrives, or the HTTP server stops. Returns the exit code."""
        sock = bind_listen_socket(self.config.host, self.config.port)
        self._http = _EmbeddedServer(
            uvicorn.Config(
                self.app,
                log_config=None,
                log_level="warning",
                access_log=False,
                timeout_keep_alive=30,
                timeout_graceful_shutdown=5,
            )
        )
        loop = asyncio.get_running_loop()
        stop = asyncio.Event()
        installed = _install_signal_handlers(loop, stop)

        http_task = loop.create_task(self._http.serve(sockets=[sock]), name="browserbridge-http")
        peer_task = loop.create_task(self.pump_peer(), name="browserbridge-peer")
        stop_task = loop.create_task(stop.wait(), name="browserbridge-signal")
        logger.info("Started - MCP endpoint: {}", self.config.endpoint_url)

        exit_code = EXIT_OK
        try:
            done, _ = await asyncio.wait({http_task, peer_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
            if stop_task in done:
                logger.info("Received shutdown signal")
            elif http_task in done:
                logger.error("HTTP server stopped unexpectedly")
                exit_code = EXIT_FATAL
            if peer_task in done and peer_task.exception() is not None:
                logger.error("Native channel reader failed: {}", peer_task.exception())
                exit_code = EXIT_FATAL
        finally:
            await self.shutdown()
            for task in (peer_task, stop_task):
                task.cancel()
            await asyncio.gather(http_task, peer_task, stop_task, return_exceptions=True)
            _remove_signal_handlers(loop, installed)
            sock.close()

        if self._fatal:
            exit_code = EXIT_FATAL
        logger.info("Bridge stopped (exit code {})", exit_code)
        return exit_code

    async def shutdown(self) -> None:
        """Idempotent teardown. Pending requests are abandoned, not drained."""
        if self._shutting_down:
            return
        self._shutting_down = True
        await self.sessions.close_all()
        self.channel.close()
        self.correlator.abandon_all("Bridge shutting down")
        if self._http is not None:
            self._http.should_exit = True


def _install_signal_handlers(loop: asyncio.AbstractEventLoop, stop: asyncio.Event) -> list[int]:
    signals = [signal.SIGINT, signal.SIGTERM]
    installed: list[int] = []
    for sig in signals:
        try:
            loop.add_signal_handler(sig, stop.set)
            installed.append(sig)
        except (NotImplementedError, RuntimeError):
            if sys.platform == "win32":
                signal.signal(sig, lambda *_: loop.call_soon_threadsafe(stop.set))
    return installed


def _remove_signal_handlers(loop: asyncio.AbstractEventLoop, installed: list[int]) -> None:
    for sig in installed:
        loop.remove_signal_handler(sig)


async def run_bridge(config: BridgeConfig) -> int:
    """Attach to stdin/stdout and run the bridge until it stops."""
    channel = await open_stdio_channel()
    runtime = BridgeRuntime(config, channel)
    return await runtime.run()
