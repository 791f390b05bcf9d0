"""Pending tool requests and FIFO reply matching.

The extension does not echo a request id in ``tool_response``, so every reply
resolves the oldest outstanding request. A request that timed out may still
get its reply later; that late reply would then be credited to the next
request in line. This is the extension's contract, not something this side
can repair, so it is counted and logged instead.
"""

from __future__ import annotations

import asyncio
import itertools
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol

from loguru import logger
from mcp.types import CallToolResult

from browserbridge.bridge.format import error_result, format_tool_response
from browserbridge.native.protocol import PeerMessage, ToolRequest, ToolResponse
from browserbridge.utils.exceptions import BridgeError, sanitize_error_message

RawResultObserver = Callable[[dict[str, Any]], None]


class MessageSender(Protocol):
    async def send(self, message: PeerMessage) -> None: ...


@dataclass
class PendingRequest:
    request_id: int
    tool: str
    future: asyncio.Future[CallToolResult]
    timeout_ms: int
    timer: asyncio.TimerHandle | None = None
    on_raw_result: RawResultObserver | None = None
    client_id: str | None = None
    issued_at: float = field(default_factory=time.monotonic)


@dataclass
class CorrelatorStats:
    issued: int = 0
    resolved: int = 0
    timed_out: int = 0
    send_failed: int = 0
    abandoned: int = 0
    # Timed-out requests whose reply has not been seen; any of them can shift FIFO matching.
    orphans: int = 0
    unmatched_replies: int = 0
    suspect_matches: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "issued": self.issued,
            "resolved": self.resolved,
            "timed_out": self.timed_out,
            "send_failed": self.send_failed,
            "abandoned": self.abandoned,
            "orphans": self.orphans,
            "unmatched_replies": self.unmatched_replies,
            "suspect_matches": self.suspect_matches,
        }


class RequestCorrelator:
    """Issues tool requests over the peer channel and pairs replies in arrival order."""

    def __init__(self, channel: MessageSender, *, timeout_ms: int):
        self._channel = channel
        self._timeout_ms = timeout_ms
        # Insertion order is issue order.
        self._pending: dict[int, PendingRequest] = {}
        self._ids = itertools.count(1)
        self.stats = CorrelatorStats()

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def invoke(
        self,
        tool: str,
        args: dict[str, Any],
        *,
        timeout_ms: int | None = None,
        on_raw_result: RawResultObserver | None = None,
        client_id: str | None = None,
    ) -> CallToolResult:
        """
        Send one tool request and wait for its result.

        Never raises for timeouts or peer errors; those come back as error
        results. If the caller is cancelled the entry stays registered so the
        reply it is owed is still consumed in order.
        """
        loop = asyncio.get_running_loop()
        if timeout_ms is None:
            timeout_ms = self._timeout_ms
        request_id = next(self._ids)
        entry = PendingRequest(
            request_id=request_id,
            tool=tool,
            future=loop.create_future(),
            timeout_ms=timeout_ms,
            on_raw_result=on_raw_result,
            client_id=client_id,
        )
        entry.timer = loop.call_later(timeout_ms / 1000.0, self._expire, request_id)
        self._pending[request_id] = entry
        self.stats.issued += 1

        try:
            await self._channel.send(ToolRequest(tool=tool, args=args, client_id=client_id))
        except (BridgeError, OSError, RuntimeError) as e:
            self._discard(request_id)
            self.stats.send_failed += 1
            logger.error("Failed to send tool request {} ({}): {}", request_id, tool, sanitize_error_message(str(e)))
            message = e.message if isinstance(e, BridgeError) else str(e)
            return error_result(f"Failed to send tool request: {message}")

        logger.debug("tool request {} sent: {} (pending={})", request_id, tool, len(self._pending))
        return await entry.future

    def resolve(self, response: ToolResponse) -> bool:
        """Resolve the oldest pending request with ``response``. False when nothing is pending."""
        if not self._pending:
            self.stats.unmatched_replies += 1
            if self.stats.orphans:
                self.stats.orphans -= 1
                logger.warning("Late tool_response arrived after its request timed out; dropped")
            else:
                logger.warning("Received tool_response with no pending request; dropped")
            return False

        request_id = next(iter(self._pending))
        entry = self._pending.pop(request_id)
        if entry.timer is not None:
            entry.timer.cancel()
        if self.stats.orphans:
            self.stats.suspect_matches += 1
            logger.warning(
                "tool_response matched to request {} ({}) while {} timed-out request(s) may still reply; "
                "result may belong to an earlier call",
                request_id,
                entry.tool,
                self.stats.orphans,
            )

        if entry.on_raw_result is not None and response.result is not None:
            try:
                entry.on_raw_result(response.result)
            except Exception as e:
                logger.warning("raw result observer for {} failed: {}", entry.tool, e)

        self.stats.resolved += 1
        elapsed_ms = (time.monotonic() - entry.issued_at) * 1000
        logger.debug("tool request {} ({}) resolved in {:.0f}ms", request_id, entry.tool, elapsed_ms)
        if entry.future.done():
            # Caller went away; the reply was still consumed in order.
            return True
        entry.future.set_result(format_tool_response(response))
        return True

    def abandon_all(self, reason: str = "Bridge shutting down") -> int:
        """Resolve every outstanding request with an error result; does not wait for the peer."""
        entries = list(self._pending.values())
        self._pending.clear()
        for entry in entries:
            if entry.timer is not None:
                entry.timer.cancel()
            if not entry.future.done():
                entry.future.set_result(error_result(reason))
        self.stats.abandoned += len(entries)
        if entries:
            logger.info("Abandoned {} pending tool request(s): {}", len(entries), reason)
        return len(entries)

    def _expire(self, request_id: int) -> None:
        entry = self._pending.pop(request_id, None)
        if entry is None:
            return
        self.stats.timed_out += 1
        self.stats.orphans += 1
        logger.warning("Tool request {} ({}) timed out after {}ms", request_id, entry.tool, entry.timeout_ms)
        if not entry.future.done():
            entry.future.set_result(error_result(f"Tool execution timed out after {entry.timeout_ms}ms"))

    def _discard(self, request_id: int) -> None:
        entry = self._pending.pop(request_id, None)
        if entry is not None and entry.timer is not None:
            entry.timer.cancel()
