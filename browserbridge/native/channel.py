"""Peer channel: native messaging over this process's stdin/stdout.

The browser launches this process and owns both pipes. stdout carries frames
only; never write logs to it.
"""

from __future__ import annotations

import asyncio
import sys
import time
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any, Union

from loguru import logger

from browserbridge.native.codec import MAX_MESSAGE_SIZE, DecodedFrame, FrameDecoder, encode_frame
from browserbridge.native.protocol import (
    GetStatus,
    McpConnected,
    McpDisconnected,
    McpEndpoint,
    PeerMessage,
    Ping,
    Pong,
    StatusResponse,
    ToolRequest,
    parse_peer_message,
    safe_dict,
)
from browserbridge.utils.exceptions import BridgeError, ChannelClosedError, FrameLengthError, UnknownMessageError

_READ_SIZE = 64 * 1024


@dataclass(slots=True)
class UnknownMessage:
    """Frame with a tag outside the vocabulary. Reported, not fatal."""

    message_type: str
    raw: dict[str, Any]


@dataclass(slots=True)
class ChannelError:
    """Decoding problem. ``fatal`` means the stream is desynchronized and reading stopped."""

    error: BridgeError
    fatal: bool = False


@dataclass(slots=True)
class ChannelClosed:
    """End of stream. Yielded once; nothing follows it."""

    reason: str = "eof"


ChannelEvent = Union[PeerMessage, UnknownMessage, ChannelError, ChannelClosed]


class PeerChannel:
    """Typed send operations plus an async event stream over one duplex byte stream."""

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: Any,
        *,
        max_message_size: int = MAX_MESSAGE_SIZE,
    ):
        self._reader = reader
        self._writer = writer
        self._max_message_size = max_message_size
        self._decoder = FrameDecoder(max_size=max_message_size)
        self._closed = False
        self._consuming = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, message: PeerMessage) -> None:
        """Write one frame in a single write, then wait for stream backpressure."""
        if self._closed:
            raise ChannelClosedError()
        frame = encode_frame(message.to_wire(), max_size=self._max_message_size)
        self._writer.write(frame)
        await self._writer.drain()
        logger.debug("peer <- {} ({} bytes)", message.type, len(frame))

    async def send_ping(self) -> None:
        await self.send(Ping())

    async def send_pong(self) -> None:
        await self.send(Pong(timestamp=int(time.time() * 1000)))

    async def send_get_status(self) -> None:
        await self.send(GetStatus())

    async def send_status_response(self, version: str) -> None:
        await self.send(StatusResponse(native_host_version=version))

    async def send_tool_request(self, tool: str, args: dict[str, Any], client_id: str | None = None) -> None:
        await self.send(ToolRequest(tool=tool, args=args, client_id=client_id))

    async def send_mcp_connected(self) -> None:
        await self.send(McpConnected())

    async def send_mcp_disconnected(self) -> None:
        await self.send(McpDisconnected())

    async def send_mcp_endpoint(self, url: str) -> None:
        await self.send(McpEndpoint(url=url))

    async def messages(self) -> AsyncIterator[ChannelEvent]:
        """
        Read the stream until end-of-stream or fatal corruption.

        Only one consumer per channel; frames are yielded in arrival order.
        """
        if self._consuming:
            raise RuntimeError("peer channel already has a consumer")
        self._consuming = True
        while True:
            try:
                chunk = await self._reader.read(_READ_SIZE)
            except (ConnectionError, OSError) as exc:
                self._closed = True
                yield ChannelClosed(reason=str(exc) or type(exc).__name__)
                return
            if not chunk:
                self._closed = True
                yield ChannelClosed()
                return
            try:
                frames = self._decoder.feed(chunk)
            except FrameLengthError as exc:
                for frame in exc.decoded:
                    yield self._to_event(frame)
                logger.error("Native frame corrupted: {}", exc.message)
                self._closed = True
                yield ChannelError(error=exc, fatal=True)
                return
            for frame in frames:
                yield self._to_event(frame)

    def _to_event(self, frame: DecodedFrame) -> ChannelEvent:
        if frame.error is not None:
            return ChannelError(error=frame.error)
        message = safe_dict(frame.message)
        try:
            return parse_peer_message(message)
        except UnknownMessageError as exc:
            return UnknownMessage(message_type=exc.message_type, raw=message)

    def close(self) -> None:
        self._closed = True
        try:
            self._writer.close()
        except (OSError, RuntimeError) as exc:
            logger.debug("peer writer close failed: {}", exc)


async def open_stdio_channel(*, max_message_size: int = MAX_MESSAGE_SIZE) -> PeerChannel:
    """Attach a PeerChannel to stdin/stdout via asyncio pipes."""
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader()
    await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader), sys.stdin.buffer)
    transport, protocol = await loop.connect_write_pipe(asyncio.streams.FlowControlMixin, sys.stdout.buffer)
    writer = asyncio.StreamWriter(transport, protocol, reader, loop)
    return PeerChannel(reader, writer, max_message_size=max_message_size)
