"""Tests for browserbridge.native.channel."""

from __future__ import annotations

import asyncio

import pytest

from browserbridge.native.channel import ChannelClosed, ChannelError, PeerChannel, UnknownMessage
from browserbridge.native.codec import HEADER, encode_frame
from browserbridge.native.protocol import Ping, ToolRequest, ToolResponse
from browserbridge.utils.exceptions import ChannelClosedError, FrameLengthError, PayloadDecodeError


def _channel(writer, *chunks: bytes, eof: bool = True) -> PeerChannel:
    reader = asyncio.StreamReader()
    for chunk in chunks:
        reader.feed_data(chunk)
    if eof:
        reader.feed_eof()
    return PeerChannel(reader, writer)


async def _drain(channel: PeerChannel) -> list:
    return [event async for event in channel.messages()]


@pytest.mark.asyncio
async def test_messages_yield_typed_events_then_close(fake_writer):
    channel = _channel(
        fake_writer,
        encode_frame({"type": "ping"}) + encode_frame({"type": "tool_response", "result": {"content": "ok"}}),
    )
    events = await _drain(channel)
    assert events[0] == Ping()
    assert events[1] == ToolResponse(result={"content": "ok"})
    assert isinstance(events[2], ChannelClosed)
    assert len(events) == 3
    assert channel.closed


@pytest.mark.asyncio
async def test_payload_error_is_reported_and_reading_continues(fake_writer):
    bad = b"{oops"
    channel = _channel(fake_writer, HEADER.pack(len(bad)) + bad, encode_frame({"type": "ping"}))
    events = await _drain(channel)
    assert isinstance(events[0], ChannelError)
    assert not events[0].fatal
    assert isinstance(events[0].error, PayloadDecodeError)
    assert events[1] == Ping()
    assert isinstance(events[2], ChannelClosed)


@pytest.mark.asyncio
async def test_invalid_length_is_fatal_and_terminal(fake_writer):
    channel = _channel(
        fake_writer,
        encode_frame({"type": "ping"}) + HEADER.pack(0) + encode_frame({"type": "pong"}),
        eof=False,
    )
    events = await _drain(channel)
    assert events[0] == Ping()
    assert isinstance(events[1], ChannelError)
    assert events[1].fatal
    assert isinstance(events[1].error, FrameLengthError)
    assert len(events) == 2
    assert channel.closed


@pytest.mark.asyncio
async def test_unknown_tag_is_not_fatal(fake_writer):
    channel = _channel(fake_writer, encode_frame({"type": "surprise", "x": 1}), encode_frame({"type": "ping"}))
    events = await _drain(channel)
    assert isinstance(events[0], UnknownMessage)
    assert events[0].message_type == "surprise"
    assert events[0].raw == {"type": "surprise", "x": 1}
    assert events[1] == Ping()


@pytest.mark.asyncio
async def test_send_writes_one_frame_per_message(fake_writer):
    channel = _channel(fake_writer, eof=False)
    await channel.send_tool_request("navigate", {"url": "https://example.com"}, client_id="s1")
    await channel.send_ping()
    assert fake_writer.writes == 2
    messages = fake_writer.messages()
    assert messages[0] == ToolRequest(tool="navigate", args={"url": "https://example.com"}, client_id="s1").to_wire()
    assert messages[1] == {"type": "ping"}


@pytest.mark.asyncio
async def test_send_pong_carries_timestamp(fake_writer):
    channel = _channel(fake_writer, eof=False)
    await channel.send_pong()
    (pong,) = fake_writer.messages()
    assert pong["type"] == "pong"
    assert isinstance(pong["timestamp"], int)


@pytest.mark.asyncio
async def test_send_after_close_raises(fake_writer):
    channel = _channel(fake_writer, eof=False)
    channel.close()
    assert fake_writer.closed
    with pytest.raises(ChannelClosedError):
        await channel.send_mcp_connected()


@pytest.mark.asyncio
async def test_single_consumer(fake_writer):
    channel = _channel(fake_writer, encode_frame({"type": "ping"}), eof=False)
    first = channel.messages()
    assert await first.__anext__() == Ping()
    with pytest.raises(RuntimeError):
        await channel.messages().__anext__()
    await first.aclose()
