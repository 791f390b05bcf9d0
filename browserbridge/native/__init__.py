"""Native messaging: stdio framing, peer message vocabulary, peer channel."""

from browserbridge.native.channel import (
    ChannelClosed,
    ChannelError,
    ChannelEvent,
    PeerChannel,
    UnknownMessage,
    open_stdio_channel,
)
from browserbridge.native.codec import MAX_MESSAGE_SIZE, DecodedFrame, FrameDecoder, decode_payload, encode_frame
from browserbridge.native.protocol import (
    GetMcpEndpoint,
    GetStatus,
    McpConnected,
    McpDisconnected,
    McpEndpoint,
    PeerMessage,
    Ping,
    Pong,
    StatusResponse,
    ToolRequest,
    ToolResponse,
    parse_peer_message,
)

__all__ = [
    "MAX_MESSAGE_SIZE",
    "ChannelClosed",
    "ChannelError",
    "ChannelEvent",
    "DecodedFrame",
    "FrameDecoder",
    "GetMcpEndpoint",
    "GetStatus",
    "McpConnected",
    "McpDisconnected",
    "McpEndpoint",
    "PeerChannel",
    "PeerMessage",
    "Ping",
    "Pong",
    "StatusResponse",
    "ToolRequest",
    "ToolResponse",
    "UnknownMessage",
    "decode_payload",
    "encode_frame",
    "open_stdio_channel",
    "parse_peer_message",
]
