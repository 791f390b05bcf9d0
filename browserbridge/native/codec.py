"""Length-prefixed JSON framing for the native messaging stdio stream.

Wire format: ``[4 bytes length, little-endian uint32][length bytes UTF-8 JSON]``.
"""

from __future__ import annotations

import json
import struct
from dataclasses import dataclass
from typing import Any

from browserbridge.utils.exceptions import FrameLengthError, PayloadDecodeError

MAX_MESSAGE_SIZE = 1024 * 1024
HEADER = struct.Struct("<I")


@dataclass(slots=True)
class DecodedFrame:
    """One complete frame: either a decoded JSON object or the reason it was dropped."""

    message: dict[str, Any] | None = None
    error: PayloadDecodeError | None = None


def encode_frame(message: dict[str, Any], *, max_size: int = MAX_MESSAGE_SIZE) -> bytes:
    """Serialize one message into a single frame (header + payload)."""
    raw = json.dumps(message, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
    if not raw or len(raw) > max_size:
        raise FrameLengthError(len(raw), max_size)
    return HEADER.pack(len(raw)) + raw


def decode_payload(payload: bytes) -> dict[str, Any]:
    """Parse one frame payload. Raises PayloadDecodeError."""
    try:
        obj = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise PayloadDecodeError(str(exc), len(payload)) from exc
    if not isinstance(obj, dict):
        raise PayloadDecodeError(f"expected a JSON object, got {type(obj).__name__}", len(payload))
    return obj


class FrameDecoder:
    """Incremental decoder: append a chunk, then drain every complete frame."""

    def __init__(self, *, max_size: int = MAX_MESSAGE_SIZE):
        self.max_size = max_size
        self._buffer = bytearray()

    @property
    def buffered(self) -> int:
        return len(self._buffer)

    def feed(self, chunk: bytes) -> list[DecodedFrame]:
        """
        Append ``chunk`` and return the frames it completed, in order.

        A zero or oversized length prefix clears the buffer and raises
        FrameLengthError; frames completed before it ride along on the
        exception's ``decoded`` list.
        """
        self._buffer.extend(chunk)
        frames: list[DecodedFrame] = []
        while len(self._buffer) >= HEADER.size:
            (length,) = HEADER.unpack_from(self._buffer, 0)
            if length == 0 or length > self.max_size:
                self._buffer.clear()
                raise FrameLengthError(length, self.max_size, decoded=frames)
            end = HEADER.size + length
            if len(self._buffer) < end:
                break
            payload = bytes(self._buffer[HEADER.size:end])
            del self._buffer[:end]
            try:
                frames.append(DecodedFrame(message=decode_payload(payload)))
            except PayloadDecodeError as exc:
                frames.append(DecodedFrame(error=exc))
        return frames
