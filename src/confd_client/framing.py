"""Length-prefixed JSON framing for confd daemon connections.

Wire format, identical in both directions:

    [4-byte big-endian unsigned length N][N bytes of UTF-8 JSON]

No compression, checksum or version byte. No maximum payload size is
enforced on read: a peer announcing a huge length makes us allocate it.
"""

from __future__ import annotations

import asyncio
import json
import struct
from typing import Any

from confd_client.errors import FrameFormatError, FrameTooLargeError, TransportError
from confd_client.logging_config import get_logger

logger = get_logger(__name__)

HEADER = struct.Struct(">I")
HEADER_SIZE = HEADER.size
MAX_PAYLOAD_SIZE = 2**32 - 1


def encode_frame(text: str) -> bytes:
    """Encode text as one frame (header + UTF-8 payload).

    Raises:
        FrameTooLargeError: Payload length does not fit in 32 bits
    """
    payload = text.encode("utf-8")
    if len(payload) > MAX_PAYLOAD_SIZE:
        raise FrameTooLargeError(
            f"Payload of {len(payload)} bytes exceeds frame limit of {MAX_PAYLOAD_SIZE} bytes"
        )
    return HEADER.pack(len(payload)) + payload


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not valid JSON")


def decode_payload(payload: bytes) -> Any:
    """Parse a frame payload as strict JSON.

    NaN, Infinity and -Infinity are rejected, as are numbers and nesting
    beyond what the interpreter can decode.

    Raises:
        FrameFormatError: Payload is not valid UTF-8 JSON
    """
    try:
        return json.loads(payload.decode("utf-8"), parse_constant=_reject_constant)
    except (ValueError, RecursionError) as e:
        raise FrameFormatError(f"Invalid JSON frame: {e}") from e


async def send(writer: asyncio.StreamWriter, text: str) -> None:
    """Send text as one frame and flush.

    Args:
        writer: Stream writer of an open connection
        text: Message text, typically serialized JSON

    Raises:
        FrameTooLargeError: Payload does not fit the length header
        TransportError: Write or flush failed (including peer closed)
    """
    frame = encode_frame(text)

    logger.debug("frame_send", size=len(frame) - HEADER_SIZE)

    try:
        writer.write(frame)
        await writer.drain()
    except OSError as e:
        raise TransportError(f"Failed to send frame: {e}") from e


async def read(reader: asyncio.StreamReader) -> Any:
    """Read one frame and parse its payload as JSON.

    Returns:
        Decoded JSON value (any shape)

    Raises:
        TransportError: EOF or short read on header or payload, or socket error
        FrameFormatError: Payload is not valid JSON
    """
    try:
        header = await reader.readexactly(HEADER_SIZE)
        (length,) = HEADER.unpack(header)

        logger.debug("frame_read", size=length)

        payload = await reader.readexactly(length)
    except asyncio.IncompleteReadError as e:
        raise TransportError(
            f"Connection closed after {len(e.partial)} of {e.expected} expected bytes"
        ) from e
    except OSError as e:
        raise TransportError(f"Failed to read frame: {e}") from e

    return decode_payload(payload)
