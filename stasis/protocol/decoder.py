"""Decoder for the length-prefixed JPEG frame stream.

Each frame on the wire is a 4-byte big-endian signed length followed by
exactly that many payload bytes. There is no handshake, acknowledgement or
checksum; the peer closing the connection between frames is the only
end-of-stream signal.
"""

import asyncio
import logging
import struct
from typing import AsyncIterator, Optional

from ..exceptions import IncompleteFrameError, ProtocolViolationError
from ..models.frame import MAX_FRAME_SIZE

logger = logging.getLogger(__name__)


LENGTH_PREFIX = struct.Struct(">i")


def encode_frame(payload: bytes) -> bytes:
    """Prefix a payload with its length, as the capture device sends it."""
    return LENGTH_PREFIX.pack(len(payload)) + payload


class FrameDecoder:
    """Reads frames off an ``asyncio.StreamReader``."""

    def __init__(self, reader: asyncio.StreamReader, max_frame_size: int = MAX_FRAME_SIZE):
        """Initialize decoder.

        Args:
            reader: Stream of the accepted connection
            max_frame_size: Largest payload accepted from a length prefix
        """
        self.reader = reader
        self.max_frame_size = max_frame_size
        self.frames_decoded = 0
        self.bytes_received = 0

    async def read_exact(self, size: int) -> bytes:
        """Read exactly ``size`` bytes.

        Args:
            size: Number of bytes to collect

        Returns:
            The collected bytes

        Raises:
            IncompleteFrameError: If the stream ends first. ``received`` tells
                "got nothing" apart from "got some but not all".
        """
        buffer = bytearray()
        while len(buffer) < size:
            chunk = await self.reader.read(size - len(buffer))
            if not chunk:
                raise IncompleteFrameError(expected=size, received=len(buffer))
            buffer.extend(chunk)
        self.bytes_received += size
        return bytes(buffer)

    async def read_frame(self) -> Optional[bytes]:
        """Read the next frame payload.

        Returns:
            The payload, or None on a clean end-of-stream between frames

        Raises:
            ProtocolViolationError: Length prefix outside 1..max_frame_size
            IncompleteFrameError: Stream closed inside a prefix or payload
        """
        try:
            header = await self.read_exact(LENGTH_PREFIX.size)
        except IncompleteFrameError as e:
            if e.received == 0:
                return None
            raise

        (length,) = LENGTH_PREFIX.unpack(header)
        if length <= 0 or length > self.max_frame_size:
            logger.warning(f"Rejecting frame length {length} after {self.frames_decoded} frames")
            raise ProtocolViolationError(length, self.max_frame_size)

        payload = await self.read_exact(length)
        self.frames_decoded += 1
        return payload

    async def frames(self) -> AsyncIterator[bytes]:
        """Yield payloads until the peer closes the connection cleanly."""
        while True:
            payload = await self.read_frame()
            if payload is None:
                logger.debug(f"Clean end of stream after {self.frames_decoded} frames")
                return
            yield payload
