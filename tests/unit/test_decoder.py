"""Unit tests for the frame protocol decoder."""

import asyncio
import struct

import pytest

from stasis.exceptions import IncompleteFrameError, ProtocolViolationError
from stasis.models.frame import MAX_FRAME_SIZE
from stasis.protocol.decoder import FrameDecoder, encode_frame


def decode_all(data: bytes, max_frame_size: int = MAX_FRAME_SIZE):
    """Feed ``data`` followed by EOF and collect frames until the decoder stops.

    Returns:
        (frames, exception or None)
    """
    async def run():
        reader = asyncio.StreamReader()
        reader.feed_data(data)
        reader.feed_eof()
        decoder = FrameDecoder(reader, max_frame_size=max_frame_size)
        frames = []
        try:
            async for payload in decoder.frames():
                frames.append(payload)
        except Exception as e:
            return frames, e
        return frames, None

    return asyncio.run(run())


@pytest.mark.unit
class TestFrameDecoder:
    """Test cases for FrameDecoder."""

    def test_decodes_frames_in_order(self, sample_frames):
        data = b''.join(encode_frame(frame) for frame in sample_frames)

        frames, error = decode_all(data)

        assert error is None
        assert frames == sample_frames

    def test_empty_stream_is_clean_eof(self):
        frames, error = decode_all(b'')

        assert frames == []
        assert error is None

    def test_eof_on_frame_boundary_is_clean(self, sample_jpeg):
        frames, error = decode_all(encode_frame(sample_jpeg))

        assert frames == [sample_jpeg]
        assert error is None

    @pytest.mark.parametrize("length", [0, -1, -2**31, MAX_FRAME_SIZE + 1])
    def test_rejects_out_of_bounds_length(self, length, sample_jpeg):
        data = encode_frame(sample_jpeg) + struct.pack(">i", length) + b'\x00' * 16

        frames, error = decode_all(data)

        assert frames == [sample_jpeg]
        assert isinstance(error, ProtocolViolationError)
        assert error.length == length

    def test_accepts_length_at_limit(self):
        payload = b'x' * 32

        frames, error = decode_all(encode_frame(payload), max_frame_size=32)

        assert frames == [payload]
        assert error is None

    def test_length_is_signed_big_endian(self):
        # 0x80000000 is negative when read as signed
        frames, error = decode_all(b'\x80\x00\x00\x00')

        assert isinstance(error, ProtocolViolationError)
        assert error.length == -2**31

    def test_truncated_payload(self, sample_jpeg):
        data = struct.pack(">i", len(sample_jpeg)) + sample_jpeg[:10]

        frames, error = decode_all(data)

        assert frames == []
        assert isinstance(error, IncompleteFrameError)
        assert error.expected == len(sample_jpeg)
        assert error.received == 10

    def test_truncated_length_prefix(self, sample_jpeg):
        frames, error = decode_all(encode_frame(sample_jpeg) + b'\x00\x00')

        assert frames == [sample_jpeg]
        assert isinstance(error, IncompleteFrameError)
        assert error.expected == 4
        assert error.received == 2

    def test_read_exact_accumulates_partial_reads(self):
        async def run():
            reader = asyncio.StreamReader()
            decoder = FrameDecoder(reader)

            async def feed():
                for piece in (b'ab', b'c', b'def'):
                    await asyncio.sleep(0.01)
                    reader.feed_data(piece)

            feeder = asyncio.ensure_future(feed())
            data = await decoder.read_exact(6)
            await feeder
            return data, decoder.bytes_received

        data, received = asyncio.run(run())

        assert data == b'abcdef'
        assert received == 6

    def test_counts_decoded_frames(self, sample_frames):
        async def run():
            reader = asyncio.StreamReader()
            reader.feed_data(b''.join(encode_frame(f) for f in sample_frames))
            reader.feed_eof()
            decoder = FrameDecoder(reader)
            async for _ in decoder.frames():
                pass
            return decoder.frames_decoded

        assert asyncio.run(run()) == len(sample_frames)
