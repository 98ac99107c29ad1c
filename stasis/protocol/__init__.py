"""Length-prefixed frame wire protocol."""

from .decoder import FrameDecoder, LENGTH_PREFIX, encode_frame

__all__ = [
    'FrameDecoder',
    'LENGTH_PREFIX',
    'encode_frame',
]
