"""External video encoder orchestration."""

from .pipeline import EncodingPipeline, build_encoder_args
from .process import EncoderProcess

__all__ = [
    'EncodingPipeline',
    'EncoderProcess',
    'build_encoder_args',
]
