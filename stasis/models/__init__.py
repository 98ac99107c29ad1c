"""Data models for the Stasis receiver."""

from .frame import Frame, MAX_FRAME_SIZE, FRAME_EXTENSION, frame_filename
from .encoding import EncodeJob, EncodeResult, VIDEO_EXTENSION
from .session import CaptureSession, SessionOutcome, SessionSummary
from .events import SessionEvent

__all__ = [
    "Frame",
    "MAX_FRAME_SIZE",
    "FRAME_EXTENSION",
    "frame_filename",
    "EncodeJob",
    "EncodeResult",
    "VIDEO_EXTENSION",
    "CaptureSession",
    "SessionOutcome",
    "SessionSummary",
    "SessionEvent",
]
