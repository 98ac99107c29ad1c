"""Frame data model."""

from dataclasses import dataclass


MAX_FRAME_SIZE = 50_000_000
FRAME_EXTENSION = ".jpg"
FRAME_INDEX_WIDTH = 6


@dataclass(frozen=True)
class Frame:
    """A single decoded image with its position in the session."""
    index: int
    data: bytes

    def __post_init__(self):
        if self.index < 0:
            raise ValueError(f"Frame index must be non-negative, got {self.index}")
        if not 0 < len(self.data) <= MAX_FRAME_SIZE:
            raise ValueError(f"Frame size {len(self.data)} outside 1..{MAX_FRAME_SIZE}")

    @property
    def filename(self) -> str:
        return frame_filename(self.index)


def frame_filename(index: int) -> str:
    """Zero-padded file name for a frame index, e.g. ``000042.jpg``."""
    return f"{index:0{FRAME_INDEX_WIDTH}d}{FRAME_EXTENSION}"
