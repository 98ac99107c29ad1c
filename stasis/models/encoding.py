"""Encoding job and result models."""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional


VIDEO_EXTENSION = ".mp4"


@dataclass(frozen=True)
class EncodeJob:
    """Everything needed to turn one session directory into a video."""
    source_dir: Path
    target_path: Path
    fps: int
    encoder_path: str

    @classmethod
    def for_session(cls, session_dir: Path, fps: int, encoder_path: str) -> "EncodeJob":
        """Build a job whose artifact sits next to the session directory."""
        session_dir = Path(session_dir)
        target = session_dir.parent / f"{session_dir.name}{VIDEO_EXTENSION}"
        return cls(source_dir=session_dir, target_path=target, fps=fps, encoder_path=encoder_path)


@dataclass
class EncodeResult:
    """Outcome of running the encoding pipeline on one session."""
    success: bool
    artifact: Optional[Path] = None
    returncode: Optional[int] = None
    frames_found: int = 0
    frames_deleted: int = 0
    stderr: str = ""
    skipped_reason: Optional[str] = None

    @property
    def skipped(self) -> bool:
        return self.skipped_reason is not None
