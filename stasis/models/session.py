"""Session-related data models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional

from .encoding import EncodeResult


class SessionOutcome(Enum):
    """How the frame stream of a session ended."""
    CLEAN_EOF = "clean_eof"
    TRUNCATED = "truncated"
    PROTOCOL_VIOLATION = "protocol_violation"
    TRANSPORT_ERROR = "transport_error"
    CANCELLED = "cancelled"


@dataclass
class CaptureSession:
    """One capture run: a directory plus the dense frame counter written into it."""
    session_id: str
    directory: Path
    started_at: datetime
    peer: str = ""
    frame_count: int = 0
    outcome: Optional[SessionOutcome] = None
    closed_at: Optional[datetime] = None

    @property
    def is_closed(self) -> bool:
        return self.outcome is not None

    def close(self, outcome: SessionOutcome) -> None:
        """Mark the session closed. A closed session is never reopened."""
        if self.is_closed:
            raise RuntimeError(f"Session {self.session_id} already closed ({self.outcome.value})")
        self.outcome = outcome
        self.closed_at = datetime.now()


@dataclass
class SessionSummary:
    """What happened to a session once the listener is done with it."""
    session_id: str
    directory: Path
    frame_count: int
    outcome: SessionOutcome
    encode_result: Optional[EncodeResult] = None
    duration_seconds: float = field(default=0.0)
