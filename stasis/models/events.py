"""Event models for pub/sub session reporting."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict


SESSION_STARTED = "started"
FRAME_SAVED = "frame_saved"
SESSION_CLOSED = "closed"
SESSION_ENCODED = "encoded"


@dataclass
class SessionEvent:
    """Session lifecycle event."""
    event_type: str  # "started", "frame_saved", "closed", "encoded"
    session_id: str
    timestamp: datetime = field(default_factory=datetime.now)
    metadata: Dict[str, Any] = field(default_factory=dict)
