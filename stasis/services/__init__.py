"""Services layer for the Stasis receiver."""

from .session_manager import SessionManager
from .listener import IngestServer

__all__ = [
    "SessionManager",
    "IngestServer",
]
