"""Session lifecycle event publishing."""

from .publisher import SessionEventPublisher, SESSION_TOPIC

__all__ = [
    'SessionEventPublisher',
    'SESSION_TOPIC',
]
