"""Session event publisher for pub/sub reporting."""

import logging
from typing import Any

from pubsub import pub

from ..models.events import SessionEvent

logger = logging.getLogger(__name__)


SESSION_TOPIC = "stasis.session"


class SessionEventPublisher:
    """Publishes session events using pubsub.pub."""

    def __init__(self, topic: str = SESSION_TOPIC):
        """Initialize session event publisher.

        Args:
            topic: Pub/sub topic name for session events
        """
        self.topic = topic
        logger.info(f"SessionEventPublisher initialized with topic: {topic}")

    def publish(self, event: SessionEvent) -> None:
        """Publish a session event to the pub/sub topic.

        Args:
            event: SessionEvent to publish
        """
        try:
            pub.sendMessage(self.topic, event=event)
        except Exception as e:
            # Listener errors never reach the capture session
            logger.error(f"Listener failed for {event.event_type} event: {e}", exc_info=True)

    def emit(self, event_type: str, session_id: str, **metadata: Any) -> None:
        """Build and publish an event in one call."""
        self.publish(SessionEvent(event_type=event_type, session_id=session_id, metadata=metadata))
