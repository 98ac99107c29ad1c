"""Console reporter that prints session progress as it happens."""

import logging
from typing import Optional

from pubsub import pub
from rich.console import Console

from ..events.publisher import SESSION_TOPIC
from ..models import events
from ..models.events import SessionEvent

logger = logging.getLogger(__name__)


class ConsoleReporter:
    """Subscribes to session events and prints them with rich."""

    def __init__(self, topic: str = SESSION_TOPIC, console: Optional[Console] = None,
                 frame_report_interval: int = 100):
        """Initialize console reporter.

        Args:
            topic: Topic for session events
            console: Console to print to (a new one if None)
            frame_report_interval: Print a progress line every N frames (0 disables)
        """
        self.topic = topic
        self.console = console or Console()
        self.frame_report_interval = frame_report_interval
        self.subscribed = False

    def subscribe(self) -> None:
        if not self.subscribed:
            pub.subscribe(self.on_event, self.topic)
            self.subscribed = True
            logger.debug(f"ConsoleReporter subscribed to {self.topic}")

    def unsubscribe(self) -> None:
        if self.subscribed:
            pub.unsubscribe(self.on_event, self.topic)
            self.subscribed = False

    def on_event(self, event: SessionEvent) -> None:
        """Handle a session event."""
        meta = event.metadata
        if event.event_type == events.SESSION_STARTED:
            self.console.print(f"📱 Connected: {meta.get('peer', 'unknown peer')}", style="green")
            self.console.print(f"📁 Saving frames to {meta.get('directory')}", style="blue")
        elif event.event_type == events.FRAME_SAVED:
            count = meta.get('frame_count', 0)
            if self.frame_report_interval and count % self.frame_report_interval == 0:
                self.console.print(f"   {count} frames received", style="dim")
        elif event.event_type == events.SESSION_CLOSED:
            outcome = meta.get('outcome', 'unknown')
            style = "yellow" if outcome == "clean_eof" else "red"
            self.console.print(f"🔌 Disconnected after {meta.get('frame_count', 0)} frames ({outcome})",
                               style=style)
        elif event.event_type == events.SESSION_ENCODED:
            if meta.get('success'):
                self.console.print(f"🎬 Video saved: {meta.get('artifact')} "
                                   f"({meta.get('frames_deleted', 0)} frames cleaned up)", style="green")
            elif meta.get('skipped_reason') and not meta.get('frames_found'):
                self.console.print(f"⏭️  Nothing to encode ({meta['skipped_reason']})", style="dim")
            elif meta.get('skipped_reason'):
                self.console.print(f"❌ Not encoded ({meta['skipped_reason']}); "
                                   f"frames kept in {meta.get('directory')}", style="red")
            else:
                self.console.print(f"❌ Encoding failed (exit code {meta.get('returncode')}); "
                                   f"frames kept in {meta.get('directory')}", style="red")
