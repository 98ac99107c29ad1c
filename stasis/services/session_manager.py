"""Session manager: runs decode, store and encode for one capture session."""

import asyncio
import logging
from datetime import datetime
from typing import Optional

from ..encoding.pipeline import EncodingPipeline
from ..events.publisher import SessionEventPublisher
from ..exceptions import IncompleteFrameError, ProtocolViolationError
from ..models import events
from ..models.frame import MAX_FRAME_SIZE
from ..models.session import CaptureSession, SessionOutcome, SessionSummary
from ..protocol.decoder import FrameDecoder
from ..storage.file_manager import FileManager, SessionStore

logger = logging.getLogger(__name__)


class SessionManager:
    """Owns the lifecycle of capture sessions, one at a time."""

    def __init__(self,
                 file_manager: FileManager,
                 fps: int,
                 encoder_path: str,
                 pipeline: Optional[EncodingPipeline] = None,
                 publisher: Optional[SessionEventPublisher] = None,
                 max_frame_size: int = MAX_FRAME_SIZE):
        """Initialize session manager.

        Args:
            file_manager: Layout of session directories on disk
            fps: Frame rate of the encoded videos
            encoder_path: ffmpeg executable
            pipeline: Encoding pipeline (a default one if None)
            publisher: Session event publisher (a default one if None)
            max_frame_size: Largest accepted frame payload
        """
        if not 0 < max_frame_size <= MAX_FRAME_SIZE:
            raise ValueError(f"max_frame_size must be in 1..{MAX_FRAME_SIZE}, got {max_frame_size}")
        self.file_manager = file_manager
        self.fps = fps
        self.encoder_path = encoder_path
        self.pipeline = pipeline or EncodingPipeline()
        self.publisher = publisher or SessionEventPublisher()
        self.max_frame_size = max_frame_size
        logger.info(f"SessionManager initialized: {fps} fps, encoder={encoder_path}")

    def open_session(self, peer: str = "") -> CaptureSession:
        """Create the directory and state for a freshly accepted connection.

        Args:
            peer: Remote address, for reporting

        Returns:
            A new open session with its counter at zero
        """
        started_at = datetime.now()
        directory = self.file_manager.create_session_directory(started_at)
        session = CaptureSession(
            session_id=directory.name,
            directory=directory,
            started_at=started_at,
            peer=peer,
        )
        logger.info(f"Opened session {session.session_id} for {peer or 'unknown peer'}: {directory}")
        self.publisher.emit(events.SESSION_STARTED, session.session_id,
                            peer=peer, directory=str(directory))
        return session

    async def receive(self, session: CaptureSession, reader: asyncio.StreamReader) -> SessionOutcome:
        """Store every frame arriving on the reader until the stream ends.

        Args:
            session: Open session to write frames into
            reader: Stream of the accepted connection

        Returns:
            How the stream ended
        """
        decoder = FrameDecoder(reader, max_frame_size=self.max_frame_size)
        store = SessionStore(session)

        try:
            async for payload in decoder.frames():
                store.save(payload)
                self.publisher.emit(events.FRAME_SAVED, session.session_id,
                                    frame_count=session.frame_count, size=len(payload))
        except ProtocolViolationError as e:
            logger.error(f"Protocol violation in session {session.session_id}: {e}")
            return SessionOutcome.PROTOCOL_VIOLATION
        except IncompleteFrameError as e:
            logger.warning(f"Truncated frame in session {session.session_id}: {e}")
            return SessionOutcome.TRUNCATED
        except OSError as e:
            logger.error(f"I/O error in session {session.session_id}: {e}")
            return SessionOutcome.TRANSPORT_ERROR

        return SessionOutcome.CLEAN_EOF

    async def finish_session(self, session: CaptureSession, outcome: SessionOutcome) -> SessionSummary:
        """Close the session and hand its directory to the encoding pipeline.

        Args:
            session: Session to close
            outcome: How its stream ended

        Returns:
            Summary including the encode result
        """
        session.close(outcome)
        duration = (session.closed_at - session.started_at).total_seconds()
        logger.info(f"Session {session.session_id} closed: {session.frame_count} frames, "
                    f"{outcome.value}, {duration:.1f}s")
        self.publisher.emit(events.SESSION_CLOSED, session.session_id,
                            frame_count=session.frame_count, outcome=outcome.value)

        result = await self.pipeline.encode_and_clean(session.directory, self.fps, self.encoder_path)
        self.publisher.emit(events.SESSION_ENCODED, session.session_id,
                            success=result.success,
                            artifact=str(result.artifact) if result.artifact else None,
                            returncode=result.returncode,
                            frames_found=result.frames_found,
                            frames_deleted=result.frames_deleted,
                            skipped_reason=result.skipped_reason,
                            directory=str(session.directory))

        return SessionSummary(
            session_id=session.session_id,
            directory=session.directory,
            frame_count=session.frame_count,
            outcome=outcome,
            encode_result=result,
            duration_seconds=duration,
        )
