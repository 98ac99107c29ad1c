"""File management for capture sessions and their frames."""

import os
import logging
from pathlib import Path
from datetime import datetime
from typing import Dict, Any, Optional, List

from ..models.frame import FRAME_EXTENSION, Frame
from ..models.encoding import VIDEO_EXTENSION
from ..models.session import CaptureSession


logger = logging.getLogger(__name__)


APP_DIR_NAME = "Stasis"
SESSION_PREFIX = "session-"
LOGS_DIR_NAME = "logs"


class SessionStore:
    """Writes the frames of one session as dense, zero-padded files."""

    def __init__(self, session: CaptureSession):
        """Initialize store for an open session.

        Args:
            session: Session whose directory and counter this store owns
        """
        self.session = session

    @property
    def directory(self) -> Path:
        return self.session.directory

    def save(self, payload: bytes) -> Path:
        """Write the payload as the next frame and advance the counter.

        Args:
            payload: Raw encoded image bytes, written verbatim

        Returns:
            Path of the written frame file
        """
        if self.session.is_closed:
            raise RuntimeError(f"Session {self.session.session_id} is closed")

        frame = Frame(index=self.session.frame_count, data=payload)
        frame_path = self.directory / frame.filename
        partial_path = frame_path.with_name(frame_path.name + ".part")

        try:
            with open(partial_path, 'wb') as f:
                f.write(frame.data)
            os.replace(partial_path, frame_path)
        except Exception as e:
            logger.error(f"Error saving frame {frame_path.name}: {e}")
            partial_path.unlink(missing_ok=True)
            raise

        self.session.frame_count += 1
        logger.debug(f"Frame saved: {frame_path} ({len(frame.data)} bytes)")
        return frame_path


class FileManager:
    """Manages the on-disk layout of capture sessions under the videos root."""

    def __init__(self, videos_root: str):
        """Initialize file manager with the videos root directory.

        Args:
            videos_root: Base directory; sessions live under ``<root>/Stasis``
        """
        self.videos_root = Path(videos_root)
        self.app_dir = self.videos_root / APP_DIR_NAME

        self.app_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"FileManager initialized with videos_root: {self.videos_root}")

    def create_session_directory(self, now: Optional[datetime] = None) -> Path:
        """Create a new session directory grouped by day.

        Args:
            now: Timestamp to derive the names from (defaults to now)

        Returns:
            Path to ``<root>/Stasis/<YYYY-MM-DD>/session-<HHmmss>``. A numeric
            suffix is appended when a session already started in the same
            second.
        """
        now = now or datetime.now()
        day_dir = self.app_dir / now.strftime("%Y-%m-%d")
        day_dir.mkdir(parents=True, exist_ok=True)

        base_name = f"{SESSION_PREFIX}{now.strftime('%H%M%S')}"
        candidate = day_dir / base_name
        suffix = 0
        while True:
            try:
                candidate.mkdir()
                break
            except FileExistsError:
                suffix += 1
                candidate = day_dir / f"{base_name}-{suffix}"

        logger.info(f"Created session directory: {candidate}")
        return candidate

    def list_sessions(self) -> List[Path]:
        """List all session directories, oldest first.

        Returns:
            Session directory paths sorted by day and time
        """
        sessions = []
        for day_dir in sorted(p for p in self.app_dir.iterdir() if p.is_dir()):
            for path in day_dir.iterdir():
                if path.is_dir() and path.name.startswith(SESSION_PREFIX):
                    sessions.append(path)

        sessions.sort()
        logger.debug(f"Found {len(sessions)} sessions")
        return sessions

    def list_pending_sessions(self) -> List[Path]:
        """List sessions that still hold frames, e.g. after a failed encode."""
        return [path for path in self.list_sessions() if list_frame_files(path)]

    def get_storage_stats(self) -> Dict[str, Any]:
        """Get storage usage statistics of sessions and videos.

        Returns:
            Dictionary with storage statistics; the logs directory is not counted
        """
        try:
            total_size = 0
            frame_files = 0
            video_files = 0
            logs_dir = self.app_dir / LOGS_DIR_NAME

            for file_path in self.app_dir.rglob("*"):
                if not file_path.is_file() or logs_dir in file_path.parents:
                    continue
                total_size += file_path.stat().st_size
                if file_path.suffix == FRAME_EXTENSION:
                    frame_files += 1
                elif file_path.suffix == VIDEO_EXTENSION:
                    video_files += 1

            return {
                "total_size_bytes": total_size,
                "total_size_mb": round(total_size / (1024 * 1024), 2),
                "session_count": len(self.list_sessions()),
                "frame_files": frame_files,
                "video_files": video_files,
                "videos_root": str(self.videos_root),
            }

        except OSError as e:
            logger.error(f"Error getting storage stats: {e}")
            return {}


def list_frame_files(directory: Path) -> List[Path]:
    """Frame files in a session directory, in index order."""
    directory = Path(directory)
    if not directory.is_dir():
        return []
    return sorted(directory.glob(f"*{FRAME_EXTENSION}"))
