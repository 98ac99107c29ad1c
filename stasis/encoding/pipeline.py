"""Encoding pipeline: session frames in, one MP4 out, frames removed on success."""

import logging
from pathlib import Path
from typing import List

from ..exceptions import StasisError
from ..models.encoding import EncodeJob, EncodeResult
from ..models.frame import FRAME_EXTENSION, FRAME_INDEX_WIDTH, frame_filename
from ..storage.file_manager import list_frame_files
from .process import EncoderProcess

logger = logging.getLogger(__name__)


INPUT_PATTERN = f"%0{FRAME_INDEX_WIDTH}d{FRAME_EXTENSION}"
NON_CONTIGUOUS = "non-contiguous frames"


def build_encoder_args(job: EncodeJob) -> List[str]:
    """Build the ffmpeg command line for a job.

    The input pattern is relative, so the process must run inside
    ``job.source_dir``.
    """
    return [
        job.encoder_path,
        "-hide_banner",
        "-y",
        "-framerate",
        str(job.fps),
        "-i",
        INPUT_PATTERN,
        "-c:v",
        "libx264",
        "-preset",
        "fast",
        "-pix_fmt",
        "yuv420p",
        "-movflags",
        "+faststart",
        str(job.target_path),
    ]


class EncodingPipeline:
    """Turns a closed session directory into a video artifact."""

    async def encode_and_clean(self, session_dir: Path, target_fps: int, encoder_path: str) -> EncodeResult:
        """Encode a session's frames and delete them if the encode succeeded.

        Never raises: every failure is logged and returned as an unsuccessful
        result so the caller can go on accepting sessions.

        Args:
            session_dir: Closed session directory holding ``000000.jpg``...
            target_fps: Playback frame rate of the video
            encoder_path: Path or name of the ffmpeg executable

        Returns:
            EncodeResult describing what happened
        """
        try:
            return await self._encode_and_clean(Path(session_dir), target_fps, encoder_path)
        except Exception as e:
            logger.error(f"Encoding of {session_dir} failed: {e}", exc_info=not isinstance(e, StasisError))
            return EncodeResult(success=False, stderr=str(e))

    async def _encode_and_clean(self, session_dir: Path, target_fps: int, encoder_path: str) -> EncodeResult:
        if not session_dir.is_dir():
            logger.warning(f"Session directory does not exist, nothing to encode: {session_dir}")
            return EncodeResult(success=False, skipped_reason="missing directory")

        frames = list_frame_files(session_dir)
        if not frames:
            logger.info(f"No frames found in {session_dir}, nothing to encode")
            return EncodeResult(success=False, skipped_reason="no frames")

        if not self._is_contiguous(frames):
            logger.error(f"Frame sequence in {session_dir} is not contiguous; "
                         f"keeping {len(frames)} frames unencoded")
            return EncodeResult(success=False, frames_found=len(frames),
                                skipped_reason=NON_CONTIGUOUS)

        job = EncodeJob.for_session(session_dir, target_fps, encoder_path)
        logger.info(f"Encoding {len(frames)} frames at {target_fps} fps into {job.target_path}")

        process = EncoderProcess(build_encoder_args(job), cwd=job.source_dir)
        returncode = await process.run()

        if returncode == 0 and job.target_path.exists():
            deleted = self._delete_frames(frames)
            logger.info(f"Encoded {job.target_path} and deleted {deleted}/{len(frames)} frames")
            return EncodeResult(
                success=True,
                artifact=job.target_path,
                returncode=returncode,
                frames_found=len(frames),
                frames_deleted=deleted,
                stderr=process.stderr_text,
            )

        if returncode == 0:
            logger.error(f"Encoder reported success but {job.target_path} is missing; keeping frames")
        else:
            logger.error(f"Encoder failed with code {returncode}; keeping {len(frames)} frames in {session_dir}")
            self._discard_partial_artifact(job.target_path)
        if process.stderr_text:
            logger.error(f"Encoder stderr:\n{process.stderr_text.strip()}")

        return EncodeResult(
            success=False,
            returncode=returncode,
            frames_found=len(frames),
            stderr=process.stderr_text,
        )

    def _is_contiguous(self, frames: List[Path]) -> bool:
        """True if frame names are the dense 0..N-1 sequence ffmpeg reads."""
        expected = [frame_filename(i) for i in range(len(frames))]
        return [frame.name for frame in frames] == expected

    def _delete_frames(self, frames: List[Path]) -> int:
        """Delete frame files, skipping (and logging) any that fail."""
        deleted = 0
        for frame in frames:
            try:
                frame.unlink()
                deleted += 1
            except OSError as e:
                logger.warning(f"Could not delete {frame}: {e}")
        return deleted

    def _discard_partial_artifact(self, artifact: Path) -> None:
        if not artifact.exists():
            return
        try:
            artifact.unlink()
            logger.info(f"Removed partial artifact {artifact}")
        except OSError as e:
            logger.warning(f"Could not remove partial artifact {artifact}: {e}")
