"""Unit tests for the encoding pipeline and encoder process handle."""

import asyncio
import sys
from pathlib import Path

import pytest

from stasis.encoding.pipeline import EncodingPipeline, build_encoder_args
from stasis.encoding.process import EncoderProcess
from stasis.exceptions import EncoderError
from stasis.models.encoding import EncodeJob


requires_posix_shell = pytest.mark.skipif(sys.platform == "win32", reason="fake encoders are POSIX shell scripts")


def encode(session_dir, encoder, fps=30):
    return asyncio.run(EncodingPipeline().encode_and_clean(session_dir, fps, encoder))


@pytest.fixture
def session_dir(temp_data_dir, write_frames, sample_frames):
    return write_frames(Path(temp_data_dir) / "2024-03-09" / "session-140507", sample_frames)


@pytest.mark.unit
class TestEncoderArgs:

    def test_job_targets_sibling_artifact(self, temp_data_dir):
        session_dir = Path(temp_data_dir) / "session-140507"

        job = EncodeJob.for_session(session_dir, 24, "ffmpeg")

        assert job.target_path == Path(temp_data_dir) / "session-140507.mp4"
        assert job.source_dir == session_dir

    def test_build_encoder_args(self, temp_data_dir):
        job = EncodeJob.for_session(Path(temp_data_dir) / "session-140507", 24, "/usr/bin/ffmpeg")

        args = build_encoder_args(job)

        assert args[0] == "/usr/bin/ffmpeg"
        assert args[args.index("-framerate") + 1] == "24"
        assert args[args.index("-i") + 1] == "%06d.jpg"
        assert args[args.index("-c:v") + 1] == "libx264"
        assert args[args.index("-preset") + 1] == "fast"
        assert args[args.index("-pix_fmt") + 1] == "yuv420p"
        assert args[args.index("-movflags") + 1] == "+faststart"
        assert args[-1] == str(job.target_path)


@requires_posix_shell
@pytest.mark.unit
class TestEncodingPipeline:
    """Test cases for EncodingPipeline.encode_and_clean."""

    def test_success_produces_artifact_and_removes_frames(self, session_dir, fake_encoder):
        result = encode(session_dir, fake_encoder)

        artifact = session_dir.parent / "session-140507.mp4"
        assert result.success
        assert result.artifact == artifact
        assert artifact.read_bytes() == b'fake video'
        assert result.frames_found == 3
        assert result.frames_deleted == 3
        assert list(session_dir.glob("*.jpg")) == []
        assert session_dir.is_dir()

    def test_encoder_runs_inside_session_directory(self, session_dir, fake_encoder):
        encode(session_dir, fake_encoder)

        cwd_file = session_dir.parent / "session-140507.mp4.cwd"
        assert Path(cwd_file.read_text().strip()).resolve() == session_dir.resolve()

    def test_failure_keeps_frames_and_reports_stderr(self, session_dir, failing_encoder, sample_frames):
        result = encode(session_dir, failing_encoder)

        assert not result.success
        assert result.returncode == 1
        assert "encoder exploded" in result.stderr
        assert [p.read_bytes() for p in sorted(session_dir.glob("*.jpg"))] == sample_frames
        assert not (session_dir.parent / "session-140507.mp4").exists()

    def test_failure_removes_partial_artifact(self, session_dir, partial_encoder):
        result = encode(session_dir, partial_encoder)

        assert not result.success
        assert not (session_dir.parent / "session-140507.mp4").exists()
        assert len(list(session_dir.glob("*.jpg"))) == 3

    def test_zero_exit_without_artifact_is_failure(self, session_dir, silent_encoder):
        result = encode(session_dir, silent_encoder)

        assert not result.success
        assert result.returncode == 0
        assert len(list(session_dir.glob("*.jpg"))) == 3

    def test_missing_encoder_is_caught(self, session_dir, missing_encoder):
        result = encode(session_dir, missing_encoder)

        assert not result.success
        assert result.returncode is None
        assert "Failed to launch encoder" in result.stderr
        assert len(list(session_dir.glob("*.jpg"))) == 3

    def test_empty_directory_is_skipped(self, temp_data_dir, fake_encoder):
        empty = Path(temp_data_dir) / "session-000000"
        empty.mkdir()

        result = encode(empty, fake_encoder)

        assert result.skipped
        assert result.skipped_reason == "no frames"
        assert not (Path(temp_data_dir) / "session-000000.mp4").exists()

    def test_missing_directory_is_skipped(self, temp_data_dir, fake_encoder):
        result = encode(Path(temp_data_dir) / "session-000000", fake_encoder)

        assert result.skipped
        assert result.skipped_reason == "missing directory"

    def test_failed_frame_deletion_does_not_abort_cleanup(self, session_dir, fake_encoder, monkeypatch):
        original_unlink = Path.unlink

        def flaky_unlink(self, *args, **kwargs):
            if self.name == "000001.jpg":
                raise PermissionError("locked")
            return original_unlink(self, *args, **kwargs)

        monkeypatch.setattr(Path, "unlink", flaky_unlink)

        result = encode(session_dir, fake_encoder)

        assert result.success
        assert result.frames_deleted == 2
        assert [p.name for p in session_dir.glob("*.jpg")] == ["000001.jpg"]

    def test_gap_in_sequence_keeps_every_frame(self, session_dir, fake_encoder):
        (session_dir / "000001.jpg").unlink()

        result = encode(session_dir, fake_encoder)

        assert not result.success
        assert result.skipped_reason == "non-contiguous frames"
        assert result.frames_found == 2
        assert result.frames_deleted == 0
        assert [p.name for p in sorted(session_dir.glob("*.jpg"))] == ["000000.jpg", "000002.jpg"]
        assert not (session_dir.parent / "session-140507.mp4").exists()


@requires_posix_shell
@pytest.mark.unit
class TestEncoderProcess:

    def test_captures_both_streams(self, temp_data_dir):
        process = EncoderProcess(["/bin/sh", "-c", "echo out; echo err >&2; exit 3"], cwd=Path(temp_data_dir))

        returncode = asyncio.run(process.run())

        assert returncode == 3
        assert process.returncode == 3
        assert process.stdout_text.strip() == "out"
        assert process.stderr_text.strip() == "err"

    def test_large_output_does_not_deadlock(self, temp_data_dir):
        # Well past a typical 64 KiB pipe buffer on both streams
        script = "head -c 300000 /dev/zero; head -c 300000 /dev/zero >&2"
        process = EncoderProcess(["/bin/sh", "-c", script], cwd=Path(temp_data_dir))

        returncode = asyncio.run(asyncio.wait_for(process.run(), timeout=10))

        assert returncode == 0
        assert len(process.stdout_text) == 300000
        assert len(process.stderr_text) == 300000

    def test_wait_before_start_raises(self, temp_data_dir):
        process = EncoderProcess(["/bin/true"], cwd=Path(temp_data_dir))

        with pytest.raises(EncoderError):
            asyncio.run(process.wait())
