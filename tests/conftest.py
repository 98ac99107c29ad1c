"""Pytest configuration and fixtures for Stasis tests."""

import os
import stat
import tempfile
import logging
from pathlib import Path

import pytest


# Configure logging for tests
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests of a single component")
    config.addinivalue_line("markers", "integration: tests that exercise sockets and subprocesses")


@pytest.fixture
def temp_data_dir():
    """Create temporary directory for test data."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield temp_dir


@pytest.fixture
def sample_jpeg():
    """A tiny payload that starts and ends like a JPEG."""
    return b'\xff\xd8\xff\xe0' + b'\x00\x10JFIF' + bytes(range(64)) + b'\xff\xd9'


@pytest.fixture
def sample_frames(sample_jpeg):
    """Three distinct frame payloads."""
    return [sample_jpeg + bytes([i]) * (i + 1) for i in range(3)]


def _write_script(directory: Path, name: str, body: str) -> str:
    path = Path(directory) / name
    path.write_text("#!/bin/sh\n" + body)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(path)


@pytest.fixture
def encoder_bin_dir():
    """Directory for fake encoder scripts, outside any session tree."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def fake_encoder(encoder_bin_dir):
    """Encoder that writes its last argument (the artifact) and records its cwd."""
    return _write_script(encoder_bin_dir, "ffmpeg-ok", (
        'for last; do :; done\n'
        'pwd > "$last.cwd"\n'
        "printf 'fake video' > \"$last\"\n"
    ))


@pytest.fixture
def failing_encoder(encoder_bin_dir):
    """Encoder that prints a diagnostic and exits non-zero."""
    return _write_script(encoder_bin_dir, "ffmpeg-fail", (
        'echo "encoder exploded" >&2\n'
        'exit 1\n'
    ))


@pytest.fixture
def partial_encoder(encoder_bin_dir):
    """Encoder that leaves a partial artifact behind and then fails."""
    return _write_script(encoder_bin_dir, "ffmpeg-partial", (
        'for last; do :; done\n'
        "printf 'half a video' > \"$last\"\n"
        'exit 1\n'
    ))


@pytest.fixture
def silent_encoder(encoder_bin_dir):
    """Encoder that exits 0 without producing anything."""
    return _write_script(encoder_bin_dir, "ffmpeg-silent", 'exit 0\n')


@pytest.fixture
def missing_encoder(encoder_bin_dir):
    """Path to an encoder that does not exist."""
    return str(encoder_bin_dir / "no-such-ffmpeg")


def _write_frames(directory: Path, payloads) -> Path:
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    for index, payload in enumerate(payloads):
        (directory / f"{index:06d}.jpg").write_bytes(payload)
    return directory


@pytest.fixture
def write_frames():
    """Lay out frames the way the session store names them."""
    return _write_frames


class EventCollector:
    """Keeps every session event published on a topic."""

    def __init__(self):
        self.events = []

    def on_event(self, event):
        self.events.append(event)

    def types(self):
        return [event.event_type for event in self.events]


@pytest.fixture
def event_collector():
    """Collector subscribed to a topic private to one test."""
    from pubsub import pub

    collector = EventCollector()
    topic = f"stasis_test.t{os.getpid()}_{id(collector)}"
    pub.subscribe(collector.on_event, topic)
    collector.topic = topic
    yield collector
    pub.unsubscribe(collector.on_event, topic)
