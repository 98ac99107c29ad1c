"""Main application entry point for the Stasis receiver."""

import sys
import signal
import asyncio
import argparse
import logging
from pathlib import Path
from typing import Optional

from .config import StasisConfig
from .encoding.pipeline import EncodingPipeline
from .events.publisher import SessionEventPublisher
from .exceptions import PairingError, StasisError
from .pairing.client import PairingClient, detect_local_ip
from .services.listener import IngestServer
from .services.session_manager import SessionManager
from .storage.file_manager import FileManager
from .ui.console_reporter import ConsoleReporter

logger = logging.getLogger(__name__)


class Server:

    def __init__(self, config: StasisConfig):
        self.config = config
        self.file_manager = FileManager(str(config.get_videos_root()))
        self.publisher = SessionEventPublisher()
        self.reporter = ConsoleReporter(self.publisher.topic)
        self.session_manager = SessionManager(
            file_manager=self.file_manager,
            fps=config.get_fps(),
            encoder_path=config.get('encoding.encoder_path', 'ffmpeg'),
            publisher=self.publisher,
            max_frame_size=config.get_max_frame_size(),
        )
        self.ingest_server = IngestServer(
            self.session_manager,
            host=config.get('server.host', '0.0.0.0'),
            port=config.get_port(),
        )

    async def run(self) -> None:
        """Listen until SIGINT/SIGTERM, pairing with the phone first if configured."""
        self.reporter.subscribe()
        await self.ingest_server.start()
        self._install_signal_handlers()

        console = self.reporter.console
        console.print(f"📡 Listening on port {self.ingest_server.port}; "
                      f"sessions go to {self.file_manager.app_dir}", style="bold")

        await self._register_with_pairing_service()

        try:
            await self.ingest_server.serve()
        finally:
            self.reporter.unsubscribe()

    async def _register_with_pairing_service(self) -> None:
        signaling_url = self.config.get('pairing.signaling_url')
        code = self.config.get('pairing.code')
        if not signaling_url or not code:
            return

        client = PairingClient(signaling_url)
        ip = detect_local_ip()
        try:
            await client.register_pc(str(code), ip, self.ingest_server.port)
            self.reporter.console.print(f"🔗 Paired code {code} with {ip}:{self.ingest_server.port}",
                                        style="green")
        except PairingError as e:
            logger.error(f"Pairing failed: {e}")
            self.reporter.console.print(f"⚠️  Pairing failed: {e}", style="yellow")

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.ingest_server.request_stop)
            except (NotImplementedError, RuntimeError):
                signal.signal(sig, lambda signum, frame: loop.call_soon_threadsafe(
                    self.ingest_server.request_stop))


def setup_logging(config: StasisConfig, level: str = "INFO") -> None:
    """Set up logging configuration from YAML config."""
    log_file_path = config.get_log_file_path()
    console_output = config.get('logging.console_output', True)

    log_file_path.parent.mkdir(parents=True, exist_ok=True)

    handlers = []

    file_handler = logging.FileHandler(log_file_path)
    file_handler.setLevel(logging.DEBUG)
    file_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
    )
    file_handler.setFormatter(file_formatter)
    handlers.append(file_handler)

    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logging.WARNING)  # Progress goes through the console reporter
        console_formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        console_handler.setFormatter(console_formatter)
        handlers.append(console_handler)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper()))
    for handler in handlers:
        root_logger.addHandler(handler)

    logger.info("=" * 50)
    logger.info("Stasis receiver starting up")
    logger.info(f"Log file: {log_file_path}")
    logger.info(f"Log level set to: {level}")
    logger.info("=" * 50)


def apply_overrides(config: StasisConfig, args: argparse.Namespace) -> None:
    """Copy command line options that were given onto the configuration."""
    overrides = {
        'server.host': getattr(args, 'host', None),
        'server.port': getattr(args, 'port', None),
        'storage.videos_root': getattr(args, 'videos_root', None),
        'encoding.fps': getattr(args, 'fps', None),
        'encoding.encoder_path': getattr(args, 'encoder', None),
        'pairing.signaling_url': getattr(args, 'signaling_url', None),
        'pairing.code': getattr(args, 'pair_code', None),
        'logging.level': getattr(args, 'log_level', None),
    }
    for key, value in overrides.items():
        if value is not None:
            config.set(key, value)


def run_encode(config: StasisConfig, session_dir: str) -> int:
    """Re-run the encoding pipeline on a session left with frames."""
    result = asyncio.run(EncodingPipeline().encode_and_clean(
        Path(session_dir), config.get_fps(), config.get('encoding.encoder_path', 'ffmpeg')))

    if result.success:
        print(f"🎬 Video saved: {result.artifact} ({result.frames_deleted} frames cleaned up)")
        return 0
    if result.skipped and not result.frames_found:
        print(f"⏭️  Nothing to encode in {session_dir} ({result.skipped_reason})")
        return 0
    if result.skipped:
        print(f"❌ Not encoded ({result.skipped_reason}); {result.frames_found} frames kept in {session_dir}")
        return 1
    print(f"❌ Encoding failed (exit code {result.returncode})")
    if result.stderr:
        print(result.stderr.strip())
    return 1


def run_list(config: StasisConfig) -> int:
    """Print sessions that still hold frames."""
    file_manager = FileManager(str(config.get_videos_root()))
    pending = file_manager.list_pending_sessions()
    stats = file_manager.get_storage_stats()
    print(f"{stats.get('session_count', 0)} sessions, {stats.get('video_files', 0)} videos, "
          f"{stats.get('total_size_mb', 0)} MB in {file_manager.app_dir}")
    if not pending:
        print("No sessions waiting for encoding")
        return 0
    for path in pending:
        print(path)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Stasis - receive camera frames from the phone and turn them into videos",
    )
    parser.add_argument(
        "--config",
        type=str,
        help="Path to configuration YAML file (default: built-in settings)"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set logging level (default: INFO)"
    )
    parser.add_argument(
        "--videos-root",
        type=str,
        help="Directory under which the Stasis folder is created (default: ~/Videos)"
    )
    parser.add_argument(
        "--version",
        action="version",
        version="Stasis receiver v0.1.0"
    )

    subparsers = parser.add_subparsers(dest="command")

    serve = subparsers.add_parser("serve", help="Accept capture sessions (default)")
    serve.add_argument("--host", type=str, help="Interface to listen on (default: 0.0.0.0)")
    serve.add_argument("--port", type=int, help="TCP port to listen on (default: 5000)")
    serve.add_argument("--fps", type=int, help="Frame rate of encoded videos (default: 30)")
    serve.add_argument("--encoder", type=str, help="Path to the ffmpeg executable")
    serve.add_argument("--pair-code", type=str, help="6-character code shown on the phone")
    serve.add_argument("--signaling-url", type=str, help="Base URL of the pairing service")

    encode = subparsers.add_parser("encode", help="Encode a session directory that still holds frames")
    encode.add_argument("session_dir", type=str, help="Session directory with 000000.jpg ...")
    encode.add_argument("--fps", type=int, help="Frame rate of the video (default: 30)")
    encode.add_argument("--encoder", type=str, help="Path to the ffmpeg executable")

    subparsers.add_parser("list", help="List sessions waiting for encoding")

    return parser


def main(argv: Optional[list] = None) -> None:
    """Main entry point for the Stasis receiver."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = StasisConfig(args.config)
        apply_overrides(config, args)
        setup_logging(config, config.get('logging.level', 'INFO'))

        if args.command == "encode":
            sys.exit(run_encode(config, args.session_dir))
        if args.command == "list":
            sys.exit(run_list(config))

        server = Server(config)
        asyncio.run(server.run())
        print("\n👋 Goodbye!")
    except KeyboardInterrupt:
        print("\n👋 Goodbye!")
    except (StasisError, FileNotFoundError, OSError) as e:
        print(f"❌ Error: {e}")
        logging.error(f"Application error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
