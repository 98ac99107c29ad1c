"""TCP listener that accepts capture sessions strictly one after another."""

import asyncio
import logging
import socket
from typing import List, Optional, Tuple

from ..models.session import CaptureSession, SessionOutcome, SessionSummary
from .session_manager import SessionManager

logger = logging.getLogger(__name__)


class IngestServer:
    """Accepts one connection at a time and runs each session to completion.

    The next connection is only accepted after the previous session's frames
    have been drained and its encode step has finished. ``request_stop()``
    interrupts the wait for a connection and the wait for bytes, never an
    encode in progress.
    """

    def __init__(self, session_manager: SessionManager, host: str = "0.0.0.0", port: int = 5000):
        """Initialize ingest server.

        Args:
            session_manager: Runs decode, store and encode for each session
            host: Interface to bind
            port: TCP port to bind (0 picks a free port)
        """
        self.session_manager = session_manager
        self.host = host
        self.requested_port = port

        self.completed_sessions: List[SessionSummary] = []
        self.current_session: Optional[CaptureSession] = None

        self._socket: Optional[socket.socket] = None
        self._stop_event: Optional[asyncio.Event] = None

    @property
    def port(self) -> Optional[int]:
        """Port actually bound, once started."""
        if self._socket is None:
            return None
        return self._socket.getsockname()[1]

    @property
    def is_serving(self) -> bool:
        return self._socket is not None

    async def start(self) -> None:
        """Bind and listen. Accepting starts with ``serve()``."""
        if self._socket is not None:
            return

        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self.host, self.requested_port))
            sock.listen(1)
            sock.setblocking(False)
        except OSError:
            sock.close()
            raise

        self._socket = sock
        self._stop_event = asyncio.Event()
        logger.info(f"Listening on {self.host}:{self.port}")

    def request_stop(self) -> None:
        """Ask the accept loop to exit. Safe to call more than once."""
        if self._stop_event is not None and not self._stop_event.is_set():
            logger.info("Stop requested")
            self._stop_event.set()

    async def serve(self) -> None:
        """Accept and process sessions until ``request_stop()`` is called."""
        await self.start()
        loop = asyncio.get_running_loop()

        try:
            while not self._stop_event.is_set():
                accepted = await self._accept_or_stop(loop)
                if accepted is None:
                    break

                conn, address = accepted
                try:
                    await self._handle_connection(conn, address)
                except Exception as e:
                    logger.error(f"Session for {address} failed: {e}", exc_info=True)
        finally:
            self.close()
            logger.info(f"Listener stopped after {len(self.completed_sessions)} sessions")

    def close(self) -> None:
        if self._socket is not None:
            self._socket.close()
            self._socket = None

    async def _accept_or_stop(self, loop: asyncio.AbstractEventLoop) -> Optional[Tuple[socket.socket, tuple]]:
        """Wait for the next connection, or None once a stop is requested."""
        while True:
            accept_task = asyncio.ensure_future(loop.sock_accept(self._socket))
            stop_task = asyncio.ensure_future(self._stop_event.wait())
            done, _ = await asyncio.wait({accept_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)

            if stop_task in done:
                await _cancel(accept_task)
                if accept_task.done() and not accept_task.cancelled() and accept_task.exception() is None:
                    conn, address = accept_task.result()
                    logger.info(f"Dropping connection from {address}: shutting down")
                    conn.close()
                return None

            await _cancel(stop_task)
            try:
                return accept_task.result()
            except OSError as e:
                logger.error(f"Accept failed: {e}")
                await asyncio.sleep(0.1)

    async def _handle_connection(self, conn: socket.socket, address: tuple) -> None:
        peer = f"{address[0]}:{address[1]}" if len(address) >= 2 else str(address)
        logger.info(f"Accepted connection from {peer}")

        try:
            session = self.session_manager.open_session(peer)
        except Exception:
            conn.close()
            raise
        self.current_session = session
        outcome = SessionOutcome.TRANSPORT_ERROR
        try:
            reader, writer = await asyncio.open_connection(sock=conn)
            try:
                outcome = await self._receive_until_stopped(session, reader)
            finally:
                writer.close()
                try:
                    await writer.wait_closed()
                except OSError as e:
                    logger.debug(f"Error closing connection from {peer}: {e}")
        finally:
            summary = await self.session_manager.finish_session(session, outcome)
            self.completed_sessions.append(summary)
            self.current_session = None

    async def _receive_until_stopped(self, session: CaptureSession,
                                     reader: asyncio.StreamReader) -> SessionOutcome:
        receive_task = asyncio.ensure_future(self.session_manager.receive(session, reader))
        stop_task = asyncio.ensure_future(self._stop_event.wait())
        done, _ = await asyncio.wait({receive_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)

        if receive_task in done:
            await _cancel(stop_task)
            return receive_task.result()

        await _cancel(receive_task)
        if receive_task.done() and not receive_task.cancelled():
            return receive_task.result()
        logger.info(f"Session {session.session_id} cancelled after {session.frame_count} frames")
        return SessionOutcome.CANCELLED


async def _cancel(task: asyncio.Future) -> None:
    """Cancel a task and wait until it has actually finished."""
    if task.done():
        return
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
