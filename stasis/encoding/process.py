"""Handle around the external encoder subprocess."""

import asyncio
import logging
from pathlib import Path
from typing import List, Optional

from ..exceptions import EncoderError

logger = logging.getLogger(__name__)


class EncoderProcess:
    """Runs one encoder invocation and captures its output.

    stdout and stderr are drained concurrently with the exit wait so a full
    pipe buffer can never stall the child.
    """

    def __init__(self, args: List[str], cwd: Path):
        """Initialize process handle.

        Args:
            args: Executable followed by its arguments
            cwd: Working directory of the child
        """
        self.args = list(args)
        self.cwd = Path(cwd)
        self.returncode: Optional[int] = None
        self.stdout_text = ""
        self.stderr_text = ""
        self._process: Optional[asyncio.subprocess.Process] = None

    @property
    def started(self) -> bool:
        return self._process is not None

    async def start(self) -> None:
        """Launch the child process.

        Raises:
            EncoderError: If the executable cannot be started
        """
        if self.started:
            raise EncoderError("Encoder process already started")

        logger.debug(f"Launching encoder in {self.cwd}: {' '.join(self.args)}")
        try:
            self._process = await asyncio.create_subprocess_exec(
                *self.args,
                cwd=str(self.cwd),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise EncoderError(f"Failed to launch encoder '{self.args[0]}': {e}") from e

        logger.info(f"Encoder started (pid {self._process.pid})")

    async def wait(self) -> int:
        """Wait for exit with both output streams fully captured.

        Returns:
            The exit code
        """
        if not self.started:
            raise EncoderError("Encoder process not started")

        stdout, stderr = await self._process.communicate()
        self.stdout_text = stdout.decode('utf-8', errors='replace') if stdout else ""
        self.stderr_text = stderr.decode('utf-8', errors='replace') if stderr else ""
        self.returncode = self._process.returncode

        logger.info(f"Encoder exited with code {self.returncode}")
        return self.returncode

    async def run(self) -> int:
        """Start the process and wait for it to finish."""
        await self.start()
        return await self.wait()
