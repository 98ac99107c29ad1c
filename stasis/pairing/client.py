"""Client for the rendezvous service that pairs the phone with this machine.

The phone registers a 6-character code; this machine attaches its address
and port to the code with ``register_pc``; the phone then polls
``check-connection`` until it sees the address and connects to the ingest
port directly.
"""

import asyncio
import logging
import socket
from dataclasses import dataclass
from typing import Any, Dict, Optional

import aiohttp

from ..exceptions import PairingError

logger = logging.getLogger(__name__)


CODE_LENGTH = 6


@dataclass
class PairingStatus:
    """Pairing state of one code as reported by the service."""
    paired: bool
    ip: Optional[str] = None
    port: Optional[int] = None


def validate_code(code: str) -> str:
    """Return the code if it has the length the service accepts."""
    if not isinstance(code, str) or len(code) != CODE_LENGTH:
        raise PairingError(f"Pairing code must be {CODE_LENGTH} characters, got {code!r}")
    return code


def detect_local_ip(probe_host: str = "8.8.8.8") -> str:
    """Best-effort address of the interface used for outbound traffic.

    No packet is sent: connecting a UDP socket only selects a route.
    """
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        sock.connect((probe_host, 80))
        return sock.getsockname()[0]
    except OSError as e:
        logger.warning(f"Could not detect local IP, falling back to loopback: {e}")
        return "127.0.0.1"
    finally:
        sock.close()


class PairingClient:
    """Talks to the rendezvous service over HTTP."""

    def __init__(self, base_url: str, timeout: float = 10.0):
        """Initialize pairing client.

        Args:
            base_url: Root URL of the rendezvous service
            timeout: Total timeout per request in seconds
        """
        self.base_url = base_url.rstrip('/')
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        logger.info(f"PairingClient initialized for {self.base_url}")

    async def register_pc(self, code: str, ip: str, port: int) -> Dict[str, Any]:
        """Attach this machine's address to a code the phone registered.

        Args:
            code: Code shown on the phone
            ip: Address the phone should connect to
            port: Ingest port

        Returns:
            The service's JSON response

        Raises:
            PairingError: Unknown code, bad request or unreachable service
        """
        validate_code(code)
        payload = {"code": code, "pcIp": ip, "pcPort": port}
        result = await self._request("POST", "/register-pc", json=payload)
        logger.info(f"Registered {ip}:{port} for pairing code {code}")
        return result

    async def check_connection(self, code: str) -> PairingStatus:
        """Ask whether a code has been paired with a machine's address."""
        validate_code(code)
        data = await self._request("GET", "/check-connection", params={"code": code})
        if not data.get("paired"):
            return PairingStatus(paired=False)
        return PairingStatus(paired=True, ip=data.get("pcIp"), port=data.get("pcPort"))

    async def health(self) -> Dict[str, Any]:
        """Fetch the service's status document."""
        return await self._request("GET", "/")

    async def _request(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.request(method, url, **kwargs) as response:
                    if response.status != 200:
                        error_text = await response.text()
                        raise PairingError(f"Pairing service error: {response.status} - {error_text}")
                    return await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise PairingError(f"Pairing service unreachable at {url}: {e}") from e
