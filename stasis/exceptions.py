"""Exception hierarchy for the Stasis receiver."""


class StasisError(Exception):
    """Base class for all Stasis errors."""


class ConfigError(StasisError):
    """Configuration could not be loaded or is invalid."""


class ProtocolViolationError(StasisError):
    """The peer sent a length prefix outside the accepted bounds."""

    def __init__(self, length: int, max_frame_size: int):
        self.length = length
        self.max_frame_size = max_frame_size
        super().__init__(f"Invalid frame length {length} (allowed 1..{max_frame_size})")


class IncompleteFrameError(StasisError):
    """The stream ended before the requested number of bytes arrived.

    ``received`` is 0 when the stream closed before a single byte was read,
    which callers treat as a clean end-of-stream between frames.
    """

    def __init__(self, expected: int, received: int):
        self.expected = expected
        self.received = received
        super().__init__(f"Stream closed after {received} of {expected} bytes")


class EncoderError(StasisError):
    """The external encoder could not be launched or failed."""


class PairingError(StasisError):
    """The rendezvous service rejected a request or was unreachable."""
