"""Stasis receiver: ingests streamed camera frames and encodes them into videos."""

__version__ = "0.1.0"
