"""Console output for the receiver."""

from .console_reporter import ConsoleReporter

__all__ = ['ConsoleReporter']
