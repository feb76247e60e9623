"""Application-level exception types for ucilink."""

from __future__ import annotations


class UciLinkError(Exception):
    """Base exception for ucilink."""


class ConfigurationError(UciLinkError):
    """Raised when settings cannot be used to start an engine."""


class TransportClosedError(UciLinkError, OSError):
    """Raised when the engine's streams are closed or the process has exited."""


class EngineUnresponsiveError(UciLinkError, TimeoutError):
    """Raised when no line matching the expected prefix arrived in time."""

    def __init__(self, command: str, expected: str, timeout: float) -> None:
        super().__init__(f"No line starting with {expected!r} within {timeout}s after {command!r}")
        self.command = command
        self.expected = expected
        self.timeout = timeout


class CommandInFlightError(UciLinkError):
    """Raised when a command is sent while another is still awaiting its match."""

    def __init__(self, outstanding: str) -> None:
        super().__init__(f"Command {outstanding!r} is still awaiting its response")
        self.outstanding = outstanding
