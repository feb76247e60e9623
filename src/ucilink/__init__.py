"""ucilink - drive a UCI engine one command at a time."""

from .channel import LineChannel, ProcessLineChannel
from .commands import Command
from .dispatcher import CommandDispatcher, CommandExecuted, DispatcherState
from .engine import UciEngine
from .errors import (
    CommandInFlightError,
    ConfigurationError,
    EngineUnresponsiveError,
    TransportClosedError,
    UciLinkError,
)

__version__ = "0.1.0"

__all__ = [
    "Command",
    "CommandDispatcher",
    "CommandExecuted",
    "CommandInFlightError",
    "ConfigurationError",
    "DispatcherState",
    "EngineUnresponsiveError",
    "LineChannel",
    "ProcessLineChannel",
    "TransportClosedError",
    "UciEngine",
    "UciLinkError",
]
