"""Command values and the in-flight match slot."""

from __future__ import annotations

from concurrent.futures import Future
from dataclasses import dataclass, field

IS_READY = "isready"
READY_OK = "readyok"
QUIT = "quit"


@dataclass(frozen=True)
class Command:
    """One line to send plus the prefix of the line that completes it."""

    text: str
    expected_prefix: str = ""

    def __post_init__(self) -> None:
        if not self.text:
            raise ValueError("command text must not be empty")

    @property
    def uses_probe(self) -> bool:
        """Whether completion is signalled by the isready/readyok barrier."""
        return not self.expected_prefix

    @property
    def completion_prefix(self) -> str:
        return READY_OK if self.uses_probe else self.expected_prefix

    def lines(self) -> list[str]:
        if self.uses_probe:
            return [self.text, IS_READY]
        return [self.text]


@dataclass
class PendingMatch:
    """Single slot of in-flight state for an outstanding command."""

    command: Command
    future: Future[str] = field(default_factory=Future)
    matched_line: str | None = None

    @property
    def prefix(self) -> str:
        return self.command.completion_prefix

    def offer(self, line: str) -> bool:
        """Capture ``line`` if it completes the command."""
        if self.matched_line is not None or not line.startswith(self.prefix):
            return False
        self.matched_line = line
        return True
