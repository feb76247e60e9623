"""Engine process wrapper owning one channel and one dispatcher."""

from __future__ import annotations

import subprocess
from collections.abc import Callable

from loguru import logger

from ucilink.channel import ProcessLineChannel
from ucilink.config import Settings
from ucilink.dispatcher import CommandDispatcher, CommandExecuted
from ucilink.errors import TransportClosedError


class UciEngine:
    """Start an engine process and talk to it through a :class:`CommandDispatcher`."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.channel = ProcessLineChannel(settings.argv)
        self.channel.start()
        self.dispatcher = CommandDispatcher(self.channel)

    def __enter__(self) -> UciEngine:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def on_command_executed(self, handler: Callable[[CommandExecuted], None]) -> Callable[[], None]:
        return self.dispatcher.on_command_executed(handler)

    def send(self, command_text: str, expected_prefix: str = "", timeout: float | None = None) -> str:
        if timeout is None:
            timeout = self.settings.command_timeout
        return self.dispatcher.send(command_text, expected_prefix, timeout=timeout)

    def quit(self) -> None:
        self.dispatcher.quit()

    def wait_for_exit(self, timeout: float | None = None) -> int:
        return self.channel.wait(timeout=timeout)

    def close(self) -> None:
        """Ask the engine to quit, then make sure the process is gone."""
        if self.dispatcher.attached:
            try:
                self.dispatcher.quit()
            except TransportClosedError:
                logger.debug("engine.quit.skipped pid={}", self.channel.pid)
        try:
            self.wait_for_exit(timeout=self.settings.quit_timeout)
        except subprocess.TimeoutExpired:
            logger.warning("engine.quit.timeout pid={}", self.channel.pid)
        self.channel.terminate()
