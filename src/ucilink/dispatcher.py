"""Command dispatcher correlating sent commands with engine output lines."""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Callable
from concurrent.futures import InvalidStateError
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from blinker import Signal
from loguru import logger

from ucilink.channel import LineChannel
from ucilink.commands import QUIT, Command, PendingMatch
from ucilink.errors import CommandInFlightError, EngineUnresponsiveError, TransportClosedError


class DispatcherState(StrEnum):
    IDLE = "idle"
    AWAITING = "awaiting"


@dataclass(frozen=True)
class CommandExecuted:
    """Notification published once per completed command."""

    command: str
    expected: str
    response: str


ExecutedHandler = Callable[[CommandExecuted], None]


class CommandDispatcher:
    """Send one command at a time and block until its completion line arrives.

    A command with an empty expected prefix is followed by ``isready`` and
    completes on ``readyok``: the engine answers the probe only after it has
    processed everything queued before it.

    Only one command may be outstanding. A second ``send`` while one is
    awaiting raises :class:`CommandInFlightError` without writing anything.
    """

    def __init__(self, channel: LineChannel) -> None:
        self._channel = channel
        self._lock = threading.Lock()
        self._pending: PendingMatch | None = None
        self._command: str | None = None
        self._expected: str | None = None
        self._executed = Signal("ucilink.command_executed")
        self._unsub_line: Callable[[], None] | None = channel.on_line(self._handle_line)
        self._unsub_closed: Callable[[], None] | None = channel.on_closed(self._handle_closed)

    def __enter__(self) -> CommandDispatcher:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    @property
    def state(self) -> DispatcherState:
        with self._lock:
            return DispatcherState.IDLE if self._pending is None else DispatcherState.AWAITING

    @property
    def listening(self) -> bool:
        """Whether incoming lines are currently tested against a prefix."""
        return self.state is DispatcherState.AWAITING

    @property
    def attached(self) -> bool:
        return self._unsub_line is not None

    @property
    def command(self) -> str | None:
        """Text of the most recently transmitted command."""
        return self._command

    @property
    def expected(self) -> str | None:
        """Completion prefix of the most recently transmitted command."""
        return self._expected

    def on_command_executed(self, handler: ExecutedHandler) -> Callable[[], None]:
        def _receiver(sender: Any, *, event: CommandExecuted) -> None:
            handler(event)

        self._executed.connect(_receiver, weak=False)
        return lambda: self._executed.disconnect(_receiver)

    def send(self, command_text: str, expected_prefix: str = "", timeout: float | None = None) -> str:
        """Transmit a command and return the first line starting with its completion prefix.

        Args:
            command_text: Line to write to the engine.
            expected_prefix: Prefix of the completion line. Empty means the
                command has no reply of its own and is synchronised with
                ``isready``/``readyok``.
            timeout: Seconds to wait for the completion line. ``None`` waits forever.
                After a timeout the engine may still emit the late completion
                line; it is dropped while idle but would complete a later
                command with the same prefix. Send ``isready``/``readyok``
                before reusing the prefix.

        Returns:
            The matched line, verbatim.
        """
        pending = self._begin(Command(command_text, expected_prefix))
        try:
            return pending.future.result(timeout=timeout)
        except TimeoutError:
            if self._release(pending):
                raise self._unresponsive(pending, timeout) from None
            # matched while the timeout was being handled
            return pending.future.result()

    async def send_async(self, command_text: str, expected_prefix: str = "", timeout: float | None = None) -> str:
        """Awaitable variant of :meth:`send`. Cancelling the caller returns the dispatcher to idle."""
        pending = self._install(Command(command_text, expected_prefix))
        waiter = asyncio.wrap_future(pending.future)
        try:
            await asyncio.to_thread(self._transmit, pending)
            if timeout is None:
                return await waiter
            return await asyncio.wait_for(asyncio.shield(waiter), timeout=timeout)
        except TimeoutError:
            if self._release(pending):
                waiter.cancel()
                raise self._unresponsive(pending, timeout) from None
            return await waiter
        except asyncio.CancelledError:
            self._release(pending)
            raise

    def quit(self) -> None:
        """Send ``quit`` without waiting for any reply and detach from the channel."""
        logger.info("dispatcher.quit")
        try:
            self._channel.write_line(QUIT)
        finally:
            self.close()

    def close(self) -> None:
        """Detach from the channel. A caller still awaiting a reply gets ``TransportClosedError``."""
        with self._lock:
            pending, self._pending = self._pending, None
            unsubscribers = (self._unsub_line, self._unsub_closed)
            self._unsub_line = None
            self._unsub_closed = None
        for unsubscribe in unsubscribers:
            if unsubscribe is not None:
                unsubscribe()
        if pending is not None:
            _fail(pending, TransportClosedError(f"Dispatcher closed while awaiting {pending.prefix!r}"))

    def _begin(self, command: Command) -> PendingMatch:
        pending = self._install(command)
        self._transmit(pending)
        return pending

    def _install(self, command: Command) -> PendingMatch:
        pending = PendingMatch(command)
        with self._lock:
            if self._unsub_line is None:
                raise TransportClosedError("Dispatcher is detached from its channel")
            if self._pending is not None:
                raise CommandInFlightError(self._pending.command.text)
            self._pending = pending
            self._command = command.text
            self._expected = pending.prefix
        return pending

    def _transmit(self, pending: PendingMatch) -> None:
        logger.info("dispatcher.send command={} expected={}", pending.command.text, pending.prefix)
        try:
            for line in pending.command.lines():
                self._channel.write_line(line)
        except BaseException:
            self._release(pending)
            raise

    def _release(self, pending: PendingMatch) -> bool:
        with self._lock:
            if self._pending is not pending:
                return False
            self._pending = None
            return True

    def _unresponsive(self, pending: PendingMatch, timeout: float) -> EngineUnresponsiveError:
        logger.warning(
            "dispatcher.timeout command={} expected={} timeout={}", pending.command.text, pending.prefix, timeout
        )
        return EngineUnresponsiveError(pending.command.text, pending.prefix, timeout)

    def _handle_line(self, line: str) -> None:
        with self._lock:
            pending = self._pending
            if pending is None or not pending.offer(line):
                logger.trace("dispatcher.line {}", line)
                return
            self._pending = None

        logger.debug("dispatcher.completed command={} response={}", pending.command.text, line)
        event = CommandExecuted(command=pending.command.text, expected=pending.prefix, response=line)
        for receiver in self._executed.receivers_for(self):
            try:
                receiver(self, event=event)
            except Exception:
                logger.exception("dispatcher.observer.error command={}", pending.command.text)
        try:
            pending.future.set_result(line)
        except InvalidStateError:
            logger.debug("dispatcher.waiter.gone command={}", pending.command.text)

    def _handle_closed(self) -> None:
        with self._lock:
            pending, self._pending = self._pending, None
        if pending is None:
            return
        logger.warning("dispatcher.transport_closed command={} expected={}", pending.command.text, pending.prefix)
        _fail(pending, TransportClosedError(f"Engine output closed while awaiting {pending.prefix!r}"))


def _fail(pending: PendingMatch, exc: BaseException) -> None:
    try:
        pending.future.set_exception(exc)
    except InvalidStateError:
        logger.debug("dispatcher.waiter.gone command={}", pending.command.text)
