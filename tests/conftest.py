from __future__ import annotations

import queue
import sys
import threading
import time
from collections.abc import Callable, Mapping
from pathlib import Path

import pytest

from ucilink.config import Settings
from ucilink.dispatcher import CommandDispatcher, DispatcherState
from ucilink.errors import TransportClosedError

FAKE_ENGINE = Path(__file__).parent / "fixtures" / "fake_engine.py"

Responder = Callable[[str], list[str]]


class ScriptedChannel:
    """In-process line channel that answers written lines synchronously."""

    def __init__(self, replies: Mapping[str, list[str]] | None = None, responder: Responder | None = None) -> None:
        self.replies = dict(replies or {})
        self.responder = responder
        self.written: list[str] = []
        self.closed = False
        self._line_handlers: list[Callable[[str], None]] = []
        self._closed_handlers: list[Callable[[], None]] = []

    def write_line(self, text: str) -> None:
        if self.closed:
            raise TransportClosedError("channel closed")
        self.written.append(text)
        for line in self.respond(text):
            self.emit(line)

    def respond(self, text: str) -> list[str]:
        if self.responder is not None:
            return self.responder(text)
        return self.replies.get(text, [])

    def emit(self, line: str) -> None:
        for handler in list(self._line_handlers):
            handler(line)

    def close(self) -> None:
        self.closed = True
        for handler in list(self._closed_handlers):
            handler()

    @property
    def subscribers(self) -> int:
        return len(self._line_handlers)

    def on_line(self, handler: Callable[[str], None]) -> Callable[[], None]:
        self._line_handlers.append(handler)
        return lambda: self._line_handlers.remove(handler)

    def on_closed(self, handler: Callable[[], None]) -> Callable[[], None]:
        self._closed_handlers.append(handler)
        return lambda: self._closed_handlers.remove(handler)


class ThreadedChannel(ScriptedChannel):
    """Scripted channel whose replies are delivered from a background thread."""

    def __init__(self, replies: Mapping[str, list[str]] | None = None, delay: float = 0.01) -> None:
        super().__init__(replies)
        self.delay = delay
        self.delivery_threads: set[str] = set()
        self._outbox: queue.Queue[str | None] = queue.Queue()
        self._worker = threading.Thread(target=self._deliver, daemon=True)
        self._worker.start()

    def write_line(self, text: str) -> None:
        if self.closed:
            raise TransportClosedError("channel closed")
        self.written.append(text)
        for line in self.respond(text):
            self._outbox.put(line)

    def stop(self) -> None:
        self._outbox.put(None)
        self._worker.join(timeout=1)

    def _deliver(self) -> None:
        while True:
            line = self._outbox.get()
            if line is None:
                return
            time.sleep(self.delay)
            self.delivery_threads.add(threading.current_thread().name)
            self.emit(line)


def wait_for_state(dispatcher: CommandDispatcher, state: DispatcherState, timeout: float = 2.0) -> None:
    deadline = time.monotonic() + timeout
    while dispatcher.state is not state:
        if time.monotonic() > deadline:
            raise AssertionError(f"dispatcher never reached {state}")
        time.sleep(0.005)


@pytest.fixture
def channel() -> ScriptedChannel:
    return ScriptedChannel({"isready": ["readyok"], "uci": ["id name FakeFish", "option name Hash", "uciok"]})


@pytest.fixture
def dispatcher(channel: ScriptedChannel) -> CommandDispatcher:
    return CommandDispatcher(channel)


@pytest.fixture
def threaded_channel():
    channel = ThreadedChannel({"isready": ["readyok"], "go movetime 10": ["info depth 1", "bestmove e2e4"]})
    yield channel
    channel.stop()


@pytest.fixture
def fake_engine_settings() -> Settings:
    return Settings(engine_path=sys.executable, engine_args=[str(FAKE_ENGINE)], command_timeout=5.0, quit_timeout=5.0)
