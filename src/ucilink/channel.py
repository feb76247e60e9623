"""Line-oriented transport to an engine process."""

from __future__ import annotations

import subprocess
import threading
from collections.abc import Callable, Sequence
from typing import Any, Protocol

from blinker import Signal
from loguru import logger

from ucilink.errors import ConfigurationError, TransportClosedError

LineHandler = Callable[[str], None]
ClosedHandler = Callable[[], None]


class LineChannel(Protocol):
    """Bidirectional line transport: a writer plus asynchronously delivered lines."""

    def write_line(self, text: str) -> None: ...

    def on_line(self, handler: LineHandler) -> Callable[[], None]: ...

    def on_closed(self, handler: ClosedHandler) -> Callable[[], None]: ...


class ProcessLineChannel:
    """Line channel over the redirected stdin/stdout of a child process.

    Output lines are read on a daemon thread and published, terminator
    stripped, to every handler registered with :meth:`on_line`. When stdout
    reaches EOF the ``closed`` handlers run once.
    """

    def __init__(self, argv: str | Sequence[str]) -> None:
        self.argv = [argv] if isinstance(argv, str) else list(argv)
        self._process: subprocess.Popen[str] | None = None
        self._reader: threading.Thread | None = None
        self._write_lock = threading.Lock()
        self._eof = threading.Event()
        self._line = Signal("ucilink.line")
        self._closed = Signal("ucilink.closed")

    def __enter__(self) -> ProcessLineChannel:
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.terminate()

    def start(self) -> None:
        if self._process is not None:
            return
        try:
            self._process = subprocess.Popen(  # noqa: S603
                self.argv,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
            )
        except OSError as exc:
            raise ConfigurationError(f"Cannot start engine {self.argv!r}: {exc}") from exc
        logger.info("channel.started pid={} argv={}", self._process.pid, self.argv)
        self._reader = threading.Thread(
            target=self._read_loop,
            args=(self._process.stdout,),
            name=f"ucilink-reader-{self._process.pid}",
            daemon=True,
        )
        self._reader.start()

    @property
    def pid(self) -> int | None:
        return None if self._process is None else self._process.pid

    @property
    def returncode(self) -> int | None:
        return None if self._process is None else self._process.poll()

    @property
    def running(self) -> bool:
        return self._process is not None and self._process.poll() is None

    @property
    def closed(self) -> bool:
        """True once the engine's stdout has reached EOF."""
        return self._eof.is_set()

    def write_line(self, text: str) -> None:
        process = self._process
        if process is None or process.stdin is None:
            raise TransportClosedError("Engine process is not started")
        with self._write_lock:
            try:
                process.stdin.write(text + "\n")
                process.stdin.flush()
            except (OSError, ValueError) as exc:
                raise TransportClosedError(f"Cannot write {text!r} to engine: {exc}") from exc
        logger.trace("channel.write line={}", text)

    def on_line(self, handler: LineHandler) -> Callable[[], None]:
        def _receiver(sender: Any, *, line: str) -> None:
            handler(line)

        self._line.connect(_receiver, weak=False)
        return lambda: self._line.disconnect(_receiver)

    def on_closed(self, handler: ClosedHandler) -> Callable[[], None]:
        def _receiver(sender: Any) -> None:
            handler()

        self._closed.connect(_receiver, weak=False)
        return lambda: self._closed.disconnect(_receiver)

    def wait(self, timeout: float | None = None) -> int:
        """Block until the engine exits and return its exit code."""
        if self._process is None:
            raise TransportClosedError("Engine process is not started")
        code = self._process.wait(timeout=timeout)
        if self._reader is not None:
            self._reader.join(timeout=1)
        return code

    def terminate(self, timeout: float = 2.0) -> None:
        process = self._process
        if process is None:
            return
        if process.stdin is not None and not process.stdin.closed:
            try:
                process.stdin.close()
            except OSError:
                logger.debug("channel.stdin.close_failed pid={}", process.pid)
        if process.poll() is None:
            process.terminate()
            try:
                process.wait(timeout=timeout)
            except subprocess.TimeoutExpired:
                logger.warning("channel.kill pid={}", process.pid)
                process.kill()
                process.wait()
        if self._reader is not None:
            self._reader.join(timeout=1)
        logger.info("channel.terminated pid={} returncode={}", process.pid, process.returncode)

    def _read_loop(self, stdout) -> None:
        try:
            for raw in stdout:
                line = raw.rstrip("\r\n")
                logger.trace("channel.read line={}", line)
                try:
                    self._line.send(self, line=line)
                except Exception:
                    logger.exception("channel.line_handler.error")
        except (OSError, ValueError) as exc:
            logger.debug("channel.read.stopped error={}", exc)
        finally:
            self._eof.set()
            logger.debug("channel.eof")
            self._closed.send(self)
