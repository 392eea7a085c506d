"""
Line-oriented I/O with a running UCI engine.

A daemon reader thread pumps the engine's stdout into a queue so that every
read can be bounded by a timeout, and so that closing the channel wakes any
reader still waiting for output.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from dataclasses import dataclass
from typing import IO

from . import protocol
from .exceptions import ChannelError

logger = logging.getLogger(__name__)

__all__ = ["ReadResult", "SessionChannel"]


@dataclass(frozen=True)
class ReadResult:
    """Text gathered by ``SessionChannel.read_until`` and the error that ended it, if any."""

    text: str = ""
    error: ChannelError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def lines(self) -> list[str]:
        return self.text.splitlines()


class SessionChannel:
    """
    Serialized command/response channel over an engine's stdin and stdout.

    Writes never raise: a write on a closed or broken channel is dropped and a
    failed write is recorded in ``last_error``. Reads raise ChannelError on
    timeout or once the channel is closed or broken, and report end of stream
    as None.

    Usage:
        channel = SessionChannel(process.stdin, process.stdout, name=str(process.pid))
        channel.send("position startpos")
        reply = channel.read_until("readyok")
        channel.close()
    """

    def __init__(self, stdin: IO[str], stdout: IO[str], name: str = "?") -> None:
        self._stdin = stdin
        self._stdout = stdout
        self._name = name
        self._lines: queue.Queue[str | None] = queue.Queue()
        self._write_lock = threading.Lock()
        self._closed = False
        self._broken = False
        self.last_error: ChannelError | None = None

        self._reader = threading.Thread(
            target=self._pump, name=f"uci-reader-{name}", daemon=True
        )
        self._reader.start()

    @property
    def name(self) -> str:
        return self._name

    @property
    def is_open(self) -> bool:
        """True while commands can still be written."""
        return not self._closed and not self._broken

    def _pump(self) -> None:
        try:
            for raw in iter(self._stdout.readline, ""):
                line = raw.strip()
                logger.debug(f"[{self._name}] Recv: {line}")
                self._lines.put(line)
        except (OSError, ValueError) as e:
            # ValueError is raised by readline on a stream closed under us
            if not self._closed:
                logger.warning(f"[{self._name}] Engine output failed: {e}")
        finally:
            self._lines.put(None)

    def send(self, command: str) -> None:
        """Write one command line and flush it."""
        if not self.is_open:
            logger.debug(f"[{self._name}] Dropped write on closed channel: {command}")
            return

        try:
            with self._write_lock:
                self._stdin.write(command + "\n")
                self._stdin.flush()
        except (OSError, ValueError) as e:
            self._broken = True
            self.last_error = ChannelError(f"Write to engine failed: {e}")
            logger.warning(f"[{self._name}] {self.last_error}")
            return

        logger.debug(f"[{self._name}] Sent: {command}")

    def read_line(self, timeout: float | None = None) -> str | None:
        """
        Return the next line from the engine, stripped.

        Args:
            timeout: Seconds to wait (None waits indefinitely).

        Returns:
            The line, or None once the engine's output has closed. A read
            already waiting when ``close()`` is called also returns None.

        Raises:
            ChannelError: If no line arrives within ``timeout``, or the
                channel is closed or broken.
        """
        if self._closed:
            raise ChannelError("Read from closed channel")
        if self._broken:
            raise ChannelError(f"Read from broken channel: {self.last_error}")

        try:
            line = self._lines.get(timeout=timeout)
        except queue.Empty as e:
            raise ChannelError(f"Timeout after {timeout}s waiting for engine output") from e

        if line is None:
            # Leave the end marker in place for any later reader
            self._lines.put(None)
        return line

    def read_until(self, token: str, timeout: float = 5.0) -> ReadResult:
        """
        Send ``isready`` and read until a line starts with ``token``.

        Every line read, the terminating one included, is returned. The loop
        ends early on timeout or end of stream; the cause is recorded on the
        result and in ``last_error`` rather than raised.

        Args:
            token: Case-insensitive prefix of the terminating line.
            timeout: Overall budget in seconds.

        Returns:
            ReadResult with the accumulated text.
        """
        self.send(protocol.IS_READY)

        prefix = token.lower()
        deadline = time.monotonic() + timeout
        lines: list[str] = []
        error: ChannelError | None = None

        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                error = ChannelError(f"Timeout waiting for {token}")
                break
            try:
                line = self.read_line(remaining)
            except ChannelError as e:
                error = e
                break
            if line is None:
                error = ChannelError(f"Engine output closed before {token}")
                break
            lines.append(line)
            if line.lower().startswith(prefix):
                break

        if error is not None:
            logger.warning(f"[{self._name}] {error}")
            self.last_error = error

        return ReadResult("".join(f"{line}\n" for line in lines), error)

    def close(self, reader_timeout: float = 1.0) -> None:
        """Close both streams and wake any pending reader.

        Call once the engine has exited. stdout is only closed after the
        reader thread has drained it, since closing a stream another thread
        is blocked on would block here as well.
        """
        if self._closed:
            return
        self._closed = True

        _close_quietly(self._stdin, self._name)
        self._lines.put(None)

        self._reader.join(timeout=reader_timeout)
        if self._reader.is_alive():
            logger.debug(f"[{self._name}] Reader still blocked, leaving stdout open")
        else:
            _close_quietly(self._stdout, self._name)


def _close_quietly(stream: IO[str], name: str) -> None:
    try:
        stream.close()
    except (OSError, ValueError) as e:
        logger.debug(f"[{name}] Error closing stream: {e}")
