"""
UCI engine process lifecycle.

EngineSession owns exactly one engine process and the SessionChannel wrapped
around its pipes. It is NOT safe for concurrent analysis; AnalysisScheduler
serializes access to it.
"""

from __future__ import annotations

import logging
import subprocess
import threading
from enum import Enum
from pathlib import Path

from . import protocol
from .channel import SessionChannel
from .config import EngineConfig
from .exceptions import EngineError, StartError

logger = logging.getLogger(__name__)

READY_OK = "readyok"
UCI_OK = "uciok"

__all__ = ["SessionState", "EngineSession"]


class SessionState(Enum):
    """Lifecycle of an engine session."""

    NOT_STARTED = "not_started"
    RUNNING = "running"
    STOPPED = "stopped"


class EngineSession:
    """
    A single UCI engine process.

    Usage:
        session = EngineSession(EngineConfig(engine_path=Path("/usr/bin/stockfish")))
        session.start()
        try:
            session.channel.send("position startpos")
        finally:
            session.stop()
    """

    def __init__(self, config: EngineConfig | None = None) -> None:
        """Initialize the session.

        Args:
            config: Engine configuration. Uses defaults if not provided.
        """
        self._config = config or EngineConfig()
        self._process: subprocess.Popen[str] | None = None
        self._channel: SessionChannel | None = None
        self._state = SessionState.NOT_STARTED
        self._id = "?"
        self._version: str | None = None
        self._lock = threading.Lock()

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def path(self) -> Path:
        """Get the engine binary path."""
        return self._config.engine_path

    @property
    def session_id(self) -> str:
        """Process id of the engine, "?" before the first start."""
        return self._id

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def version(self) -> str:
        """Get the engine name reported during the handshake."""
        return self._version or "not started"

    @property
    def channel(self) -> SessionChannel | None:
        return self._channel

    def is_alive(self) -> bool:
        """Check if the engine process is running."""
        if self._process is None:
            return False
        return self._process.poll() is None

    def start(self, path: str | Path | None = None) -> None:
        """Launch the engine, complete the UCI handshake and apply options.

        Args:
            path: Engine binary, overriding the configured one.

        Raises:
            StartError: If the process cannot be launched, its streams cannot be
                opened, or it does not answer the handshake. The session state
                is left unchanged.
        """
        with self._lock:
            if self._state is SessionState.RUNNING:
                logger.warning(f"Engine {self._id} already running")
                return

            engine_path = Path(path) if path is not None else self._config.engine_path
            logger.info(f"Starting engine from {engine_path}")

            try:
                process = subprocess.Popen(
                    [str(engine_path)],
                    stdin=subprocess.PIPE,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.DEVNULL,
                    text=True,
                    bufsize=1,
                )
            except FileNotFoundError as e:
                raise StartError(f"Engine binary not found at {engine_path}") from e
            except (OSError, ValueError) as e:
                raise StartError(f"Failed to launch engine at {engine_path}: {e}") from e

            if process.stdin is None or process.stdout is None:
                process.kill()
                process.wait()
                raise StartError("Engine streams could not be opened")

            channel = SessionChannel(process.stdin, process.stdout, name=str(process.pid))
            try:
                version = self._handshake(channel)
            except StartError:
                process.kill()
                process.wait()
                channel.close()
                raise

            self._process = process
            self._channel = channel
            self._id = str(process.pid)
            self._version = version
            self._state = SessionState.RUNNING
            logger.info(f"New engine process {self._id}: {self._version}")

        self.configure(self._config.threads, self._config.hash_mb, self._config.elo)

    def _handshake(self, channel: SessionChannel) -> str:
        channel.send(protocol.UCI)
        # isready is answered only after uciok, so one read covers both
        reply = channel.read_until(READY_OK, timeout=self._config.startup_timeout)
        if not reply.ok:
            raise StartError(f"Engine handshake failed: {reply.error}")
        if UCI_OK not in reply.lines:
            raise StartError("Engine did not answer uci with uciok")

        for line in reply.lines:
            if line.startswith("id name "):
                return line[8:].strip()
        return "unknown"

    def configure(
        self,
        threads: int | None = None,
        hash_mb: int | None = None,
        elo: int | None = None,
    ) -> None:
        """Forward engine options.

        A rating also switches on UCI_LimitStrength before setting UCI_Elo.
        """
        channel = self._require_channel()
        if threads is not None:
            channel.send(protocol.set_threads(threads))
        if hash_mb is not None:
            channel.send(protocol.set_hash(hash_mb))
        if elo is not None:
            channel.send(protocol.LIMIT_STRENGTH)
            channel.send(protocol.set_elo(elo))
        logger.info(f"Options set -> threads: {threads}, hash: {hash_mb}, elo: {elo}")

    def new_game(self) -> None:
        """Reset engine state for a new game (clears hash)."""
        channel = self._require_channel()
        channel.send(protocol.UCI_NEW_GAME)
        reply = channel.read_until(READY_OK, timeout=self._config.response_timeout)
        if reply.error is not None:
            raise reply.error

    def board_diagram(self, fen: str) -> str:
        """Return the engine's ASCII drawing of ``fen`` (the ``d`` command)."""
        channel = self._require_channel()
        channel.send(protocol.set_position(fen))
        channel.send(protocol.DISPLAY)
        reply = channel.read_until(READY_OK, timeout=self._config.response_timeout)
        if reply.error is not None:
            raise reply.error
        return "\n".join(line for line in reply.lines if line.startswith(("+", "|")))

    def _require_channel(self) -> SessionChannel:
        if self._channel is None or self._state is not SessionState.RUNNING:
            raise EngineError("Engine not started")
        return self._channel

    def stop(self) -> None:
        """Quit the engine, killing it if it outlives the grace period.

        Safe to call repeatedly and on a session that never started.
        """
        with self._lock:
            if self._process is None or self._channel is None:
                return
            process, channel = self._process, self._channel
            self._process = None
            self._channel = None
            self._state = SessionState.STOPPED

        channel.send(protocol.QUIT)
        try:
            process.wait(timeout=self._config.shutdown_grace)
        except subprocess.TimeoutExpired:
            logger.warning(
                f"Engine {self._id} did not exit within {self._config.shutdown_grace}s, killing"
            )
            process.kill()
            process.wait()
        finally:
            channel.close()
        logger.info(f"Engine stopped: {self._id}")
