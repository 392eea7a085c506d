"""
Serialized analysis requests against one engine session.

UCI has no request ids: the only way to know which ``info`` lines belong to
which search is to never run two searches on one process at the same time.
AnalysisScheduler runs every request on a worker thread but lets exactly one
of them talk to the engine at a time, in arrival order.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Iterator
from concurrent.futures import Future, ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, TypedDict, TypeVar

import chess

from . import protocol
from .channel import SessionChannel
from .config import SchedulerConfig
from .engine import EngineSession
from .exceptions import AnalysisError, ChannelError, EngineUnavailableError, InvalidFenError
from .notation import Move, parse_move

logger = logging.getLogger(__name__)

T = TypeVar("T")

__all__ = [
    "AnalysisResult",
    "AnalysisScheduler",
    "CandidateMove",
    "HealthStatus",
    "SchedulerState",
]


class SchedulerState(Enum):
    IDLE = "idle"
    CALCULATING = "calculating"


class HealthStatus(TypedDict):
    """Health check result."""

    state: str
    alive: bool
    session_id: str
    version: str


@dataclass(frozen=True)
class CandidateMove:
    """One principal variation's first move with its evaluation."""

    move: Move
    score: int  # centipawns, or protocol.MATE_SCORE for any forced mate
    time_ms: int  # elapsed since the request was made

    @property
    def is_mate(self) -> bool:
        return self.score == protocol.MATE_SCORE

    def __str__(self) -> str:
        return f"[Move: {self.move}, Eval: {self.score}, Time: {self.time_ms}]"


@dataclass
class AnalysisResult:
    """Candidates ordered by PV rank; ranks the engine never reported are left out."""

    fen: str
    candidates: list[CandidateMove] = field(default_factory=list)
    move_time_ms: int = 0  # budget actually sent with go movetime
    wait_ms: int = 0  # time spent queued behind earlier requests

    @property
    def best(self) -> CandidateMove | None:
        return self.candidates[0] if self.candidates else None

    def __len__(self) -> int:
        return len(self.candidates)

    def __iter__(self) -> Iterator[CandidateMove]:
        return iter(self.candidates)

    def __getitem__(self, index: int) -> CandidateMove:
        return self.candidates[index]


class AnalysisScheduler:
    """
    Thread-safe front end for one EngineSession.

    Each request returns a Future immediately. Requests queue in FIFO order;
    time spent queued is taken off the search budget (down to a floor) so the
    caller's overall latency stays close to what was asked for.

    A transport failure fails the in-flight request and marks the scheduler
    unusable; later requests fail fast with ChannelError.

    Usage:
        session = EngineSession(EngineConfig())
        session.start()
        with AnalysisScheduler(session) as scheduler:
            result = scheduler.request_best_moves(fen, lines=3, move_time_ms=2000).result()
            for candidate in result:
                print(candidate)
    """

    def __init__(self, session: EngineSession, config: SchedulerConfig | None = None) -> None:
        """Initialize the scheduler.

        Args:
            session: A started engine session. The scheduler takes ownership of it.
            config: Scheduler configuration. Uses defaults if not provided.
        """
        self._session = session
        self._config = config or SchedulerConfig()
        self._condition = threading.Condition()
        self._state = SchedulerState.IDLE
        self._next_ticket = 0
        self._now_serving = 0
        self._failure: ChannelError | None = None
        self._shutdown = False
        self._executor = ThreadPoolExecutor(
            max_workers=self._config.max_workers, thread_name_prefix="uci-analysis"
        )

    @property
    def session(self) -> EngineSession:
        return self._session

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def is_shutdown(self) -> bool:
        return self._shutdown

    def __enter__(self) -> AnalysisScheduler:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown()

    # -------------------------------------------------------------------------
    # Requests
    # -------------------------------------------------------------------------

    def request_best_moves(self, fen: str, lines: int, move_time_ms: int) -> Future[AnalysisResult]:
        """
        Ask the engine for its top ``lines`` moves in ``fen``.

        Args:
            fen: Position in FEN notation.
            lines: MultiPV width, at least 1.
            move_time_ms: Requested search time including any queueing delay.

        Returns:
            Future resolving to an AnalysisResult, or failing with
            InvalidFenError, ChannelError or EngineUnavailableError.

        Raises:
            ValueError: If ``lines`` is less than 1.
            EngineUnavailableError: If the scheduler has been shut down.
        """
        if lines < 1:
            raise ValueError(f"lines must be at least 1, got {lines}")
        return self._submit(self._analyse, fen, lines, move_time_ms, time.monotonic())

    def request_best_move(self, fen: str, move_time_ms: int) -> Future[CandidateMove]:
        """
        Ask the engine for its single best move in ``fen``.

        The future fails with AnalysisError if the engine reported no candidate.
        """
        return self._submit(self._best_move, fen, move_time_ms, time.monotonic())

    def set_options(
        self,
        threads: int | None = None,
        hash_mb: int | None = None,
        elo: int | None = None,
    ) -> None:
        """Forward engine options between searches. Blocks until the session is free."""
        with self._holding_session("Setting options"):
            self._session.configure(threads, hash_mb, elo)

    def new_game(self) -> None:
        """Clear engine state between games. Blocks until the session is free."""
        with self._holding_session("New game"):
            self._session.new_game()

    def board_diagram(self, fen: str) -> str:
        """Return the engine's drawing of ``fen``. Blocks until the session is free."""
        with self._holding_session("Board diagram"):
            return self._session.board_diagram(fen)

    def _submit(self, fn: Callable[..., T], *args: Any) -> Future[T]:
        if self._shutdown:
            raise EngineUnavailableError("Scheduler has been shut down")
        return self._executor.submit(fn, *args)

    def _best_move(self, fen: str, move_time_ms: int, requested_at: float) -> CandidateMove:
        result = self._analyse(fen, 1, move_time_ms, requested_at)
        if result.best is None:
            raise AnalysisError(f"Engine returned no candidate for {fen}")
        return result.best

    def _analyse(
        self, fen: str, lines: int, move_time_ms: int, requested_at: float
    ) -> AnalysisResult:
        try:
            board = chess.Board(fen)
        except ValueError as e:
            raise InvalidFenError(f"Invalid FEN: {fen}") from e

        with self._holding_session(f"Analysis of {fen}") as channel:
            waited_ms = int((time.monotonic() - requested_at) * 1000)
            budget_ms = max(move_time_ms - waited_ms, self._config.min_move_time_ms)
            logger.debug(
                f"Analysing {fen} ({lines} lines, {budget_ms}ms after waiting {waited_ms}ms)"
            )

            self._send_all(
                channel,
                protocol.set_position(fen),
                protocol.set_multipv(lines),
                protocol.go_movetime(budget_ms),
            )
            slots = self._collect(channel, board, lines, budget_ms, requested_at)

        candidates = [candidate for candidate in slots if candidate is not None]
        if len(candidates) < lines:
            logger.info(f"Engine reported {len(candidates)} of {lines} lines for {fen}")
        return AnalysisResult(fen, candidates, budget_ms, waited_ms)

    def _collect(
        self,
        channel: SessionChannel,
        board: chess.Board,
        lines: int,
        budget_ms: int,
        requested_at: float,
    ) -> list[CandidateMove | None]:
        """Read engine output until bestmove, keeping the latest update per PV rank."""
        slots: list[CandidateMove | None] = [None] * lines
        timeout = budget_ms / 1000 + self._session.config.response_timeout

        while True:
            line = channel.read_line(timeout)
            if line is None:
                raise ChannelError("Engine output closed during analysis")

            event = protocol.decode_line(line)
            if isinstance(event, protocol.BestMove):
                return slots
            if not isinstance(event, protocol.InfoUpdate) or not event.complete:
                continue

            rank = event.multipv
            if rank is None or not 1 <= rank <= lines:
                logger.debug(f"Ignoring info for line {rank} outside 1..{lines}")
                continue

            move = parse_move(event.move or "", board)
            if move is None:
                continue

            elapsed_ms = int((time.monotonic() - requested_at) * 1000)
            slots[rank - 1] = CandidateMove(move, event.score or 0, elapsed_ms)

    @staticmethod
    def _send_all(channel: SessionChannel, *commands: str) -> None:
        for command in commands:
            channel.send(command)
        if not channel.is_open:
            raise channel.last_error or ChannelError("Engine channel closed")

    # -------------------------------------------------------------------------
    # Mutual exclusion
    # -------------------------------------------------------------------------

    @contextmanager
    def _exclusive(self) -> Iterator[None]:
        """Hold the session for one command/response cycle, in ticket order."""
        with self._condition:
            ticket = self._next_ticket
            self._next_ticket += 1
            while self._state is SchedulerState.CALCULATING or ticket != self._now_serving:
                self._condition.wait(self._config.wait_interval)
            self._state = SchedulerState.CALCULATING

        try:
            yield
        finally:
            with self._condition:
                self._state = SchedulerState.IDLE
                self._now_serving += 1
                self._condition.notify_all()

    @contextmanager
    def _holding_session(self, action: str) -> Iterator[SessionChannel]:
        """
        Hold the session and yield its channel.

        Any ChannelError raised while holding it, or a write that broke the
        channel, leaves unread replies or a dead pipe behind, so the
        scheduler is marked unusable before the error propagates.
        """
        with self._exclusive():
            channel = self._usable_channel()
            try:
                yield channel
                if not channel.is_open:
                    raise channel.last_error or ChannelError("Engine channel closed")
            except ChannelError as e:
                self._failure = e
                logger.error(f"{action} aborted, session unusable: {e}")
                raise

    def _usable_channel(self) -> SessionChannel:
        if self._shutdown:
            raise EngineUnavailableError("Scheduler is shutting down")
        if self._failure is not None:
            raise ChannelError(f"Engine session unusable after earlier failure: {self._failure}")
        channel = self._session.channel
        if channel is None or not channel.is_open:
            raise ChannelError("Engine session is not running")
        return channel

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def shutdown(self, wait: bool = True, stop_session: bool = True) -> None:
        """Stop accepting requests and, by default, stop the engine session.

        Args:
            wait: Let the in-flight search finish before returning.
                Queued requests that have not started are cancelled either way.
            stop_session: Stop the engine session too. Pass False to hand
                the session back to the caller.
        """
        if self._shutdown:
            return

        logger.info("Shutting down analysis scheduler")
        self._shutdown = True
        self._executor.shutdown(wait=False, cancel_futures=True)

        if wait:
            with self._exclusive():
                pass

        if stop_session:
            self._session.stop()
        logger.info("Analysis scheduler shutdown complete")

    def health_check(self) -> HealthStatus:
        """Check scheduler and engine health."""
        return {
            "state": self._state.value,
            "alive": self._session.is_alive(),
            "session_id": self._session.session_id,
            "version": self._session.version,
        }
