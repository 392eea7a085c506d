"""
UCI analysis driver.

Runs an external UCI chess engine as a subprocess, serializes analysis
requests against it, and reports the engine's candidate moves in standard
algebraic notation.
"""

from .channel import ReadResult, SessionChannel
from .config import EngineConfig, SchedulerConfig
from .engine import EngineSession, SessionState
from .exceptions import (
    AnalysisError,
    ChannelError,
    EngineError,
    EngineUnavailableError,
    InvalidFenError,
    NotationError,
    StartError,
    UciAnalysisError,
)
from .notation import VALID_MOVE_PATTERN, Move, parse_move, to_san
from .protocol import MATE_SCORE, BestMove, InfoUpdate, Unrecognized, decode_line, parse_score
from .scheduler import AnalysisResult, AnalysisScheduler, CandidateMove, SchedulerState

__version__ = "0.1.0"

__all__ = [
    # Version
    "__version__",
    # Config
    "EngineConfig",
    "SchedulerConfig",
    # Errors
    "UciAnalysisError",
    "EngineError",
    "StartError",
    "ChannelError",
    "EngineUnavailableError",
    "AnalysisError",
    "NotationError",
    "InvalidFenError",
    # Notation
    "Move",
    "VALID_MOVE_PATTERN",
    "to_san",
    "parse_move",
    # Protocol
    "MATE_SCORE",
    "InfoUpdate",
    "BestMove",
    "Unrecognized",
    "decode_line",
    "parse_score",
    # Session
    "SessionChannel",
    "ReadResult",
    "EngineSession",
    "SessionState",
    # Scheduler
    "AnalysisScheduler",
    "AnalysisResult",
    "CandidateMove",
    "SchedulerState",
]
