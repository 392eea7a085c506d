"""
Exception hierarchy for the UCI analysis driver.

Transport failures, start failures and analysis failures each get their own
type so callers can tell a bad engine path from a dead pipe.
"""

from __future__ import annotations


class UciAnalysisError(Exception):
    """Base exception for all UCI analysis errors."""


# =============================================================================
# Engine Exceptions
# =============================================================================


class EngineError(UciAnalysisError):
    """Base exception for engine process errors."""


class StartError(EngineError):
    """Engine process could not be launched or did not complete the handshake."""


class ChannelError(EngineError):
    """Reading from or writing to the engine failed mid-session."""


class EngineUnavailableError(EngineError):
    """The scheduler has been shut down and accepts no more requests."""


# =============================================================================
# Analysis Exceptions
# =============================================================================


class AnalysisError(UciAnalysisError):
    """The engine finished a search without producing a usable candidate."""


class NotationError(UciAnalysisError):
    """Move is not legal in the given position."""


class InvalidFenError(UciAnalysisError):
    """Invalid FEN position provided."""
