"""
UCI command encoding and engine output decoding.

Outgoing commands are plain strings built by the helpers below. Incoming lines
are decoded into one of three events:

    info depth 12 seldepth 18 multipv 2 score cp -35 nodes 48211 pv d7d5 c2c4
        -> InfoUpdate(multipv=2, move="d7d5", score=-35)
    bestmove e2e4 ponder e7e5
        -> BestMove(move="e2e4", ponder="e7e5")
    anything else
        -> Unrecognized(line)

The protocol is forward compatible, so unknown or truncated lines are never an
error: a field that cannot be found is simply absent.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Union

logger = logging.getLogger(__name__)

# Score reported for any forced mate, regardless of distance
MATE_SCORE = 999

UCI = "uci"
IS_READY = "isready"
UCI_NEW_GAME = "ucinewgame"
LIMIT_STRENGTH = "setoption name UCI_LimitStrength value true"
DISPLAY = "d"
QUIT = "quit"


def set_option(name: str, value: object) -> str:
    return f"setoption name {name} value {value}"


def set_multipv(lines: int) -> str:
    return set_option("MultiPV", lines)


def set_threads(threads: int) -> str:
    return set_option("Threads", threads)


def set_hash(hash_mb: int) -> str:
    return set_option("Hash", hash_mb)


def set_elo(elo: int) -> str:
    return set_option("UCI_Elo", elo)


def set_position(fen: str) -> str:
    return f"position fen {fen}"


def go_movetime(move_time_ms: int) -> str:
    return f"go movetime {move_time_ms}"


# =============================================================================
# Decoded events
# =============================================================================


@dataclass(frozen=True)
class InfoUpdate:
    """Progress report for one principal variation."""

    multipv: int | None = None  # 1-based line index
    move: str | None = None  # first move of the PV, coordinate form
    score: int | None = None  # centipawns, or MATE_SCORE

    @property
    def complete(self) -> bool:
        """True when the update carries everything needed for a candidate."""
        return self.multipv is not None and self.move is not None and self.score is not None


@dataclass(frozen=True)
class BestMove:
    """Terminal line of a search."""

    move: str | None = None
    ponder: str | None = None


@dataclass(frozen=True)
class Unrecognized:
    """Any line this decoder does not act on."""

    line: str = ""


Event = Union[InfoUpdate, BestMove, Unrecognized]


def decode_line(line: str) -> Event:
    """
    Decode one line of engine output.

    Args:
        line: Raw line, with or without its terminator.

    Returns:
        InfoUpdate, BestMove or Unrecognized. Never raises.
    """
    tokens = line.split()
    if not tokens:
        return Unrecognized(line)

    kind = tokens[0].lower()
    if kind == "info":
        return InfoUpdate(
            multipv=_parse_int(get_field(tokens, "multipv")),
            move=get_field(tokens, "pv"),
            score=_parse_info_score(tokens),
        )
    if kind == "bestmove":
        return BestMove(move=get_field(tokens, "bestmove"), ponder=get_field(tokens, "ponder"))
    return Unrecognized(line)


def get_field(tokens: list[str], name: str) -> str | None:
    """Return the token following the first case-insensitive match of ``name``."""
    for index, token in enumerate(tokens[:-1]):
        if token.lower() == name:
            return tokens[index + 1]
    return None


def parse_score(token: str | None) -> int | None:
    """
    Parse an evaluation token.

    ``"35"`` -> 35, ``"mate"`` -> MATE_SCORE, anything else -> None.
    """
    if token is None:
        return None
    if token.lower() == "mate":
        return MATE_SCORE
    return _parse_int(token)


def _parse_info_score(tokens: list[str]) -> int | None:
    # "score cp 35" carries the value after cp; "score mate 3" only the marker
    cp = get_field(tokens, "cp")
    if cp is not None:
        return parse_score(cp)
    return parse_score(get_field(tokens, "score"))


def _parse_int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        logger.debug(f"Ignoring non-numeric field value: {value}")
        return None
