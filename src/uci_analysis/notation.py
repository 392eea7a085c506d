"""
Standard algebraic notation (SAN) for engine moves.

Engines speak in coordinate moves (``e2e4``, ``e7e8q``). This module turns
them into the notation people read (``e4``, ``e8=Q+``, ``Nbd2``, ``O-O``),
using python-chess only for legality, check and mate detection.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

import chess

from .exceptions import NotationError

logger = logging.getLogger(__name__)

# Four square characters plus an optional promotion letter, e.g. "e7e8q"
VALID_MOVE_PATTERN = re.compile(r"[a-h][1-8][a-h][1-8][qQrRbBnN]?")

__all__ = ["VALID_MOVE_PATTERN", "Move", "to_san", "parse_move"]


@dataclass(frozen=True)
class Move:
    """A move on a specific side, optionally carrying its SAN text."""

    origin: chess.Square
    destination: chess.Square
    side: chess.Color = chess.WHITE
    promotion: chess.PieceType | None = None
    san: str | None = None

    @classmethod
    def from_uci(cls, text: str, side: chess.Color = chess.WHITE) -> Move:
        """Build a move from coordinate text without any board context.

        Raises:
            ValueError: If the text is not a coordinate move.
        """
        match = VALID_MOVE_PATTERN.fullmatch(text.strip())
        if match is None:
            raise ValueError(f"Not a coordinate move: {text!r}")
        move = chess.Move.from_uci(match.group().lower())
        return cls(move.from_square, move.to_square, side, move.promotion)

    @classmethod
    def from_board(cls, move: chess.Move, board: chess.Board) -> Move:
        """Build a move from rules-engine data, computing its SAN on ``board``.

        Raises:
            NotationError: If the move is not legal on ``board``.
        """
        san = to_san(move, board)
        if san is None:
            raise NotationError(f"Illegal move {move.uci()} in position {board.fen()}")
        return cls(move.from_square, move.to_square, board.turn, move.promotion, san)

    def to_chess(self) -> chess.Move:
        return chess.Move(self.origin, self.destination, promotion=self.promotion)

    def uci(self) -> str:
        return self.to_chess().uci()

    def __str__(self) -> str:
        return self.san or self.uci()


def to_san(move: chess.Move, board: chess.Board) -> str | None:
    """
    Render ``move`` in standard algebraic notation.

    Args:
        move: The move to render.
        board: Position immediately before the move. Not modified.

    Returns:
        The SAN text, or None if the move is not legal on ``board``.

    Raises:
        NotationError: If a move accepted as legal starts on an empty square.
    """
    if not board.is_legal(move):
        logger.warning(f"SAN requested for illegal move {move.uci()} in {board.fen()}")
        return None

    piece = board.piece_at(move.from_square)
    if piece is None:
        raise NotationError(f"No piece on {chess.square_name(move.from_square)} in {board.fen()}")

    after = board.copy(stack=False)
    after.push(move)
    ending = "#" if after.is_checkmate() else "+" if after.is_check() else ""

    if board.is_castling(move):
        return ("O-O" if board.is_kingside_castling(move) else "O-O-O") + ending

    origin_file = chess.square_file(move.from_square)
    is_pawn = piece.piece_type == chess.PAWN

    # A pawn changing file always captures, which covers en passant
    capture = board.piece_at(move.to_square) is not None or (
        is_pawn and origin_file != chess.square_file(move.to_square)
    )
    takes = "x" if capture else ""
    promotion = f"={chess.piece_symbol(move.promotion).upper()}" if move.promotion else ""

    if is_pawn:
        prefix = chess.FILE_NAMES[origin_file] if capture else ""
    else:
        prefix = piece.symbol().upper() + _disambiguation(board, piece, move)

    return f"{prefix}{takes}{chess.square_name(move.to_square)}{promotion}{ending}"


def _disambiguation(board: chess.Board, piece: chess.Piece, move: chess.Move) -> str:
    """Origin file, rank or square needed to tell ``move`` apart from its rivals."""
    rivals = [
        other.from_square
        for other in board.generate_legal_moves(
            from_mask=board.pieces_mask(piece.piece_type, piece.color),
            to_mask=chess.BB_SQUARES[move.to_square],
        )
        if other.from_square != move.from_square
    ]
    if not rivals:
        return ""

    origin_file = chess.square_file(move.from_square)
    origin_rank = chess.square_rank(move.from_square)
    on_file = any(chess.square_file(square) == origin_file for square in rivals)
    on_rank = any(chess.square_rank(square) == origin_rank for square in rivals)

    if on_file and on_rank:
        return chess.square_name(move.from_square)
    if on_file:
        return chess.RANK_NAMES[origin_rank]
    return chess.FILE_NAMES[origin_file]


def parse_move(text: str, board: chess.Board) -> Move | None:
    """
    Parse coordinate text into a legal move with its SAN attached.

    Args:
        text: Coordinate move such as ``g1f3`` or ``b7b8N``.
        board: Position the move is played from.

    Returns:
        The Move, or None if the text is malformed or the move is illegal.
    """
    match = VALID_MOVE_PATTERN.fullmatch(text.strip())
    if match is None:
        logger.debug(f"Rejected move text: {text!r}")
        return None

    candidate = chess.Move.from_uci(match.group().lower())
    san = to_san(candidate, board)
    if san is None:
        return None

    logger.debug(f"Parsed move: {san}")
    return Move(candidate.from_square, candidate.to_square, board.turn, candidate.promotion, san)
