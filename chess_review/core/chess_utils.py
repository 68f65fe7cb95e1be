# chess_review/core/chess_utils.py
"""
Provides a collection of pure, stateless functions for chess-related calculations.

This module acts as the "math library" for the chess domain. It has no
dependencies on other parts of this application except for the data contracts
defined in `types.py`. Its functions are deterministic and form the building
blocks of the replay and scoring logic.
"""

from typing import Final, Optional

import chess

from chess_review.types import EngineScore, MoveRecord, Side

# The centipawn magnitude used for any forced mate when no setting is supplied.
DEFAULT_MATE_SCORE_CP: Final[int] = 100000


def side_name(color: chess.Color) -> Side:
    """Maps a python-chess color to the report's side label."""
    return "white" if color == chess.WHITE else "black"


def score_to_cp(score: Optional[EngineScore], mate_score_cp: int = DEFAULT_MATE_SCORE_CP) -> int:
    """
    Collapses an engine score into a single centipawn value.

    Mate scores are clamped to `mate_score_cp`, signed by mate direction. A mate
    distance of zero means the side to move is already mated, so it counts as a
    loss. A missing score is treated as a level position.
    """
    if score is None:
        return 0
    if score.kind == "mate":
        return mate_score_cp if score.value > 0 else -mate_score_cp
    return int(score.value)


def make_move_record(board: chess.Board, move: chess.Move) -> MoveRecord:
    """
    Builds a `MoveRecord` for a move that is legal on `board`.

    The SAN form depends on the position, so this must be called before the
    move is pushed.
    """
    return MoveRecord(
        from_square=chess.square_name(move.from_square),
        to_square=chess.square_name(move.to_square),
        promotion=chess.piece_symbol(move.promotion) if move.promotion else None,
        san=board.san(move),
        uci=move.uci(),
    )
