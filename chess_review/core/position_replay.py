# chess_review/core/position_replay.py
"""
Replays a recovered move sequence and exposes the position before and after
every ply.

The replay re-validates each move on its own board instead of trusting the
parser. A move that does not apply is a disagreement between the two
components and stops the replay immediately.
"""
from typing import Iterator, Sequence

import chess
import structlog

from chess_review.core.chess_utils import side_name
from chess_review.exceptions import ReplayInconsistencyError
from chess_review.types import FEN, MoveRecord, PlySlice, Side

logger = structlog.get_logger(__name__)


class PositionReplay:
    """Holds the board state for one game and advances it one ply at a time."""

    def __init__(self, starting_fen: FEN = chess.STARTING_FEN):
        try:
            self._board = chess.Board(starting_fen)
        except ValueError as e:
            raise ReplayInconsistencyError(f"Invalid starting position: {starting_fen}") from e

    @property
    def fen(self) -> FEN:
        return self._board.fen()

    @property
    def side_to_move(self) -> Side:
        return side_name(self._board.turn)

    @property
    def ply(self) -> int:
        """The number of half-moves applied so far."""
        return len(self._board.move_stack)

    def apply(self, move: MoveRecord) -> FEN:
        """
        Applies a single move and returns the resulting position.

        Raises:
            ReplayInconsistencyError: If the move is malformed or illegal here.
        """
        ply = self.ply + 1
        try:
            chess_move = chess.Move.from_uci(move.uci)
        except ValueError as e:
            raise ReplayInconsistencyError(f"Malformed move '{move.uci}' at ply {ply}.", ply=ply) from e

        if not chess_move or not self._board.is_legal(chess_move):
            logger.error("Replay rejected a recovered move.", ply=ply, uci=move.uci, san=move.san, fen=self.fen)
            raise ReplayInconsistencyError(
                f"Move {move.san} ({move.uci}) is illegal at ply {ply}.", ply=ply
            )

        self._board.push(chess_move)
        return self._board.fen()

    def replay(self, moves: Sequence[MoveRecord]) -> Iterator[PlySlice]:
        """
        Yields a `PlySlice` per move, applying each one as it goes.

        A convenience for walking a whole game up front. `GameAnalyzer` calls
        `apply` one ply at a time instead, because the position before a move
        must be evaluated before the move is applied.
        """
        for move in moves:
            fen_before = self.fen
            side = self.side_to_move
            fen_after = self.apply(move)
            yield PlySlice(ply=self.ply, side=side, move=move, fen_before=fen_before, fen_after=fen_after)
