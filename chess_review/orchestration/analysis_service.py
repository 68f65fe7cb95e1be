# chess_review/orchestration/analysis_service.py
"""
The request-level entry point of the pipeline.

`AnalysisService` validates incoming requests, recovers the movetext, and
delegates the per-ply work to the `GameAnalyzer`. It is the only place where
errors are mapped to the categories reported to callers.
"""

from typing import Any, Dict, Literal, Optional, Union, TYPE_CHECKING

import chess
import structlog
from pydantic import BaseModel, Field, ValidationError

from chess_review.core.pgn_parser import recover_moves
from chess_review.exceptions import InputValidationError, ReplayInconsistencyError
from chess_review.tracing import trace_operation
from chess_review.types import AnalysisOptions, EvaluationRequest, EvaluationResult, GameReport
from chess_review.utils import metrics

if TYPE_CHECKING:
    from chess_review.config.settings import AnalysisSettings
    from chess_review.orchestration.game_analyzer import GameAnalyzer
    from chess_review.services.analysis_provider import AnalysisProvider

logger = structlog.get_logger(__name__)

ErrorCategory = Literal["validation", "replay", "analysis"]


class AnalysisRequest(BaseModel):
    """The parameters of one whole-game analysis."""
    pgn: str = Field(..., description="Raw movetext, with or without PGN headers.")
    depth: int = Field(16, ge=1)
    multipv: int = Field(3, ge=1)
    movetime_ms: Optional[int] = Field(None, gt=0)
    with_coach: bool = False

    def to_options(self) -> AnalysisOptions:
        return AnalysisOptions(
            depth=self.depth, multipv=self.multipv,
            movetime_ms=self.movetime_ms, with_coach=self.with_coach,
        )


class AnalysisService:
    """Validates requests and runs them through the analysis pipeline."""

    def __init__(self, analyzer: "GameAnalyzer", provider: "AnalysisProvider", settings: "AnalysisSettings"):
        self._analyzer = analyzer
        self._provider = provider
        self._settings = settings

    @staticmethod
    def error_category(exc: BaseException) -> ErrorCategory:
        """Maps an exception to the category reported to the caller."""
        if isinstance(exc, InputValidationError):
            return "validation"
        if isinstance(exc, ReplayInconsistencyError):
            return "replay"
        return "analysis"

    def parse(self, pgn: str) -> int:
        """
        Recovers the movetext and returns the number of moves found.

        Raises:
            PgnParsingError: If no legal move can be recovered.
        """
        recovered = recover_moves(pgn)
        logger.info("Movetext parsed.", moves=len(recovered.moves), strategy=recovered.strategy)
        return len(recovered.moves)

    @trace_operation
    async def analyze_position(
        self,
        fen: str,
        depth: Optional[int] = None,
        multipv: Optional[int] = None,
        movetime_ms: Optional[int] = None,
    ) -> EvaluationResult:
        """
        Evaluates a single position, always asking the engine.

        Raises:
            InputValidationError: If the FEN or a search parameter is invalid.
            EngineAnalysisError: If the engine fails to evaluate the position.
        """
        try:
            board = chess.Board(fen)
        except (TypeError, ValueError) as e:
            raise InputValidationError(f"Invalid FEN: {fen!r}") from e

        depth = self._settings.depth if depth is None else depth
        multipv = self._settings.multipv if multipv is None else multipv
        if depth < 1 or multipv < 1:
            raise InputValidationError("depth and multipv must be at least 1")
        if movetime_ms is not None and movetime_ms <= 0:
            raise InputValidationError("movetime_ms must be positive")

        request = EvaluationRequest(fen=board.fen(), depth=depth, multipv=multipv, movetime_ms=movetime_ms)
        return await self._provider.analyze_uncached(request)

    @trace_operation
    async def analyze_game(self, request: Union[AnalysisRequest, Dict[str, Any]]) -> GameReport:
        """
        Runs a whole-game analysis.

        Either a complete report is returned, or an error is raised; a failed
        ply never yields a partial report.

        Raises:
            InputValidationError: If the request or the movetext is invalid.
            ReplayInconsistencyError: If a recovered move does not replay.
            EngineAnalysisError: If the engine fails on any position.
        """
        try:
            if not isinstance(request, AnalysisRequest):
                try:
                    request = AnalysisRequest.model_validate(request)
                except ValidationError as e:
                    raise InputValidationError(f"Invalid analysis request: {e}") from e

            recovered = recover_moves(request.pgn)
            if recovered.skipped_tokens:
                logger.warning(
                    "Some movetext tokens were skipped during recovery.",
                    skipped=len(recovered.skipped_tokens), tokens=recovered.skipped_tokens[:10],
                )
            logger.info("Analyzing game.", moves=len(recovered.moves), strategy=recovered.strategy,
                        depth=request.depth, multipv=request.multipv, movetime_ms=request.movetime_ms)
            return await self._analyzer.analyze_game(recovered.moves, request.to_options())
        except Exception as e:
            metrics.GAMES_WITH_ERRORS_TOTAL.labels(category=self.error_category(e)).inc()
            raise
