# chess_review/orchestration/game_analyzer.py
"""
Defines the `GameAnalyzer`, responsible for turning a recovered move list into
a per-move quality report.
"""

import time
from typing import List, Optional, Sequence, TYPE_CHECKING

import chess
import structlog

from chess_review.core.chess_utils import score_to_cp
from chess_review.core.move_classifier import classify_verdict
from chess_review.core.position_replay import PositionReplay
from chess_review.types import (AnalysisOptions, AnalyzedMove, Coach, EvaluationRequest,
                                GameReport, MoveRecord, Verdict, VerdictSummary)
from chess_review.utils import metrics

if TYPE_CHECKING:
    from chess_review.config.settings import AnalysisSettings
    from chess_review.services.analysis_provider import AnalysisProvider

logger = structlog.get_logger(__name__)


class GameAnalyzer:
    """Walks one game ply by ply, evaluating the position before and after each move."""

    def __init__(self, provider: "AnalysisProvider", coach: Coach, settings: "AnalysisSettings"):
        """
        Initializes the GameAnalyzer.

        Args:
            provider: Cached access to the engine.
            coach: The coach used for non-`Okay` moves when requested.
            settings: Supplies the mate clamp and the verdict thresholds.
        """
        self._provider = provider
        self._coach = coach
        self._settings = settings

    async def analyze_game(
        self,
        moves: Sequence[MoveRecord],
        options: Optional[AnalysisOptions] = None,
        starting_fen: str = chess.STARTING_FEN,
    ) -> GameReport:
        """
        Produces one `AnalyzedMove` per ply, in game order, plus verdict counts.

        Engine failures and replay inconsistencies propagate; no report is
        returned for a game whose evaluation could not be completed.
        """
        options = options or AnalysisOptions(
            depth=self._settings.depth, multipv=self._settings.multipv, movetime_ms=self._settings.movetime_ms
        )
        started = time.perf_counter()
        replay = PositionReplay(starting_fen)
        rows: List[AnalyzedMove] = []
        inaccuracies = mistakes = blunders = 0

        for move in moves:
            row = await self._analyze_ply(replay, move, options)
            rows.append(row)
            if row.verdict == Verdict.INACCURACY:
                inaccuracies += 1
            elif row.verdict == Verdict.MISTAKE:
                mistakes += 1
            elif row.verdict == Verdict.BLUNDER:
                blunders += 1

        summary = VerdictSummary(inaccuracies=inaccuracies, mistakes=mistakes, blunders=blunders)
        metrics.GAMES_ANALYZED_TOTAL.inc()
        metrics.GAME_ANALYSIS_DURATION_SECONDS.observe(time.perf_counter() - started)
        logger.info(
            "Game analysis complete.",
            plies=len(rows), inaccuracies=inaccuracies, mistakes=mistakes, blunders=blunders,
        )
        return GameReport(moves=rows, summary=summary)

    async def _analyze_ply(self, replay: PositionReplay, move: MoveRecord, options: AnalysisOptions) -> AnalyzedMove:
        """Evaluates a single ply. The before-evaluation resolves before the after-evaluation is requested."""
        ply = replay.ply + 1
        side = replay.side_to_move
        fen_before = replay.fen
        mate_score_cp = self._settings.mate_score_cp

        before = await self._provider.analyze_cached(EvaluationRequest(
            fen=fen_before, depth=options.depth, multipv=options.multipv, movetime_ms=options.movetime_ms,
        ))
        eval_best_cp = score_to_cp(before.top_score, mate_score_cp)

        fen_after = replay.apply(move)

        after = await self._provider.analyze_cached(EvaluationRequest(
            fen=fen_after, depth=options.depth, multipv=1, movetime_ms=options.movetime_ms,
        ))
        # The after-position is scored for the opponent; flip it back to the mover.
        eval_human_cp = -score_to_cp(after.top_score, mate_score_cp)

        delta_cp = eval_best_cp - eval_human_cp
        verdict = classify_verdict(delta_cp, self._settings.verdict_thresholds)

        note = better = None
        if options.with_coach and verdict != Verdict.OKAY:
            coach_note = await self._coach.explain(move.san, eval_best_cp, eval_human_cp, delta_cp, verdict)
            note, better = coach_note.note, coach_note.better

        logger.debug("Ply analyzed.", ply=ply, san=move.san, delta_cp=delta_cp, verdict=verdict.value)
        return AnalyzedMove(
            ply=ply, side=side, san=move.san, uci=move.uci,
            fen_before=fen_before, fen_after=fen_after, best_move=before.best_move,
            eval_best_cp=eval_best_cp, eval_human_cp=eval_human_cp, delta_cp=delta_cp,
            verdict=verdict, note=note, better=better,
        )
