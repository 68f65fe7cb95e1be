# tests/orchestration/test_game_analyzer.py
import chess
import pytest

from chess_review.config.settings import AnalysisSettings
from chess_review.core.pgn_parser import recover_moves
from chess_review.exceptions import EngineAnalysisError
from chess_review.orchestration.game_analyzer import GameAnalyzer
from chess_review.services.analysis_provider import AnalysisProvider
from chess_review.services.coach_service import DisabledCoach, LlmCoach
from chess_review.services.engine_queue import SingleFlightEngineQueue
from chess_review.services.evaluation_cache import EvaluationCache
from chess_review.types import AnalysisOptions, Verdict, VerdictSummary

OPTIONS = AnalysisOptions(depth=12, multipv=3)


def _fens(*sans):
    """Returns the FEN before the first move and after every move."""
    board = chess.Board()
    fens = [board.fen()]
    for san in sans:
        board.push_san(san)
        fens.append(board.fen())
    return fens


def _analyzer(queue, coach=None, cache=None):
    provider = AnalysisProvider(cache if cache is not None else EvaluationCache(), queue)
    return GameAnalyzer(provider, coach or DisabledCoach(), AnalysisSettings())


@pytest.mark.asyncio
async def test_single_move_game(fake_engine, make_result):
    # Arrange
    start, after_e4 = _fens("e4")
    fake_engine.results[start] = make_result(cp=30, best_move="e2e4")
    fake_engine.results[after_e4] = make_result(cp=-25, best_move="c7c5")

    # Act
    async with SingleFlightEngineQueue(fake_engine) as queue:
        report = await _analyzer(queue).analyze_game(recover_moves("1. e4").moves, OPTIONS)

    # Assert
    assert len(report.moves) == 1
    row = report.moves[0]
    assert row.to_dict() == {
        "ply": 1, "side": "white", "san": "e4", "uci": "e2e4",
        "fenBefore": start, "fenAfter": after_e4, "bestmove": "e2e4",
        "evalBestCp": 30, "evalHumanCp": 25, "deltaCp": 5, "verdict": "Okay",
    }
    assert report.summary == VerdictSummary(0, 0, 0)
    # The position before the move is searched wide, the one after narrow.
    assert [(c.fen, c.multipv, c.depth) for c in fake_engine.calls] == [(start, 3, 12), (after_e4, 1, 12)]


@pytest.mark.asyncio
async def test_single_blunder_is_counted(fake_engine, make_result):
    # Arrange
    f0, f1, f2, f3 = _fens("e4", "e5", "Qh5")
    fake_engine.results[f0] = make_result(cp=30, best_move="e2e4")
    fake_engine.results[f1] = make_result(cp=-30, best_move="e7e5")
    fake_engine.results[f2] = make_result(cp=35, best_move="g1f3")
    fake_engine.results[f3] = make_result(cp=300, best_move="g8f6")

    # Act
    async with SingleFlightEngineQueue(fake_engine) as queue:
        report = await _analyzer(queue).analyze_game(recover_moves("1. e4 e5 2. Qh5").moves, OPTIONS)

    # Assert
    assert [row.verdict for row in report.moves] == [Verdict.OKAY, Verdict.OKAY, Verdict.BLUNDER]
    blunder = report.moves[2]
    assert (blunder.eval_best_cp, blunder.eval_human_cp, blunder.delta_cp) == (35, -300, 335)
    assert blunder.best_move == "g1f3"
    assert report.summary == VerdictSummary(inaccuracies=0, mistakes=0, blunders=1)
    assert [row.ply for row in report.moves] == [1, 2, 3]
    assert [row.side for row in report.moves] == ["white", "black", "white"]


@pytest.mark.asyncio
async def test_mate_scores_are_clamped(fake_engine, make_result):
    # Arrange
    fens = _fens("f3", "e5", "g4", "Qh4#")
    fake_engine.results[fens[3]] = make_result(mate=1, best_move="d8h4")
    fake_engine.results[fens[4]] = make_result(mate=0)

    # Act
    async with SingleFlightEngineQueue(fake_engine) as queue:
        report = await _analyzer(queue).analyze_game(recover_moves("1. f3 e5 2. g4 Qh4#").moves, OPTIONS)

    # Assert
    mate = report.moves[-1]
    assert mate.eval_best_cp == 100000
    assert mate.eval_human_cp == 100000
    assert mate.verdict == Verdict.OKAY


@pytest.mark.asyncio
async def test_second_run_is_served_from_cache(fake_engine, make_result):
    moves = recover_moves("1. d4 d5 2. c4 e6").moves
    cache = EvaluationCache()

    async with SingleFlightEngineQueue(fake_engine) as queue:
        first = await _analyzer(queue, cache=cache).analyze_game(moves, OPTIONS)
        engine_calls = len(fake_engine.calls)
        second = await _analyzer(queue, cache=cache).analyze_game(moves, OPTIONS)

    assert first == second
    assert len(fake_engine.calls) == engine_calls


@pytest.mark.asyncio
async def test_engine_failure_aborts_the_game(fake_engine):
    _, after_e4, _ = _fens("e4", "e5")
    fake_engine.failures[after_e4] = EngineAnalysisError("engine died")

    async with SingleFlightEngineQueue(fake_engine) as queue:
        with pytest.raises(EngineAnalysisError):
            await _analyzer(queue).analyze_game(recover_moves("1. e4 e5").moves, OPTIONS)


@pytest.mark.asyncio
async def test_coach_is_asked_only_about_weak_moves(fake_engine, make_result, make_text_generator):
    # Arrange
    f0, f1, f2, f3 = _fens("e4", "e5", "Qh5")
    fake_engine.results[f0] = make_result(cp=30)
    fake_engine.results[f1] = make_result(cp=-30)
    fake_engine.results[f2] = make_result(cp=35, best_move="g1f3")
    fake_engine.results[f3] = make_result(cp=300)
    generator = make_text_generator(reply='```json\n{"note": "Early queen sortie.", "better": "Develop with Nf3."}\n```')
    options = AnalysisOptions(depth=12, multipv=3, with_coach=True)

    # Act
    async with SingleFlightEngineQueue(fake_engine) as queue:
        report = await _analyzer(queue, coach=LlmCoach(generator)).analyze_game(
            recover_moves("1. e4 e5 2. Qh5").moves, options
        )

    # Assert
    assert len(generator.prompts) == 1
    assert report.moves[2].note == "Early queen sortie."
    assert report.moves[2].better == "Develop with Nf3."
    assert "note" not in report.moves[0].to_dict()


@pytest.mark.asyncio
async def test_disabled_coach_leaves_rows_unannotated(fake_engine, make_result):
    _, _, f2, f3 = _fens("e4", "e5", "Qh5")
    fake_engine.results[f3] = make_result(cp=300)
    options = AnalysisOptions(depth=12, multipv=3, with_coach=True)

    async with SingleFlightEngineQueue(fake_engine) as queue:
        report = await _analyzer(queue).analyze_game(recover_moves("1. e4 e5 2. Qh5").moves, options)

    assert report.moves[2].verdict == Verdict.BLUNDER
    assert all(row.note is None and row.better is None for row in report.moves)
