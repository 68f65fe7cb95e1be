# tests/orchestration/test_analysis_service.py
from unittest.mock import AsyncMock, MagicMock

import chess
import pytest
from prometheus_client import REGISTRY

from chess_review.config.settings import AnalysisSettings
from chess_review.exceptions import (EngineAnalysisError, EngineTimeoutError, InputValidationError,
                                     PgnParsingError, ReplayInconsistencyError)
from chess_review.orchestration.analysis_service import AnalysisRequest, AnalysisService
from chess_review.orchestration.game_analyzer import GameAnalyzer
from chess_review.services.analysis_provider import AnalysisProvider
from chess_review.types import AnalysisOptions, EvaluationRequest, GameReport, VerdictSummary


def _errors(category: str) -> float:
    return REGISTRY.get_sample_value("chess_review_games_with_errors_total", {"category": category}) or 0.0


@pytest.fixture
def mock_analyzer():
    analyzer = MagicMock(spec=GameAnalyzer)
    analyzer.analyze_game = AsyncMock(return_value=GameReport(moves=[], summary=VerdictSummary()))
    return analyzer


@pytest.fixture
def mock_provider(make_result):
    provider = MagicMock(spec=AnalysisProvider)
    provider.analyze_uncached = AsyncMock(return_value=make_result(cp=15, best_move="e2e4"))
    return provider


@pytest.fixture
def service(mock_analyzer, mock_provider):
    return AnalysisService(mock_analyzer, mock_provider, AnalysisSettings(depth=14, multipv=2))


def test_parse_returns_move_count(service):
    assert service.parse("1. e4 e5 2. Nf3 Nc6 3. Bb5") == 5


def test_parse_rejects_empty_input(service):
    with pytest.raises(PgnParsingError):
        service.parse("")


@pytest.mark.asyncio
async def test_analyze_game_passes_recovered_moves_and_options(service, mock_analyzer):
    # Act
    report = await service.analyze_game({"pgn": "1. e4 e5", "depth": 10, "with_coach": True})

    # Assert
    assert report.summary == VerdictSummary()
    moves, options = mock_analyzer.analyze_game.await_args.args
    assert [m.uci for m in moves] == ["e2e4", "e7e5"]
    assert options == AnalysisOptions(depth=10, multipv=3, movetime_ms=None, with_coach=True)


@pytest.mark.asyncio
async def test_empty_movetext_fails_validation(service, mock_analyzer):
    before = _errors("validation")

    with pytest.raises(InputValidationError):
        await service.analyze_game(AnalysisRequest(pgn=""))

    mock_analyzer.analyze_game.assert_not_awaited()
    assert _errors("validation") == before + 1


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [
    {"depth": 10},
    {"pgn": "1. e4", "depth": 0},
    {"pgn": "1. e4", "multipv": 0},
    {"pgn": "1. e4", "movetime_ms": -5},
])
async def test_malformed_requests_fail_validation(service, payload):
    with pytest.raises(InputValidationError):
        await service.analyze_game(payload)


@pytest.mark.asyncio
async def test_engine_failures_are_counted_as_analysis_errors(service, mock_analyzer):
    mock_analyzer.analyze_game.side_effect = EngineAnalysisError("engine died")
    before = _errors("analysis")

    with pytest.raises(EngineAnalysisError):
        await service.analyze_game(AnalysisRequest(pgn="1. e4"))

    assert _errors("analysis") == before + 1


@pytest.mark.parametrize("exc, category", [
    (InputValidationError("x"), "validation"),
    (PgnParsingError("x"), "validation"),
    (ReplayInconsistencyError("x", ply=3), "replay"),
    (EngineAnalysisError("x"), "analysis"),
    (EngineTimeoutError("x"), "analysis"),
    (RuntimeError("x"), "analysis"),
])
def test_error_category(exc, category):
    assert AnalysisService.error_category(exc) == category


@pytest.mark.asyncio
async def test_analyze_position_is_uncached_and_uses_defaults(service, mock_provider):
    result = await service.analyze_position(chess.STARTING_FEN)

    assert result.best_move == "e2e4"
    mock_provider.analyze_uncached.assert_awaited_once_with(
        EvaluationRequest(fen=chess.STARTING_FEN, depth=14, multipv=2, movetime_ms=None)
    )


@pytest.mark.asyncio
async def test_analyze_position_rejects_invalid_fen(service, mock_provider):
    with pytest.raises(InputValidationError):
        await service.analyze_position("definitely not a fen")

    mock_provider.analyze_uncached.assert_not_awaited()
