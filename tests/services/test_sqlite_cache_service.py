# tests/services/test_sqlite_cache_service.py
import pytest

from chess_review.config.settings import CacheSettings
from chess_review.exceptions import CacheConnectionError
from chess_review.services.sqlite_cache_service import SqliteCacheService
from chess_review.types import CacheKey, CandidateLine, EngineScore, EvaluationResult

KEY = CacheKey(fen="8/8/8/8/8/8/8/K6k w - - 0 1", depth=12, multipv=2, movetime_ms=0)


def _result() -> EvaluationResult:
    return EvaluationResult(
        best_move="a1b1",
        candidates=[
            CandidateLine(rank=1, depth=12, score=EngineScore(kind="cp", value=0), pv=["a1b1", "h1g1"]),
            CandidateLine(rank=2, depth=12, score=EngineScore(kind="mate", value=-4), pv=["a1a2"]),
        ],
    )


@pytest.mark.asyncio
async def test_stored_result_survives_a_reopen(tmp_path):
    settings = CacheSettings(db_filepath=str(tmp_path / "cache" / "evals.db"))

    async with SqliteCacheService(settings) as cache:
        assert await cache.get_cached_analysis(KEY) is None
        await cache.store_analysis(KEY, _result())

    async with SqliteCacheService(settings) as cache:
        assert await cache.get_cached_analysis(KEY) == _result()


@pytest.mark.asyncio
async def test_store_keeps_the_first_result(tmp_path):
    settings = CacheSettings(db_filepath=str(tmp_path / "evals.db"))
    other = EvaluationResult(best_move=None, candidates=[])

    async with SqliteCacheService(settings) as cache:
        await cache.store_analysis(KEY, _result())
        await cache.store_analysis(KEY, other)
        assert await cache.get_cached_analysis(KEY) == _result()


@pytest.mark.asyncio
async def test_keys_differing_in_time_budget_are_distinct(tmp_path):
    settings = CacheSettings(db_filepath=str(tmp_path / "evals.db"))
    timed = CacheKey(fen=KEY.fen, depth=KEY.depth, multipv=KEY.multipv, movetime_ms=250)

    async with SqliteCacheService(settings) as cache:
        await cache.store_analysis(KEY, _result())
        assert await cache.get_cached_analysis(timed) is None


def test_requires_a_database_path():
    with pytest.raises(CacheConnectionError):
        SqliteCacheService(CacheSettings())


@pytest.mark.asyncio
async def test_use_before_open_is_rejected(tmp_path):
    cache = SqliteCacheService(CacheSettings(db_filepath=str(tmp_path / "evals.db")))
    with pytest.raises(CacheConnectionError):
        await cache.get_cached_analysis(KEY)
