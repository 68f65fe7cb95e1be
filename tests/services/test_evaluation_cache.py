# tests/services/test_evaluation_cache.py
import pytest

from chess_review.services.evaluation_cache import EvaluationCache
from chess_review.types import CacheKey, EvaluationRequest

FEN = "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq - 0 1"


def test_keys_differing_in_any_search_parameter_are_distinct(make_result):
    # Arrange
    cache = EvaluationCache()
    base = EvaluationRequest(fen=FEN, depth=16, multipv=3)
    variants = [
        base,
        EvaluationRequest(fen=FEN, depth=12, multipv=3),
        EvaluationRequest(fen=FEN, depth=16, multipv=1),
        EvaluationRequest(fen=FEN, depth=16, multipv=3, movetime_ms=500),
    ]

    # Act
    for i, request in enumerate(variants):
        cache.set(request.cache_key, make_result(cp=i))

    # Assert
    assert len(cache) == 4
    for i, request in enumerate(variants):
        assert cache.get(request.cache_key).candidates[0].score.value == i


def test_missing_time_budget_is_keyed_as_zero():
    request = EvaluationRequest(fen=FEN, depth=16, multipv=3)
    assert request.cache_key == CacheKey(fen=FEN, depth=16, multipv=3, movetime_ms=0)


def test_least_recently_used_entry_is_evicted(make_result):
    # Arrange
    cache = EvaluationCache(max_entries=2)
    a, b, c = (CacheKey(fen=f"fen-{name}", depth=1, multipv=1, movetime_ms=0) for name in "abc")
    cache.set(a, make_result(cp=1))
    cache.set(b, make_result(cp=2))

    # Act
    cache.get(a)  # a becomes most recently used
    cache.set(c, make_result(cp=3))

    # Assert
    assert a in cache
    assert b not in cache
    assert c in cache
    assert len(cache) == 2


def test_miss_returns_none():
    assert EvaluationCache().get(CacheKey(fen=FEN, depth=1, multipv=1, movetime_ms=0)) is None


def test_capacity_must_be_positive():
    with pytest.raises(ValueError):
        EvaluationCache(max_entries=0)
