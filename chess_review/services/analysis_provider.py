# chess_review/services/analysis_provider.py
"""
Provides a high-level service for fetching engine evaluations.

This module contains the `AnalysisProvider`, which implements the
"cache-aside" pattern in front of the single-flight engine queue:
1. It first checks the in-memory LRU cache.
2. It then checks the optional persistent cache tier.
3. On a miss, it submits the request to the engine queue and stores the
   result in both tiers.

Concurrent misses for the same key are coalesced, so a position requested
twice while its first evaluation is still running costs one engine search.
"""

import asyncio
import functools
from typing import Dict, Optional

import structlog

from chess_review.services.engine_queue import SingleFlightEngineQueue
from chess_review.services.evaluation_cache import EvaluationCache
from chess_review.types import (CacheKey, CacheService, EvaluationRequest,
                                EvaluationResult)
from chess_review.utils import metrics

logger = structlog.get_logger(__name__)


class AnalysisProvider:
    """A coordinator service that provides engine evaluations using a cache-aside strategy."""

    def __init__(
        self,
        cache: EvaluationCache,
        engine_queue: SingleFlightEngineQueue,
        persistent_cache: Optional[CacheService] = None,
    ):
        """
        Initializes the AnalysisProvider.

        Args:
            cache: The in-memory LRU evaluation cache.
            engine_queue: The single lane to the engine.
            persistent_cache: Optional on-disk tier consulted after the LRU.
        """
        self._cache = cache
        self._queue = engine_queue
        self._persistent_cache = persistent_cache
        self._in_flight: Dict[CacheKey, "asyncio.Task[EvaluationResult]"] = {}

    async def analyze_cached(self, request: EvaluationRequest) -> EvaluationResult:
        """
        Returns the evaluation for a request, touching the engine only on a miss.

        Raises:
            EngineAnalysisError: If the engine fails to evaluate the position.
        """
        key = request.cache_key
        cached = self._cache.get(key)
        if cached is not None:
            metrics.POSITION_EVALUATIONS_TOTAL.labels(source="cache_hit").inc()
            return cached

        pending = self._in_flight.get(key)
        if pending is not None:
            metrics.POSITION_EVALUATIONS_TOTAL.labels(source="coalesced").inc()
            logger.debug("Joining in-flight evaluation.", fen=request.fen)
            return await asyncio.shield(pending)

        task = asyncio.create_task(self._fill(request))
        self._in_flight[key] = task
        task.add_done_callback(functools.partial(self._forget, key))
        return await asyncio.shield(task)

    def _forget(self, key: CacheKey, task: "asyncio.Task[EvaluationResult]") -> None:
        """Drops a finished fill and marks its failure as seen, even if every waiter was cancelled."""
        self._in_flight.pop(key, None)
        if not task.cancelled():
            task.exception()

    async def analyze_uncached(self, request: EvaluationRequest) -> EvaluationResult:
        """Evaluates a position through the engine queue without reading or writing the cache."""
        metrics.POSITION_EVALUATIONS_TOTAL.labels(source="engine_run").inc()
        return await self._queue.evaluate(request)

    async def _fill(self, request: EvaluationRequest) -> EvaluationResult:
        """Resolves a miss from the persistent tier or the engine, then populates the caches."""
        key = request.cache_key

        if self._persistent_cache is not None:
            stored = await self._persistent_cache.get_cached_analysis(key)
            if stored is not None:
                metrics.POSITION_EVALUATIONS_TOTAL.labels(source="persistent_cache_hit").inc()
                self._cache.set(key, stored)
                return stored

        metrics.POSITION_EVALUATIONS_TOTAL.labels(source="engine_run").inc()
        logger.debug(
            "Requesting new engine analysis.",
            fen=request.fen, depth=request.depth, multipv=request.multipv, movetime_ms=request.movetime_ms,
        )
        result = await self._queue.evaluate(request)
        self._cache.set(key, result)

        if self._persistent_cache is not None:
            await self._persistent_cache.store_analysis(key, result)
        return result
