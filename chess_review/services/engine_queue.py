# chess_review/services/engine_queue.py
"""
Provides the single-flight request lane in front of the engine session.

The engine is one stateful process that cannot serve overlapping searches.
`SingleFlightEngineQueue` accepts evaluation requests from any number of
concurrent callers, hands each caller a future, and feeds the requests to the
engine strictly one at a time, in submission order. A failing request fails
only its own future; the lane keeps draining.
"""

import asyncio
import time
from collections import deque
from typing import Deque, Optional, Tuple

import structlog

from chess_review.exceptions import (ChessReviewError, EngineAnalysisError,
                                     EngineTimeoutError)
from chess_review.types import EngineSession, EvaluationRequest, EvaluationResult
from chess_review.utils import metrics

logger = structlog.get_logger(__name__)

_PendingRequest = Tuple[EvaluationRequest, "asyncio.Future[EvaluationResult]"]


class SingleFlightEngineQueue:
    """
    An async context manager that owns an engine session and serializes access to it.

    Entering the context starts the session; leaving it fails any requests
    still waiting and closes the session.
    """

    def __init__(self, session: EngineSession, request_timeout_s: Optional[float] = None):
        """
        Initializes the queue.

        Args:
            session: The engine session to drive. The queue takes ownership of it.
            request_timeout_s: Optional watchdog for a single request. `None`
                               waits for the engine indefinitely.
        """
        self._session = session
        self._request_timeout_s = request_timeout_s
        self._pending: Deque[_PendingRequest] = deque()
        self._pump_task: Optional[asyncio.Task] = None
        self._draining = False
        self._in_flight: Optional[EvaluationRequest] = None
        self._is_closed = False

    @property
    def pending_count(self) -> int:
        """Number of requests waiting for their turn (excluding the one in flight)."""
        return len(self._pending)

    @property
    def in_flight(self) -> Optional[EvaluationRequest]:
        """The request currently being served by the engine, if any."""
        return self._in_flight

    async def __aenter__(self) -> "SingleFlightEngineQueue":
        await self._session.start()
        logger.info("Engine queue opened.")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def submit(self, request: EvaluationRequest) -> "asyncio.Future[EvaluationResult]":
        """
        Appends a request to the lane and returns a future for its result.

        Raises:
            EngineAnalysisError: If the queue has been closed.
        """
        if self._is_closed:
            raise EngineAnalysisError("Engine queue is closed.")

        future: "asyncio.Future[EvaluationResult]" = asyncio.get_running_loop().create_future()
        self._pending.append((request, future))
        metrics.ENGINE_QUEUE_DEPTH.set(len(self._pending))
        self._pump()
        return future

    async def evaluate(self, request: EvaluationRequest) -> EvaluationResult:
        """Submits a request and waits for its result."""
        return await self.submit(request)

    def _pump(self) -> None:
        """Starts the drain loop unless it is already running."""
        if self._draining or not self._pending:
            return
        self._draining = True
        self._pump_task = asyncio.create_task(self._drain())

    async def _drain(self) -> None:
        """Serves pending requests one at a time until the lane is empty."""
        try:
            while self._pending:
                request, future = self._pending.popleft()
                metrics.ENGINE_QUEUE_DEPTH.set(len(self._pending))
                if future.done():
                    # The caller gave up while waiting; skip the engine work.
                    continue
                await self._serve(request, future)
        finally:
            self._draining = False

    async def _serve(self, request: EvaluationRequest, future: "asyncio.Future[EvaluationResult]") -> None:
        """Runs one request against the session and settles its future."""
        self._in_flight = request
        started = time.perf_counter()
        try:
            if self._request_timeout_s is not None:
                result = await asyncio.wait_for(self._session.evaluate(request), timeout=self._request_timeout_s)
            else:
                result = await self._session.evaluate(request)
        except asyncio.TimeoutError:
            metrics.ENGINE_REQUESTS_FAILED_TOTAL.inc()
            logger.error("Engine request timed out.", fen=request.fen, timeout_s=self._request_timeout_s)
            if not future.done():
                future.set_exception(EngineTimeoutError(
                    f"Engine did not answer within {self._request_timeout_s}s.", engine=self._session
                ))
        except ChessReviewError as e:
            metrics.ENGINE_REQUESTS_FAILED_TOTAL.inc()
            logger.error("Engine request failed.", fen=request.fen, error=str(e))
            if not future.done():
                future.set_exception(e)
        except Exception as e:
            metrics.ENGINE_REQUESTS_FAILED_TOTAL.inc()
            logger.error("Engine request failed unexpectedly.", fen=request.fen, exc_info=True)
            if not future.done():
                failure = EngineAnalysisError(f"Engine request failed: {e}", engine=self._session)
                failure.__cause__ = e
                future.set_exception(failure)
        else:
            if not future.done():
                future.set_result(result)
        finally:
            self._in_flight = None
            metrics.ENGINE_REQUEST_DURATION_SECONDS.observe(time.perf_counter() - started)

    async def close(self) -> None:
        """
        Stops accepting requests, fails everything still queued, waits for the
        request in flight, and closes the engine session.
        """
        if self._is_closed:
            return
        self._is_closed = True

        abandoned = 0
        while self._pending:
            _, future = self._pending.popleft()
            if not future.done():
                future.set_exception(EngineAnalysisError("Engine queue closed before the request was served."))
                abandoned += 1
        metrics.ENGINE_QUEUE_DEPTH.set(0)

        if self._pump_task is not None:
            await asyncio.gather(self._pump_task, return_exceptions=True)

        await self._session.close()
        logger.info("Engine queue closed.", abandoned_requests=abandoned)
