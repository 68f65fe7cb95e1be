# tests/conftest.py
import asyncio
from typing import Callable, Dict, List, Optional

import pytest

from chess_review.types import (CandidateLine, EngineScore, EvaluationRequest,
                                EvaluationResult)


def build_result(cp: Optional[int] = 0, mate: Optional[int] = None, best_move: Optional[str] = None,
                 depth: int = 16) -> EvaluationResult:
    score = EngineScore(kind="mate", value=mate) if mate is not None else EngineScore(kind="cp", value=cp or 0)
    pv = [best_move] if best_move else []
    return EvaluationResult(
        best_move=best_move,
        candidates=[CandidateLine(rank=1, depth=depth, score=score, pv=pv)],
    )


class FakeEngineSession:
    """An in-memory engine: scripted results by FEN, with call and concurrency bookkeeping."""

    def __init__(self, delay_s: float = 0.0):
        self.delay_s = delay_s
        self.results: Dict[str, EvaluationResult] = {}
        self.failures: Dict[str, Exception] = {}
        self.delays: Dict[str, float] = {}
        self.calls: List[EvaluationRequest] = []
        self.active = 0
        self.max_active = 0
        self.started = False
        self.closed = False

    async def start(self) -> None:
        self.started = True

    async def evaluate(self, request: EvaluationRequest) -> EvaluationResult:
        self.calls.append(request)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delays.get(request.fen, self.delay_s))
            if request.fen in self.failures:
                raise self.failures[request.fen]
            return self.results.get(request.fen, build_result(0))
        finally:
            self.active -= 1

    async def close(self) -> None:
        self.closed = True


class FakeTextGenerator:
    """Answers every prompt with a fixed reply, or raises."""

    def __init__(self, reply: str = "", error: Optional[Exception] = None):
        self.reply = reply
        self.error = error
        self.prompts: List[str] = []

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def make_result() -> Callable[..., EvaluationResult]:
    return build_result


@pytest.fixture
def fake_engine() -> FakeEngineSession:
    return FakeEngineSession()


@pytest.fixture
def slow_engine() -> FakeEngineSession:
    return FakeEngineSession(delay_s=0.01)


@pytest.fixture
def make_text_generator() -> Callable[..., FakeTextGenerator]:
    return FakeTextGenerator
