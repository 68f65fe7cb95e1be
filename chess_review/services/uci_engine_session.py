# chess_review/services/uci_engine_session.py
"""
Provides a concrete implementation of the `EngineSession` protocol for any
UCI engine (Stockfish by default).

This module is the translation layer at the engine protocol boundary. It
drives the engine subprocess through python-chess's asyncio UCI protocol and
converts the engine's progress lines and terminal `bestmove` into the
application's `EvaluationResult`. It makes no attempt to serialize callers;
that is the job of the `SingleFlightEngineQueue` that owns the session.
"""

from typing import Any, Dict, Iterable, List, Optional, TYPE_CHECKING

import chess
import chess.engine
import structlog

from chess_review.exceptions import EngineAnalysisError, EngineInitializationError
from chess_review.types import (CandidateLine, EngineScore, EngineSession,
                                EvaluationRequest, EvaluationResult)
from chess_review.utils.system_utils import find_stockfish_executable

if TYPE_CHECKING:
    from chess_review.config.settings import EngineSettings

logger = structlog.get_logger(__name__)


def _to_engine_score(pov_score: Optional[chess.engine.PovScore]) -> EngineScore:
    """Converts a python-chess score into a side-to-move `EngineScore`."""
    if pov_score is None:
        return EngineScore(kind="cp", value=0)
    relative = pov_score.relative
    if relative.is_mate():
        return EngineScore(kind="mate", value=int(relative.mate()))
    return EngineScore(kind="cp", value=int(relative.score()))


def parse_candidate_lines(infos: Iterable[chess.engine.InfoDict]) -> List[CandidateLine]:
    """
    Converts the engine's per-line info into ranked `CandidateLine`s.

    Lines the engine never reported a score or variation for are dropped. The
    result is sorted by rank ascending, so index 0 is always the best line.
    """
    lines: List[CandidateLine] = []
    for index, info in enumerate(infos):
        if "score" not in info and "pv" not in info:
            continue
        lines.append(
            CandidateLine(
                rank=int(info.get("multipv", index + 1)),
                depth=int(info.get("depth", 0)),
                score=_to_engine_score(info.get("score")),
                pv=[move.uci() for move in info.get("pv", [])],
            )
        )
    return sorted(lines, key=lambda line: line.rank)


class UciEngineSession(EngineSession):
    """
    A single long-lived UCI engine process.

    The process is started lazily (or explicitly via `start`) and is not safe
    for overlapping requests. Construct one per process and hand it to the
    request queue.
    """

    def __init__(self, settings: "EngineSettings"):
        self._settings = settings
        self._transport: Optional[Any] = None
        self._protocol: Optional[chess.engine.Protocol] = None
        self._identifier: Optional[str] = None
        self._is_closed = False

    @property
    def identifier(self) -> Optional[str]:
        """The engine's self-reported name, available once started."""
        return self._identifier

    def _supported_options(self, protocol: chess.engine.Protocol) -> Dict[str, Any]:
        """Filters the configured UCI options down to those the engine accepts."""
        requested: Dict[str, Any] = {
            "Threads": self._settings.threads,
            "Hash": self._settings.hash_mb,
            **self._settings.parameters,
        }
        accepted: Dict[str, Any] = {}
        for name, value in requested.items():
            option = protocol.options.get(name)
            if option is None:
                logger.warning("Engine does not support option, skipping.", option=name)
            elif option.is_managed():
                # MultiPV and friends are set per request by python-chess.
                logger.warning("Engine option is managed per request, skipping.", option=name)
            else:
                accepted[name] = value
        return accepted

    async def start(self) -> None:
        """
        Launches the engine, completes the UCI handshake and applies options.

        Raises:
            EngineInitializationError: If the executable is missing or the
                                       engine does not respond correctly.
        """
        if self._protocol is not None:
            return
        if self._is_closed:
            raise EngineInitializationError("Engine session is closed.", engine=self)

        try:
            path = find_stockfish_executable(self._settings.path)
        except FileNotFoundError as e:
            raise EngineInitializationError(str(e), engine=self) from e

        try:
            transport, protocol = await chess.engine.popen_uci(str(path))
        except (OSError, chess.engine.EngineError) as e:
            raise EngineInitializationError(f"Failed to start engine at {path}: {e}", engine=self) from e

        try:
            options = self._supported_options(protocol)
            await protocol.configure(options)
            await protocol.ping()
        except (chess.engine.EngineError, chess.engine.EngineTerminatedError) as e:
            transport.close()
            raise EngineInitializationError(f"Engine at {path} failed to become ready: {e}", engine=self) from e

        self._transport, self._protocol = transport, protocol
        self._identifier = protocol.id.get("name", str(path))
        logger.info("Engine session ready.", engine=self._identifier, options=options)

    async def evaluate(self, request: EvaluationRequest) -> EvaluationResult:
        """
        Searches one position and returns the ranked candidate lines.

        The search is bounded by `movetime_ms` when set, otherwise by `depth`.

        Raises:
            EngineAnalysisError: If the position is invalid or the engine fails.
        """
        if self._protocol is None:
            await self.start()
        protocol = self._protocol
        if protocol is None:
            raise EngineAnalysisError("Engine session is not running.", engine=self)

        try:
            board = chess.Board(request.fen)
        except ValueError as e:
            raise EngineAnalysisError(f"Invalid FEN for analysis: {request.fen}", engine=self) from e

        if request.movetime_ms:
            limit = chess.engine.Limit(time=request.movetime_ms / 1000)
        else:
            limit = chess.engine.Limit(depth=request.depth)

        try:
            # A fresh game token makes python-chess send `ucinewgame` first,
            # so no search state carries over between requests.
            with await protocol.analysis(board, limit, multipv=request.multipv, game=object()) as analysis:
                best = await analysis.wait()
                infos = list(analysis.multipv)
        except chess.engine.EngineTerminatedError as e:
            self._protocol = None
            self._transport = None
            logger.error("Engine process terminated during analysis.", fen=request.fen)
            raise EngineAnalysisError("Engine process terminated during analysis.", engine=self) from e
        except chess.engine.EngineError as e:
            raise EngineAnalysisError(f"Engine rejected the request: {e}", engine=self) from e

        return EvaluationResult(
            best_move=best.move.uci() if best.move else None,
            candidates=parse_candidate_lines(infos),
        )

    async def close(self) -> None:
        """Gracefully terminates the engine subprocess."""
        if self._is_closed:
            return
        self._is_closed = True
        protocol, self._protocol = self._protocol, None
        if protocol is None:
            return
        try:
            await protocol.quit()
        except chess.engine.EngineTerminatedError:
            pass
        except chess.engine.EngineError:
            logger.warning("Engine did not quit cleanly.", exc_info=True)
        finally:
            if self._transport is not None:
                self._transport.close()
                self._transport = None
        logger.info("Engine session closed.", engine=self._identifier)
