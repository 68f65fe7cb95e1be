# chess_review/services/sqlite_cache_service.py
"""
Provides a concrete implementation of the `CacheService` protocol using SQLite.

This is the optional persistent tier behind the in-memory LRU cache. It keeps
engine evaluations across process restarts, keyed by the same 4-tuple as the
in-memory cache (position, depth, candidate-line count, time budget), so a
re-run of the same game with the same settings never wakes the engine.
"""

import json
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Type, TYPE_CHECKING

import aiosqlite
import structlog

from chess_review.exceptions import CacheConnectionError, CacheReadError, CacheWriteError
from chess_review.types import (CacheKey, CacheService, CandidateLine, EngineScore,
                                EvaluationResult)
from chess_review.utils.retry import retry_with_backoff

if TYPE_CHECKING:
    from chess_review.config.settings import CacheSettings

logger = structlog.get_logger(__name__)

# "database is locked" surfaces as an OperationalError under concurrent access.
RETRYABLE_EXCEPTIONS: Tuple[Type[Exception], ...] = (
    aiosqlite.OperationalError,
)

CREATE_CACHE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS evaluation_cache (
    fen TEXT NOT NULL,
    depth INTEGER NOT NULL,
    multipv INTEGER NOT NULL,
    movetime_ms INTEGER NOT NULL,
    result_json TEXT NOT NULL,
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
    PRIMARY KEY (fen, depth, multipv, movetime_ms)
)
"""


def _result_to_json(result: EvaluationResult) -> str:
    return json.dumps({
        "best_move": result.best_move,
        "candidates": [asdict(line) for line in result.candidates],
    })


def _result_from_json(raw: str) -> EvaluationResult:
    data: Dict[str, Any] = json.loads(raw)
    candidates = [
        CandidateLine(
            rank=line["rank"], depth=line["depth"],
            score=EngineScore(**line["score"]), pv=list(line["pv"]),
        )
        for line in data["candidates"]
    ]
    return EvaluationResult(best_move=data["best_move"], candidates=candidates)


class SqliteCacheService(CacheService):
    """
    A `CacheService` implementation backed by a local SQLite database.

    This class is an async context manager, managing its own database connection
    lifecycle.
    """

    def __init__(self, settings: "CacheSettings"):
        if not settings.db_filepath:
            raise CacheConnectionError("SqliteCacheService requires cache.db_filepath to be set.")
        self._db_path = Path(settings.db_filepath)
        self._connection: Optional[aiosqlite.Connection] = None

    async def __aenter__(self) -> "SqliteCacheService":
        """Opens the database and creates the schema on entering the context."""
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._connection = await aiosqlite.connect(self._db_path, timeout=10.0)
            await self._connection.execute("PRAGMA journal_mode=WAL;")
            await self._connection.execute(CREATE_CACHE_TABLE_SQL)
            await self._connection.commit()
        except aiosqlite.Error as e:
            raise CacheConnectionError(f"Failed to initialize SQLite cache: {e}") from e
        logger.info("Persistent evaluation cache opened.", path=str(self._db_path))
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Closes the database connection on exiting the context."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    def _ensure_connected(self) -> aiosqlite.Connection:
        if self._connection is None:
            raise CacheConnectionError("Cache service is not connected.")
        return self._connection

    @retry_with_backoff(exceptions_to_catch=RETRYABLE_EXCEPTIONS, db_type="cache")
    async def get_cached_analysis(self, key: CacheKey) -> Optional[EvaluationResult]:
        """
        Looks up one evaluation.

        Returns:
            The stored `EvaluationResult`, or `None` on a miss or a corrupt row.

        Raises:
            CacheReadError: If a non-retriable database error occurs.
        """
        conn = self._ensure_connected()
        query = (
            "SELECT result_json FROM evaluation_cache "
            "WHERE fen = ? AND depth = ? AND multipv = ? AND movetime_ms = ?"
        )
        try:
            async with conn.execute(query, (key.fen, key.depth, key.multipv, key.movetime_ms)) as cursor:
                row = await cursor.fetchone()
        except aiosqlite.OperationalError:
            raise
        except aiosqlite.Error as e:
            raise CacheReadError(f"Failed to read from cache: {e}") from e

        if row is None:
            return None
        try:
            return _result_from_json(row[0])
        except (json.JSONDecodeError, KeyError, TypeError) as e:
            logger.warning("Corrupt data in cache for key, ignoring.", cache_key=key, error=str(e))
            return None

    @retry_with_backoff(exceptions_to_catch=RETRYABLE_EXCEPTIONS, db_type="cache")
    async def store_analysis(self, key: CacheKey, result: EvaluationResult) -> None:
        """
        Stores one evaluation. Existing rows are kept (`INSERT OR IGNORE`),
        which makes the operation idempotent.

        Raises:
            CacheWriteError: If a non-retriable database error occurs.
        """
        conn = self._ensure_connected()
        query = (
            "INSERT OR IGNORE INTO evaluation_cache (fen, depth, multipv, movetime_ms, result_json) "
            "VALUES (?, ?, ?, ?, ?)"
        )
        try:
            await conn.execute(query, (key.fen, key.depth, key.multipv, key.movetime_ms, _result_to_json(result)))
            await conn.commit()
        except aiosqlite.OperationalError:
            await conn.rollback()
            raise
        except aiosqlite.Error as e:
            await conn.rollback()
            raise CacheWriteError(f"Failed to store into cache: {e}") from e
