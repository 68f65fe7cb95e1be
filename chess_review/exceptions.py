# chess_review/exceptions.py
"""
Defines custom exceptions for the Chess Review pipeline.

All errors share the `ChessReviewError` base so callers can catch the whole
family, while the subclasses keep the three user-visible categories apart:
input validation, replay inconsistency, and engine (analysis) failure.
"""

from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from chess_review.types import EngineSession


class ChessReviewError(Exception):
    """Base class for all application-specific, catchable errors."""
    pass


class InputValidationError(ChessReviewError):
    """Raised when an analysis request is rejected before any work is done."""
    pass


class PgnParsingError(InputValidationError):
    """
    Raised when no legal moves can be recovered from a movetext blob.

    This covers empty input as well as text in which neither the strict load
    nor the token-by-token salvage produced a single legal move.
    """
    pass


class ReplayInconsistencyError(ChessReviewError):
    """
    Raised when a recovered move cannot be applied during replay.

    The parser already validated the sequence, so this signals a disagreement
    between the two components and is fatal for the request.
    """
    def __init__(self, message: str, ply: Optional[int] = None):
        super().__init__(message)
        self.ply = ply


class EngineError(ChessReviewError):
    """
    Base class for errors related to the engine session.

    Attributes:
        engine: An optional reference to the failed engine session.
    """
    def __init__(self, message: str, engine: Optional["EngineSession"] = None):
        super().__init__(message)
        self.engine = engine


class EngineInitializationError(EngineError):
    """
    Raised when the engine process cannot be started or does not complete
    the UCI handshake.
    """
    pass


class EngineAnalysisError(EngineError):
    """
    Raised when an evaluation request fails, either because the engine
    session errored or because the request queue was shut down.
    """
    pass


class EngineTimeoutError(EngineAnalysisError):
    """Raised when a single request exceeds the configured watchdog timeout."""
    pass


class CacheError(ChessReviewError):
    """Base class for all persistent cache errors."""
    pass


class CacheConnectionError(CacheError):
    """Raised when unable to connect to or initialize the cache database."""
    pass


class CacheReadError(CacheError):
    """Raised when an error occurs while reading from the cache database."""
    pass


class CacheWriteError(CacheError):
    """Raised when an error occurs while writing to the cache database."""
    pass


class PgnServiceError(ChessReviewError):
    """
    Raised for file I/O errors when reading movetext or writing reports.

    This typically wraps lower-level exceptions like `FileNotFoundError` or `OSError`.
    """
    pass


class ReportGenerationError(ChessReviewError):
    """Raised for errors encountered while writing a CSV report."""
    pass
