# chess_review/tracing.py

"""
tracing
~~~~~~~

Per-request traceability for the analysis pipeline. Every public operation of
the analysis service runs under its own `analysis_id`, bound into structlog's
context variables so that engine, cache and coach log lines can be tied back
to the request that caused them.
"""

import functools
import time
import uuid
from typing import Any, Callable

import structlog

logger = structlog.get_logger(__name__)


def new_analysis_id() -> str:
    """A short, human-readable identifier for one unit of work."""
    return f"an-{uuid.uuid4().hex[:8]}"


def trace_operation(func: Callable) -> Callable:
    """
    A decorator that binds an `analysis_id` for the duration of an async
    operation and logs its entry, exit and duration.
    """
    @functools.wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> Any:
        operation = func.__name__
        with structlog.contextvars.bound_contextvars(analysis_id=new_analysis_id()):
            started = time.perf_counter()
            logger.info("Starting operation.", operation=operation)
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                logger.warning("Operation failed.", operation=operation, error_type=type(e).__name__, error=str(e))
                raise
            logger.info(
                "Finished operation.", operation=operation,
                duration_s=round(time.perf_counter() - started, 3)
            )
            return result
    return wrapper
