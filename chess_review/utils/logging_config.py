# chess_review/utils/logging_config.py
"""
Configures application-wide structured logging using structlog.

Every module logs through `structlog.get_logger(__name__)`. This module routes
those events, together with stdlib loggers such as python-chess's engine and
PGN loggers, through one set of handlers.
"""

import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

import structlog
from structlog.types import Processor

# Third-party loggers that are far too chatty at the application's level.
# python-chess logs every UCI line it sends and receives at DEBUG.
_NOISY_LOGGERS: Dict[str, int] = {
    "chess.engine": logging.WARNING,
    "chess.pgn": logging.CRITICAL,
    "asyncio": logging.WARNING,
    "httpx": logging.WARNING,
}


def setup_logging(
    log_level: str = "INFO",
    log_to_console: bool = True,
    log_file: Optional[Path] = None,
    force_json_console: bool = False,
) -> None:
    """
    Configures structlog and the stdlib root logger.

    Args:
        log_level: The root level, e.g. "INFO" or "DEBUG".
        log_to_console: Whether to log to stderr.
        log_file: Optional path of a JSON-lines log file.
        force_json_console: Render console output as JSON instead of the
                            colored development renderer.
    """
    shared_processors: List[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    structlog.configure(
        processors=shared_processors + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    renderer: Processor
    if force_json_console:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    handlers: List[logging.Handler] = []
    if log_to_console:
        # stdout is reserved for the report itself.
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(foreign_pre_chain=shared_processors, processor=renderer)
        )
        handlers.append(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        file_handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                foreign_pre_chain=shared_processors,
                processor=structlog.processors.JSONRenderer(),
            )
        )
        handlers.append(file_handler)

    logging.basicConfig(handlers=handlers, level=log_level.upper(), force=True)

    for name, level in _NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(max(level, logging.getLogger().level))
