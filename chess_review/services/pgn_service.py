# chess_review/services/pgn_service.py
"""
Provides a service for handling all filesystem interactions of the pipeline.

This module is a stateless adapter between the analysis pipeline and the
filesystem: it reads raw movetext from a file (or standard input) and writes
finished reports as JSON. Parsing is left to `core.pgn_parser`, so the text is
passed through untouched.
"""

import asyncio
import json
import sys
from pathlib import Path
from typing import Union

import aiofiles
import structlog

from chess_review.exceptions import PgnServiceError
from chess_review.types import GameReport

logger = structlog.get_logger(__name__)

STDIN_MARKER = "-"


class PgnService:
    """A stateless service for movetext input and report output."""

    async def read_movetext(self, source: Union[str, Path]) -> str:
        """
        Reads a movetext blob from a file, or from standard input when `source` is "-".

        Decoding errors are replaced rather than raised; the recovery parser
        copes with stray characters.

        Raises:
            PgnServiceError: If the file cannot be found or read.
        """
        if str(source) == STDIN_MARKER:
            return await asyncio.to_thread(sys.stdin.read)

        path = Path(source)
        try:
            async with aiofiles.open(path, "r", encoding="utf-8", errors="replace") as f:
                text = await f.read()
        except FileNotFoundError:
            raise PgnServiceError(f"Input PGN file not found: {path}")
        except OSError as e:
            raise PgnServiceError(f"Failed to read movetext from {path}: {e}") from e

        logger.debug("Movetext loaded.", path=str(path), chars=len(text))
        return text

    async def export_report(self, report: GameReport, output_filepath: Path) -> None:
        """
        Writes a report as JSON, using the same keys as the analysis response.

        Raises:
            PgnServiceError: If the file cannot be written to.
        """
        payload = json.dumps(report.to_dict(), indent=2)
        try:
            output_filepath.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(output_filepath, "w", encoding="utf-8") as f:
                await f.write(payload + "\n")
        except OSError as e:
            raise PgnServiceError(f"Failed to export report to {output_filepath}: {e}") from e
        logger.info("JSON report written.", path=str(output_filepath), moves=len(report.moves))
