# chess_review/output/report_generator.py
"""
Provides a service for writing a finished game report in tabular form.

This module contains the `ReportGenerator`, a "dumb" output service: it
formats `GameReport` rows into a CSV file and a short console summary. It
contains no analysis logic.
"""

import csv
from pathlib import Path
from typing import Any, Dict, List

import structlog

from chess_review.exceptions import ReportGenerationError
from chess_review.types import AnalyzedMove, GameReport, Verdict

logger = structlog.get_logger(__name__)


class ReportGenerator:
    """A stateless service that renders a `GameReport` as CSV or text."""

    # Column order follows the analysis response keys.
    _CSV_HEADERS: List[str] = [
        "ply", "side", "san", "uci", "fenBefore", "fenAfter", "bestmove",
        "evalBestCp", "evalHumanCp", "deltaCp", "verdict", "note", "better",
    ]

    def _row(self, move: AnalyzedMove) -> Dict[str, Any]:
        row = move.to_dict()
        row.setdefault("note", "")
        row.setdefault("better", "")
        if row["bestmove"] is None:
            row["bestmove"] = ""
        return row

    def write_csv(self, report: GameReport, output_path: Path) -> None:
        """
        Writes one CSV row per analyzed move.

        Raises:
            ReportGenerationError: If the CSV file cannot be written.
        """
        rows = [self._row(move) for move in report.moves]
        logger.info("Writing CSV report.", path=str(output_path), num_rows=len(rows))
        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            with output_path.open("w", newline="", encoding="utf-8") as csvfile:
                writer = csv.DictWriter(csvfile, fieldnames=self._CSV_HEADERS)
                writer.writeheader()
                writer.writerows(rows)
        except OSError as e:
            raise ReportGenerationError(f"Failed to write CSV report to {output_path}") from e
        logger.info("Successfully generated CSV report.", path=str(output_path))

    def render_summary(self, report: GameReport) -> str:
        """Formats the non-`Okay` moves and the verdict counts for the terminal."""
        lines: List[str] = []
        for move in report.moves:
            if move.verdict == Verdict.OKAY:
                continue
            number = (move.ply + 1) // 2
            prefix = f"{number}." if move.side == "white" else f"{number}..."
            line = f"{prefix} {move.san}: {move.verdict.value} ({move.delta_cp:+d} cp, best {move.best_move or '-'})"
            if move.note:
                line += f"\n    {move.note}"
            if move.better:
                line += f"\n    Better: {move.better}"
            lines.append(line)

        s = report.summary
        lines.append(
            f"{len(report.moves)} plies analyzed: "
            f"{s.inaccuracies} inaccuracies, {s.mistakes} mistakes, {s.blunders} blunders."
        )
        return "\n".join(lines)
