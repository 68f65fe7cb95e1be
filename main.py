# main.py
"""
The command-line entry point for analyzing a single game.

Usage:
    python main.py GAME.pgn [--depth N] [--multipv N] [--movetime MS] [--coach]
                            [--json PATH] [--csv PATH] [--stockfish-path PATH]
                            [--log-level LEVEL]

Pass "-" instead of a file to read the movetext from standard input.
"""
import argparse
import asyncio
import sys
from contextlib import AsyncExitStack
from pathlib import Path
from typing import List, Optional

import structlog

from chess_review.config.settings import Settings
from chess_review.containers import get_container
from chess_review.exceptions import ChessReviewError
from chess_review.orchestration.analysis_service import AnalysisRequest, AnalysisService
from chess_review.output.report_generator import ReportGenerator
from chess_review.services.engine_queue import SingleFlightEngineQueue
from chess_review.services.pgn_service import PgnService
from chess_review.services.sqlite_cache_service import SqliteCacheService
from chess_review.utils.logging_config import setup_logging

logger = structlog.get_logger(__name__)

EXIT_CODES = {"validation": 2, "replay": 2, "analysis": 1}


def build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Classify every move of a chess game by the evaluation it gave up.")
    parser.add_argument("pgn", help="Path to a PGN or bare movetext file, or '-' for stdin.")
    parser.add_argument("--depth", type=int, default=settings.analysis.depth, help="Engine search depth per position.")
    parser.add_argument("--multipv", type=int, default=settings.analysis.multipv, help="Candidate lines for the position before each move.")
    parser.add_argument("--movetime", type=int, default=settings.analysis.movetime_ms, dest="movetime_ms",
                        help="Time budget per position in milliseconds; replaces the depth limit.")
    parser.add_argument("--coach", action="store_true", help="Ask the coach to explain non-Okay moves.")
    parser.add_argument("--json", type=Path, dest="json_path", help="Write the full report as JSON.")
    parser.add_argument("--csv", type=Path, dest="csv_path", help="Write the per-move rows as CSV.")
    parser.add_argument("--stockfish-path", help="Path to the engine executable.")
    parser.add_argument("--log-level", default=settings.default_log_level, help="Logging level (e.g. DEBUG, INFO).")
    return parser


async def analyze(args: argparse.Namespace, settings: Settings) -> int:
    container = get_container(settings)
    pgn_service: PgnService = container.resolve(PgnService)
    report_generator: ReportGenerator = container.resolve(ReportGenerator)
    service: AnalysisService = container.resolve(AnalysisService)

    try:
        movetext = await pgn_service.read_movetext(args.pgn)
        request = AnalysisRequest(
            pgn=movetext, depth=args.depth, multipv=args.multipv,
            movetime_ms=args.movetime_ms, with_coach=args.coach,
        )
    except ChessReviewError as e:
        logger.error("Could not read input.", error=str(e))
        print(f"error (validation): {e}", file=sys.stderr)
        return EXIT_CODES["validation"]
    except ValueError as e:
        print(f"error (validation): {e}", file=sys.stderr)
        return EXIT_CODES["validation"]

    try:
        async with AsyncExitStack() as stack:
            if settings.cache.db_filepath:
                await stack.enter_async_context(container.resolve(SqliteCacheService))
            await stack.enter_async_context(container.resolve(SingleFlightEngineQueue))

            report = await service.analyze_game(request)

        if args.json_path:
            await pgn_service.export_report(report, args.json_path)
        if args.csv_path:
            report_generator.write_csv(report, args.csv_path)
    except ChessReviewError as e:
        category = AnalysisService.error_category(e)
        print(f"error ({category}): {e}", file=sys.stderr)
        return EXIT_CODES[category]

    print(report_generator.render_summary(report))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Parses arguments, configures logging and runs one analysis."""
    settings = Settings()
    args = build_parser(settings).parse_args(argv)

    if args.stockfish_path:
        settings.engine = settings.engine.model_copy(update={"path": args.stockfish_path})

    setup_logging(
        log_level=args.log_level.upper(),
        log_file=Path(settings.log_file) if settings.log_file else None,
    )
    return asyncio.run(analyze(args, settings))


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
