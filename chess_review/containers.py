# chess_review/containers.py
"""
Defines the Dependency Injection (DI) container for the application.

This module uses the `punq` library to manage the creation and wiring of
all services and components of the analysis pipeline. The engine queue and
the caches are registered as singletons: one engine session and one cache
serve every analysis in the process.
"""

from typing import Optional

import punq

from chess_review.config.settings import Settings
from chess_review.orchestration.analysis_service import AnalysisService
from chess_review.orchestration.game_analyzer import GameAnalyzer
from chess_review.output.report_generator import ReportGenerator
from chess_review.services.analysis_provider import AnalysisProvider
from chess_review.services.coach_service import create_coach
from chess_review.services.engine_queue import SingleFlightEngineQueue
from chess_review.services.evaluation_cache import EvaluationCache
from chess_review.services.pgn_service import PgnService
from chess_review.services.sqlite_cache_service import SqliteCacheService
from chess_review.services.uci_engine_session import UciEngineSession
from chess_review.types import Coach


def get_container(settings: Settings) -> punq.Container:
    """
    Initializes and returns a DI container configured from `settings`.

    The caller owns the lifecycle of the async context managers it resolves
    (`SingleFlightEngineQueue` and, when configured, `SqliteCacheService`).
    """
    container = punq.Container()

    container.register(Settings, instance=settings)

    container.register(EvaluationCache, factory=lambda: EvaluationCache(settings.cache.max_entries), scope=punq.Scope.singleton)
    container.register(UciEngineSession, factory=lambda: UciEngineSession(settings.engine), scope=punq.Scope.singleton)
    container.register(
        SingleFlightEngineQueue,
        factory=lambda: SingleFlightEngineQueue(container.resolve(UciEngineSession), settings.engine.request_timeout_s),
        scope=punq.Scope.singleton,
    )

    if settings.cache.db_filepath:
        container.register(SqliteCacheService, factory=lambda: SqliteCacheService(settings.cache), scope=punq.Scope.singleton)

    def create_analysis_provider() -> AnalysisProvider:
        persistent_cache: Optional[SqliteCacheService] = None
        if settings.cache.db_filepath:
            persistent_cache = container.resolve(SqliteCacheService)
        return AnalysisProvider(
            container.resolve(EvaluationCache), container.resolve(SingleFlightEngineQueue), persistent_cache
        )

    container.register(AnalysisProvider, factory=create_analysis_provider, scope=punq.Scope.singleton)
    container.register(Coach, factory=lambda: create_coach(settings.coach), scope=punq.Scope.singleton)
    container.register(
        GameAnalyzer,
        factory=lambda: GameAnalyzer(container.resolve(AnalysisProvider), container.resolve(Coach), settings.analysis),
    )
    container.register(
        AnalysisService,
        factory=lambda: AnalysisService(
            container.resolve(GameAnalyzer), container.resolve(AnalysisProvider), settings.analysis
        ),
    )
    container.register(PgnService)
    container.register(ReportGenerator)

    return container
