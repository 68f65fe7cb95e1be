"""
Centralized Prometheus metrics definitions for the Chess Review pipeline.

This module uses the prometheus-client library to define all metrics that the
pipeline records. Grouping them here provides a single, clear overview of the
instrumentation points.
"""
from prometheus_client import Counter, Gauge, Histogram

# A common prefix for all application-specific metrics.
PREFIX = "chess_review"

# --- Game Analysis Metrics ---

GAMES_ANALYZED_TOTAL = Counter(
    f"{PREFIX}_games_analyzed_total",
    "Total number of games fully analyzed into a report.",
)

GAMES_WITH_ERRORS_TOTAL = Counter(
    f"{PREFIX}_games_with_errors_total",
    "Total number of analysis requests that failed.",
    ["category"],  # e.g., category="validation", "replay", "analysis"
)

GAME_ANALYSIS_DURATION_SECONDS = Histogram(
    f"{PREFIX}_game_analysis_duration_seconds",
    "Histogram of the time taken to analyze a single game.",
    buckets=(1, 5, 10, 30, 60, 120, 300, 600, float("inf"))
)

# --- Engine & Cache Metrics ---

POSITION_EVALUATIONS_TOTAL = Counter(
    f"{PREFIX}_position_evaluations_total",
    "Total number of position evaluations requested.",
    ["source"],  # e.g., source="cache_hit", "persistent_cache_hit", "coalesced", "engine_run"
)

ENGINE_REQUEST_DURATION_SECONDS = Histogram(
    f"{PREFIX}_engine_request_duration_seconds",
    "Histogram of the time the engine spent on a single request."
)

ENGINE_QUEUE_DEPTH = Gauge(
    f"{PREFIX}_engine_queue_depth",
    "Current number of evaluation requests waiting for the engine."
)

ENGINE_REQUESTS_FAILED_TOTAL = Counter(
    f"{PREFIX}_engine_requests_failed_total",
    "Total number of engine requests that failed or timed out."
)

# --- Coach Metrics ---

COACH_NOTES_TOTAL = Counter(
    f"{PREFIX}_coach_notes_total",
    "Total number of coach annotation attempts by outcome.",
    ["outcome"],  # e.g., outcome="annotated", "empty", "error"
)

# --- Persistence Metrics ---

DB_TRANSIENT_ERRORS_TOTAL = Counter(
    f"{PREFIX}_db_transient_errors_total",
    "Total number of transient database errors that triggered a retry.",
    ["db_type"]  # e.g., db_type="cache"
)
