# chess_review/config/settings.py
"""
Configuration settings for the Chess Review pipeline, powered by Pydantic.

This module centralizes all tunable parameters and default values. Settings are
loaded from environment variables (and an optional `.env` file), keeping
configuration out of the code.
"""
from typing import Optional

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Nested Models for Configuration Schemas ---

class VerdictThresholdsModel(BaseModel):
    """
    Defines the evaluation-swing thresholds (in centipawns) for move verdicts.

    The thresholds are compared against the absolute difference between the
    engine's best line and the line the human actually played. Anything below
    `inaccuracy` is an 'Okay' move.
    """
    blunder: int = Field(200, description="Minimum |delta| for a move to be a 'Blunder'.")
    mistake: int = Field(80, description="Minimum |delta| for a move to be a 'Mistake'.")
    inaccuracy: int = Field(30, description="Minimum |delta| for a move to be an 'Inaccuracy'.")

    @model_validator(mode='after')
    def validate_thresholds_are_sorted(self) -> 'VerdictThresholdsModel':
        """Ensures that thresholds are strictly descending from blunder to inaccuracy."""
        if not (self.blunder > self.mistake > self.inaccuracy >= 0):
            raise ValueError("Configuration error: verdict thresholds must be strictly descending.")
        return self

class AnalysisSettings(BaseModel):
    """Groups all settings related to the per-game analysis."""
    depth: int = Field(16, ge=1, description="The search depth for each engine request.")
    multipv: int = Field(3, ge=1, description="Number of candidate lines requested for the position before a move.")
    movetime_ms: Optional[int] = Field(None, gt=0, description="Optional per-position time budget; replaces the depth limit when set.")
    mate_score_cp: int = Field(100000, gt=0, description="The centipawn magnitude assigned to any forced mate.")

    verdict_thresholds: VerdictThresholdsModel = Field(default_factory=VerdictThresholdsModel)

class EngineSettings(BaseModel):
    """Configuration for the single UCI engine session."""
    path: Optional[str] = Field(None, description="Path to the engine executable. Falls back to STOCKFISH_PATH, then PATH.")
    threads: int = Field(2, ge=1, description="Value of the UCI 'Threads' option.")
    hash_mb: int = Field(256, ge=1, description="Value of the UCI 'Hash' option, in megabytes.")
    parameters: dict = Field(default_factory=dict, description="Extra UCI options to set on startup (e.g., {'Skill Level': 20}).")
    request_timeout_s: Optional[float] = Field(None, gt=0, description="Watchdog for a single engine request. None waits forever.")

class CacheSettings(BaseModel):
    """Configuration for the evaluation cache."""
    max_entries: int = Field(10_000, ge=1, description="Capacity of the in-memory LRU evaluation cache.")
    db_filepath: Optional[str] = Field(None, description="If set, evaluations are also persisted to this SQLite file.")

class CoachSettings(BaseModel):
    """Configuration for the optional text-generation coach."""
    api_key: Optional[str] = Field(None, description="Gemini API key. Without it the coach is disabled.")
    model: str = Field("gemini-2.0-flash-lite", description="The Gemini model used for coach notes.")

# --- Main Application Settings Class ---

class Settings(BaseSettings):
    """
    Main configuration class for the application.

    It loads settings from environment variables with the prefix 'CHESS_REVIEW_'.
    Nested models can be configured using a double underscore delimiter, e.g.,
    `CHESS_REVIEW_ANALYSIS__DEPTH=12` or `CHESS_REVIEW_COACH__API_KEY=...`.
    """
    model_config = SettingsConfigDict(
        env_prefix='CHESS_REVIEW_', env_nested_delimiter='__',
        env_file='.env', extra='ignore'
    )

    analysis: AnalysisSettings = Field(default_factory=AnalysisSettings)
    engine: EngineSettings = Field(default_factory=EngineSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    coach: CoachSettings = Field(default_factory=CoachSettings)
    default_log_level: str = "INFO"
    log_file: Optional[str] = None
