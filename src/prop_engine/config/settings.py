"""Centralized configuration using pydantic-settings.

All configuration values are loaded from environment variables with sensible defaults.
Environment variables can be set in .env file or directly in the environment.

Usage:
    from prop_engine.config import get_settings
    settings = get_settings()
    print(settings.model_version)
"""

from datetime import datetime
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _get_project_root() -> Path:
    """Get the project root directory."""
    return Path(__file__).parent.parent.parent.parent


def _get_current_nba_season() -> int:
    """Determine the current NBA season based on date.

    The season year is the year the season begins: October-December belong to
    this year's season, everything else (including the May-September offseason)
    to the season that started last year.
    """
    now = datetime.now()
    if now.month >= 10:
        return now.year
    return now.year - 1


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="PROP_ENGINE_",
        extra="ignore",  # Ignore extra env vars
        protected_namespaces=("settings_",),
    )

    # ==========================================================================
    # Database
    # ==========================================================================
    database_url: str = Field(
        default="sqlite:///data/prop_engine.db",
        description="SQLAlchemy database URL"
    )

    # ==========================================================================
    # Season
    # ==========================================================================
    current_season: int = Field(
        default_factory=_get_current_nba_season,
        description="Current NBA season (year the season starts)"
    )

    # ==========================================================================
    # Scoring Model
    # ==========================================================================
    model_version: str = Field(
        default="weighted-avg-v1",
        description="Model version stamped on every prediction"
    )
    probability_strategy: str = Field(
        default="tanh_normal",
        description="Probability mapping strategy (tanh_normal, normal_cdf)"
    )
    prediction_variance: float | None = Field(
        default=None,
        description="Override variance for every prop type (None = per-prop defaults)"
    )
    min_probability: float = Field(
        default=0.05,
        description="Lower clamp for predicted probabilities"
    )
    max_probability: float = Field(
        default=0.95,
        description="Upper clamp for predicted probabilities"
    )
    confidence_games: int = Field(
        default=20,
        description="Games in the widest window needed for full confidence"
    )

    # ==========================================================================
    # Value Bet Thresholds
    # ==========================================================================
    value_bet_threshold: float = Field(
        default=0.05,
        description="Minimum edge (predicted - implied) to call a value bet"
    )
    default_min_confidence: float = Field(
        default=0.5,
        description="Default minimum confidence for value bet queries"
    )

    # ==========================================================================
    # Batch Processing
    # ==========================================================================
    max_workers: int = Field(
        default=4,
        description="Worker pool size for batch scoring"
    )
    persistence_retries: int = Field(
        default=3,
        description="Retries for a failed prediction upsert"
    )

    # ==========================================================================
    # Paths
    # ==========================================================================
    data_dir: Path = Field(
        default_factory=lambda: _get_project_root() / "data",
        description="Directory for data files"
    )
    logs_dir: Path = Field(
        default_factory=lambda: _get_project_root() / "logs",
        description="Directory for log files"
    )

    # ==========================================================================
    # Logging
    # ==========================================================================
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )
    log_to_file: bool = Field(
        default=False,
        description="Whether to write logs to file"
    )

    # ==========================================================================
    # Validators
    # ==========================================================================
    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return v_upper

    @field_validator("min_probability", "max_probability", "default_min_confidence")
    @classmethod
    def validate_unit_interval(cls, v: float) -> float:
        if not 0 <= v <= 1:
            raise ValueError("value must be between 0 and 1")
        return v

    @field_validator("prediction_variance")
    @classmethod
    def validate_variance(cls, v: float | None) -> float | None:
        if v is not None and v <= 0:
            raise ValueError("prediction_variance must be positive")
        return v

    @field_validator("max_workers", "confidence_games")
    @classmethod
    def validate_positive_int(cls, v: int) -> int:
        if v < 1:
            raise ValueError("value must be at least 1")
        return v

    @model_validator(mode="after")
    def validate_probability_bounds(self) -> "Settings":
        if self.min_probability >= self.max_probability:
            raise ValueError("min_probability must be below max_probability")
        return self

    # ==========================================================================
    # Computed Properties
    # ==========================================================================
    @property
    def db_path(self) -> Path:
        """Extract SQLite database path from URL."""
        if self.database_url.startswith("sqlite:///"):
            return Path(self.database_url.replace("sqlite:///", ""))
        return self.data_dir / "prop_engine.db"

    def ensure_directories(self) -> None:
        """Create all required directories if they don't exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        if self.log_to_file:
            self.logs_dir.mkdir(parents=True, exist_ok=True)


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Settings are loaded once and cached for performance.
    Call get_settings.cache_clear() to reload.
    """
    settings = Settings()
    settings.ensure_directories()
    return settings
