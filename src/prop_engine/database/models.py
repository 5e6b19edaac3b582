"""Database models for the prop engine."""

from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import (
    Date,
    DateTime,
    Float,
    Index,
    Integer,
    JSON,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, declarative_base, mapped_column

Base = declarative_base()

# Rolling windows tracked on every snapshot, narrowest first
WINDOWS = (7, 14, 30)

# Actual result classifications written by the reconciler
RESULT_OVER = "over"
RESULT_UNDER = "under"
RESULT_PUSH = "push"


def utcnow() -> datetime:
    """Naive UTC timestamp, the convention for every DateTime column here."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class PlayerStatsSnapshot(Base):
    """Current rolling and season aggregates for one player-season.

    Overwritten in place on every refresh; predictions keep their own frozen
    copy of the inputs they were scored with.
    """

    __tablename__ = "player_stats_snapshots"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    player_id: Mapped[int] = mapped_column(Integer, nullable=False)
    season: Mapped[int] = mapped_column(Integer, nullable=False)

    last_game_id: Mapped[Optional[int]] = mapped_column(Integer)
    last_game_date: Mapped[Optional[date]] = mapped_column(Date)
    last_game: Mapped[dict] = mapped_column(JSON, default=dict)  # {category: value}

    # {category: mean or None}
    avg_7: Mapped[dict] = mapped_column(JSON, default=dict)
    avg_14: Mapped[dict] = mapped_column(JSON, default=dict)
    avg_30: Mapped[dict] = mapped_column(JSON, default=dict)
    season_totals: Mapped[dict] = mapped_column(JSON, default=dict)
    season_averages: Mapped[dict] = mapped_column(JSON, default=dict)

    games_played_7: Mapped[int] = mapped_column(Integer, default=0)
    games_played_14: Mapped[int] = mapped_column(Integer, default=0)
    games_played_30: Mapped[int] = mapped_column(Integer, default=0)
    season_games_played: Mapped[int] = mapped_column(Integer, default=0)

    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("player_id", "season", name="uq_player_stats_snapshot"),
    )


class Prediction(Base):
    """One scored prop outcome per (game, player, prop type, prediction date).

    Scoring fields belong to the prediction store, outcome fields
    (actual_value, actual_result, reconciled_at) to the reconciler.
    """

    __tablename__ = "predictions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    game_id: Mapped[int] = mapped_column(Integer, nullable=False)
    player_id: Mapped[int] = mapped_column(Integer, nullable=False)
    prop_type: Mapped[str] = mapped_column(String(20), nullable=False)
    prediction_date: Mapped[date] = mapped_column(Date, nullable=False)

    # Market
    line_value: Mapped[float] = mapped_column(Float, nullable=False)
    best_over_odds: Mapped[Optional[int]] = mapped_column(Integer)  # American odds
    best_under_odds: Mapped[Optional[int]] = mapped_column(Integer)
    over_vendor: Mapped[Optional[str]] = mapped_column(String(50))
    under_vendor: Mapped[Optional[str]] = mapped_column(String(50))
    implied_prob_over: Mapped[Optional[float]] = mapped_column(Float)
    implied_prob_under: Mapped[Optional[float]] = mapped_column(Float)

    # Model output
    predicted_prob_over: Mapped[float] = mapped_column(Float, nullable=False)
    predicted_prob_under: Mapped[float] = mapped_column(Float, nullable=False)
    predicted_value_over: Mapped[Optional[float]] = mapped_column(Float)
    predicted_value_under: Mapped[Optional[float]] = mapped_column(Float)
    confidence_score: Mapped[float] = mapped_column(Float, nullable=False)
    model_version: Mapped[str] = mapped_column(String(50), nullable=False)
    point_estimate: Mapped[float] = mapped_column(Float, nullable=False)

    # Frozen scoring inputs
    player_avg_7: Mapped[Optional[float]] = mapped_column(Float)
    player_avg_14: Mapped[Optional[float]] = mapped_column(Float)
    player_avg_30: Mapped[Optional[float]] = mapped_column(Float)
    player_season_avg: Mapped[Optional[float]] = mapped_column(Float)
    games_counted_7: Mapped[int] = mapped_column(Integer, default=0)
    games_counted_14: Mapped[int] = mapped_column(Integer, default=0)
    games_counted_30: Mapped[int] = mapped_column(Integer, default=0)
    season_games_played: Mapped[int] = mapped_column(Integer, default=0)
    scoring_inputs: Mapped[Optional[dict]] = mapped_column(JSON)  # weights, variance, strategy

    # Outcome
    actual_value: Mapped[Optional[float]] = mapped_column(Float)
    actual_result: Mapped[Optional[str]] = mapped_column(String(10))  # over/under/push
    reconciled_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    __table_args__ = (
        UniqueConstraint(
            "game_id", "player_id", "prop_type", "prediction_date",
            name="uq_prediction_key",
        ),
        Index("ix_predictions_game", "game_id"),
        Index("ix_predictions_model_prop_date", "model_version", "prop_type", "prediction_date"),
    )

    @property
    def best_value(self) -> Optional[float]:
        """Larger of the two side values, ignoring sides without a price."""
        values = [v for v in (self.predicted_value_over, self.predicted_value_under) if v is not None]
        return max(values) if values else None

    @property
    def value_side(self) -> Optional[str]:
        """Side carrying the best value; over wins ties."""
        over, under = self.predicted_value_over, self.predicted_value_under
        if over is None and under is None:
            return None
        if under is None or (over is not None and over >= under):
            return RESULT_OVER
        return RESULT_UNDER

    @property
    def is_reconciled(self) -> bool:
        return self.actual_result is not None

    @property
    def state(self) -> str:
        """Lifecycle state: created until an outcome is written, then reconciled."""
        return "reconciled" if self.is_reconciled else "created"

    def to_dict(self) -> dict:
        """Convert to a JSON-friendly dictionary."""
        data = {}
        for column in self.__table__.columns:
            value = getattr(self, column.key)
            if isinstance(value, (date, datetime)):
                value = value.isoformat()
            data[column.key] = value
        data["best_value"] = self.best_value
        data["value_side"] = self.value_side
        return data


class ModelPerformanceMetric(Base):
    """Retrospective accuracy and calibration for one model version and prop type."""

    __tablename__ = "model_performance_metrics"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    model_version: Mapped[str] = mapped_column(String(50), nullable=False)
    prop_type: Mapped[str] = mapped_column(String(20), nullable=False)
    evaluation_period_start: Mapped[date] = mapped_column(Date, nullable=False)
    evaluation_period_end: Mapped[date] = mapped_column(Date, nullable=False)

    total_predictions: Mapped[int] = mapped_column(Integer, default=0)
    predictions_with_outcome: Mapped[int] = mapped_column(Integer, default=0)
    pushes: Mapped[int] = mapped_column(Integer, default=0)
    correct_predictions: Mapped[int] = mapped_column(Integer, default=0)
    accuracy: Mapped[Optional[float]] = mapped_column(Float)

    value_bets_identified: Mapped[int] = mapped_column(Integer, default=0)
    value_bet_pushes: Mapped[int] = mapped_column(Integer, default=0)
    value_bets_correct: Mapped[int] = mapped_column(Integer, default=0)
    value_bet_accuracy: Mapped[Optional[float]] = mapped_column(Float)

    # Calibration
    avg_predicted_prob: Mapped[Optional[float]] = mapped_column(Float)
    actual_hit_rate: Mapped[Optional[float]] = mapped_column(Float)
    brier_score: Mapped[Optional[float]] = mapped_column(Float)
    calibration_bins: Mapped[Optional[list]] = mapped_column(JSON)

    # Flat one-unit stakes on every value bet at the best price
    units_staked: Mapped[Optional[float]] = mapped_column(Float)
    units_profit: Mapped[Optional[float]] = mapped_column(Float)
    roi: Mapped[Optional[float]] = mapped_column(Float)

    calculated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    __table_args__ = (
        UniqueConstraint(
            "model_version", "prop_type", "evaluation_period_start", "evaluation_period_end",
            name="uq_model_performance_period",
        ),
    )

    @property
    def calibration_gap(self) -> Optional[float]:
        """Average predicted over-probability minus the observed over rate."""
        if self.avg_predicted_prob is None or self.actual_hit_rate is None:
            return None
        return self.avg_predicted_prob - self.actual_hit_rate

    def to_dict(self) -> dict:
        """Convert to a JSON-friendly dictionary."""
        data = {}
        for column in self.__table__.columns:
            value = getattr(self, column.key)
            if isinstance(value, (date, datetime)):
                value = value.isoformat()
            data[column.key] = value
        data["calibration_gap"] = self.calibration_gap
        return data
