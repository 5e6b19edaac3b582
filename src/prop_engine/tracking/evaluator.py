"""Model performance evaluation.

Aggregates reconciled predictions for a (model version, prop type, period)
into accuracy, value-bet accuracy and calibration figures, and stores them as
one ModelPerformanceMetric row that is replaced wholesale on every run.

Counting rules:
    * correct: actual over with p_over > 0.5, or actual under with p_under > 0.5
    * pushes are neither correct nor incorrect and leave both accuracy terms
    * calibration (average predicted, hit rate, Brier, bins) covers decided rows only
    * value bet: best side value >= threshold; correct when the outcome
      matches the side carrying that value
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np
from sklearn.metrics import brier_score_loss
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from ..config import get_settings
from ..database.models import (
    RESULT_OVER,
    RESULT_PUSH,
    RESULT_UNDER,
    ModelPerformanceMetric,
    Prediction,
    utcnow,
)
from ..database.session import get_session
from ..database.upsert import upsert
from ..exceptions import PersistenceError
from ..utils.logging import get_logger
from ..utils.odds import american_to_decimal

logger = get_logger(__name__)

METRIC_KEY = ("model_version", "prop_type", "evaluation_period_start", "evaluation_period_end")


@dataclass
class PerformanceStats:
    """Raw counts and ratios before they are written to the metrics table."""

    total_predictions: int = 0
    predictions_with_outcome: int = 0
    pushes: int = 0
    correct_predictions: int = 0
    value_bets_identified: int = 0
    value_bet_pushes: int = 0
    value_bets_correct: int = 0
    avg_predicted_prob: Optional[float] = None
    actual_hit_rate: Optional[float] = None
    brier_score: Optional[float] = None
    calibration_bins: Optional[List[Dict]] = None
    units_staked: Optional[float] = None
    units_profit: Optional[float] = None
    over_probs: List[float] = field(default_factory=list, repr=False)
    over_hits: List[int] = field(default_factory=list, repr=False)

    @property
    def decided(self) -> int:
        return self.predictions_with_outcome - self.pushes

    @property
    def accuracy(self) -> Optional[float]:
        return self.correct_predictions / self.decided if self.decided > 0 else None

    @property
    def value_bets_decided(self) -> int:
        return self.value_bets_identified - self.value_bet_pushes

    @property
    def value_bet_accuracy(self) -> Optional[float]:
        if self.value_bets_decided <= 0:
            return None
        return self.value_bets_correct / self.value_bets_decided

    @property
    def roi(self) -> Optional[float]:
        if not self.units_staked:
            return None
        return self.units_profit / self.units_staked

    def to_row(self) -> Dict:
        return {
            "total_predictions": self.total_predictions,
            "predictions_with_outcome": self.predictions_with_outcome,
            "pushes": self.pushes,
            "correct_predictions": self.correct_predictions,
            "accuracy": self.accuracy,
            "value_bets_identified": self.value_bets_identified,
            "value_bet_pushes": self.value_bet_pushes,
            "value_bets_correct": self.value_bets_correct,
            "value_bet_accuracy": self.value_bet_accuracy,
            "avg_predicted_prob": self.avg_predicted_prob,
            "actual_hit_rate": self.actual_hit_rate,
            "brier_score": self.brier_score,
            "calibration_bins": self.calibration_bins,
            "units_staked": self.units_staked,
            "units_profit": self.units_profit,
            "roi": self.roi,
        }


def is_correct(prediction) -> bool:
    """Whether the favored side (probability > 0.5) matched the outcome."""
    if prediction.actual_result == RESULT_OVER:
        return prediction.predicted_prob_over > 0.5
    if prediction.actual_result == RESULT_UNDER:
        return prediction.predicted_prob_under > 0.5
    return False


def calibration_table(probs: Sequence[float], hits: Sequence[int], n_bins: int = 10) -> List[Dict]:
    """Reliability table: mean predicted vs. observed frequency per probability bin.

    Uses the same uniform binning as sklearn's calibration_curve but keeps
    the per-bin counts; empty bins are omitted.
    """
    probs = np.asarray(probs, dtype=float)
    hits = np.asarray(hits, dtype=float)
    edges = np.linspace(0.0, 1.0, n_bins + 1)
    bin_ids = np.searchsorted(edges[1:-1], probs, side="right")

    counts = np.bincount(bin_ids, minlength=n_bins)
    prob_sums = np.bincount(bin_ids, weights=probs, minlength=n_bins)
    hit_sums = np.bincount(bin_ids, weights=hits, minlength=n_bins)

    table = []
    for i in np.nonzero(counts)[0]:
        table.append({
            "bin_start": float(edges[i]),
            "bin_end": float(edges[i + 1]),
            "count": int(counts[i]),
            "mean_predicted": float(prob_sums[i] / counts[i]),
            "observed_rate": float(hit_sums[i] / counts[i]),
        })
    return table


class PerformanceEvaluator:
    """Sole writer of ModelPerformanceMetric rows."""

    def __init__(self, value_threshold: Optional[float] = None, calibration_bins: int = 10):
        settings = get_settings()
        self.value_threshold = settings.value_bet_threshold if value_threshold is None else value_threshold
        self.calibration_bins = calibration_bins

    def compute_stats(self, predictions: Iterable) -> PerformanceStats:
        """Aggregate prediction rows (reconciled or not) into PerformanceStats."""
        stats = PerformanceStats()

        for prediction in predictions:
            stats.total_predictions += 1
            result = prediction.actual_result
            if result is None:
                continue

            stats.predictions_with_outcome += 1

            if result == RESULT_PUSH:
                stats.pushes += 1
            else:
                if is_correct(prediction):
                    stats.correct_predictions += 1
                stats.over_probs.append(prediction.predicted_prob_over)
                stats.over_hits.append(1 if result == RESULT_OVER else 0)

            best = prediction.best_value
            if best is None or best < self.value_threshold:
                continue

            side = prediction.value_side
            stats.value_bets_identified += 1
            stats.units_staked = stats.units_staked or 0.0
            stats.units_profit = stats.units_profit or 0.0

            if result == RESULT_PUSH:
                stats.value_bet_pushes += 1
                continue

            stats.units_staked += 1.0
            if result == side:
                stats.value_bets_correct += 1
                price = prediction.best_over_odds if side == RESULT_OVER else prediction.best_under_odds
                stats.units_profit += american_to_decimal(price) - 1
            else:
                stats.units_profit -= 1.0

        # Calibration figures cover decided rows only; pushes have no over/under hit
        if stats.over_hits:
            stats.avg_predicted_prob = float(np.mean(stats.over_probs))
            stats.actual_hit_rate = float(np.mean(stats.over_hits))
            stats.brier_score = float(brier_score_loss(stats.over_hits, stats.over_probs, pos_label=1))
            stats.calibration_bins = calibration_table(
                stats.over_probs, stats.over_hits, self.calibration_bins
            )

        return stats

    def evaluate(
        self,
        model_version: str,
        prop_type: str,
        period_start: date,
        period_end: date,
    ) -> ModelPerformanceMetric:
        """
        Recompute and store metrics for one model version, prop type and period.

        The period is inclusive on both ends and matched against
        prediction_date. An empty period yields zero counts and null ratios.

        Returns:
            The stored ModelPerformanceMetric

        Raises:
            ValueError: If the period ends before it starts
            PersistenceError: On storage failure
        """
        if period_end < period_start:
            raise ValueError(f"period_end {period_end} is before period_start {period_start}")

        try:
            with get_session() as session:
                predictions = session.execute(
                    select(Prediction).where(
                        Prediction.model_version == model_version,
                        Prediction.prop_type == prop_type,
                        Prediction.prediction_date >= period_start,
                        Prediction.prediction_date <= period_end,
                    )
                ).scalars()
                stats = self.compute_stats(predictions)

                values = stats.to_row()
                values.update({
                    "model_version": model_version,
                    "prop_type": prop_type,
                    "evaluation_period_start": period_start,
                    "evaluation_period_end": period_end,
                    "calculated_at": utcnow(),
                })
                metric_id = upsert(
                    session,
                    ModelPerformanceMetric,
                    values,
                    index_elements=METRIC_KEY,
                    update_columns=[k for k in values if k not in METRIC_KEY],
                )
                session.flush()
                session.expire_all()
                metric = session.get(ModelPerformanceMetric, metric_id)
        except SQLAlchemyError as e:
            raise PersistenceError(
                f"Failed to evaluate {model_version}/{prop_type} {period_start}..{period_end}: {e}"
            ) from e

        logger.info(
            f"Evaluated {model_version}/{prop_type} {period_start}..{period_end}: "
            f"{stats.predictions_with_outcome}/{stats.total_predictions} with outcome, "
            f"accuracy={_pct(stats.accuracy)}, value-bet accuracy={_pct(stats.value_bet_accuracy)}"
        )
        return metric

    def evaluate_all(self, period_start: date, period_end: date) -> List[ModelPerformanceMetric]:
        """Evaluate every (model version, prop type) pair with predictions in the period."""
        with get_session() as session:
            pairs = session.execute(
                select(Prediction.model_version, Prediction.prop_type)
                .where(
                    Prediction.prediction_date >= period_start,
                    Prediction.prediction_date <= period_end,
                )
                .distinct()
                .order_by(Prediction.model_version, Prediction.prop_type)
            ).all()

        return [
            self.evaluate(model_version, prop_type, period_start, period_end)
            for model_version, prop_type in pairs
        ]

    def list_metrics(
        self,
        model_version: Optional[str] = None,
        prop_type: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        limit: Optional[int] = None,
    ) -> List[ModelPerformanceMetric]:
        """Stored metrics, most recent period first."""
        stmt = select(ModelPerformanceMetric)
        if model_version is not None:
            stmt = stmt.where(ModelPerformanceMetric.model_version == model_version)
        if prop_type is not None:
            stmt = stmt.where(ModelPerformanceMetric.prop_type == prop_type)
        if date_from is not None:
            stmt = stmt.where(ModelPerformanceMetric.evaluation_period_start >= date_from)
        if date_to is not None:
            stmt = stmt.where(ModelPerformanceMetric.evaluation_period_end <= date_to)
        stmt = stmt.order_by(
            ModelPerformanceMetric.evaluation_period_end.desc(),
            ModelPerformanceMetric.model_version,
            ModelPerformanceMetric.prop_type,
            ModelPerformanceMetric.id,
        )
        if limit is not None:
            stmt = stmt.limit(limit)

        with get_session() as session:
            return list(session.execute(stmt).scalars())


def _pct(value: Optional[float]) -> str:
    return "N/A" if value is None else f"{value:.1%}"
