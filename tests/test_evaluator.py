"""Tests for model performance evaluation."""

from datetime import date

import pytest

from prop_engine.database.store import PredictionStore
from prop_engine.tracking import OutcomeReconciler, PerformanceEvaluator, calibration_table

DAY = date(2024, 11, 5)
START = date(2024, 11, 1)
END = date(2024, 11, 30)

# player_id -> (p_over, line, actual); None actual means no box score yet
SLATE = {
    1: (0.70, 20.5, 25),    # value on over, hits
    2: (0.55, 20.5, 15),    # favored over, misses; too little value to bet
    3: (0.35, 20.5, 15),    # value on under, hits
    4: (0.60, 20.0, 20),    # value on over, push
    5: (0.70, 20.5, 15),    # value on over, misses
    6: (0.65, 20.5, None),  # not reconciled yet
}


@pytest.fixture
def evaluated_slate(db, prediction_factory):
    store = PredictionStore()
    for player_id, (p_over, line, _) in SLATE.items():
        store.upsert(prediction_factory(
            player_id=player_id,
            line_value=line,
            predicted_prob_over=p_over,
            predicted_prob_under=1.0 - p_over,
        ))
    OutcomeReconciler().reconcile(
        500,
        {pid: {"points": actual} for pid, (_, _, actual) in SLATE.items() if actual is not None},
    )
    return store


class TestEvaluate:
    """Test metric computation and storage."""

    def test_counts(self, evaluated_slate):
        metric = PerformanceEvaluator().evaluate("weighted-avg-v1", "points", START, END)

        assert metric.total_predictions == 6
        assert metric.predictions_with_outcome == 5
        assert metric.pushes == 1
        assert metric.correct_predictions == 2

    def test_push_excluded_from_accuracy(self, evaluated_slate):
        metric = PerformanceEvaluator().evaluate("weighted-avg-v1", "points", START, END)

        # 2 correct of 4 decided; the push counts in neither term
        assert metric.accuracy == pytest.approx(0.5)

    def test_value_bets(self, evaluated_slate):
        metric = PerformanceEvaluator().evaluate("weighted-avg-v1", "points", START, END)

        assert metric.value_bets_identified == 4
        assert metric.value_bet_pushes == 1
        assert metric.value_bets_correct == 2
        assert metric.value_bet_accuracy == pytest.approx(2 / 3)

    def test_roi_at_best_price(self, evaluated_slate):
        metric = PerformanceEvaluator().evaluate("weighted-avg-v1", "points", START, END)

        assert metric.units_staked == pytest.approx(3.0)
        assert metric.units_profit == pytest.approx(2 * 100 / 110 - 1)
        assert metric.roi == pytest.approx((2 * 100 / 110 - 1) / 3)

    def test_calibration(self, evaluated_slate):
        metric = PerformanceEvaluator().evaluate("weighted-avg-v1", "points", START, END)

        # The 0.60 push is left out of every calibration figure
        assert metric.avg_predicted_prob == pytest.approx((0.70 + 0.55 + 0.35 + 0.70) / 4)
        assert metric.actual_hit_rate == pytest.approx(0.25)
        assert metric.brier_score == pytest.approx((0.09 + 0.3025 + 0.1225 + 0.49) / 4)
        assert metric.calibration_gap == pytest.approx(0.575 - 0.25)
        assert sum(b["count"] for b in metric.calibration_bins) == 4

    def test_pushes_do_not_skew_calibration(self, db, prediction_factory):
        store = PredictionStore()
        # player_id -> (p_over, line, actual)
        rows = {1: (0.9, 20.0, 20), 2: (0.9, 20.0, 20), 3: (0.1, 20.5, 15)}
        for player_id, (p_over, line, _) in rows.items():
            store.upsert(prediction_factory(
                player_id=player_id,
                line_value=line,
                predicted_prob_over=p_over,
                predicted_prob_under=1.0 - p_over,
            ))
        OutcomeReconciler().reconcile(500, {pid: {"points": actual} for pid, (_, _, actual) in rows.items()})

        metric = PerformanceEvaluator().evaluate("weighted-avg-v1", "points", START, END)

        assert metric.pushes == 2
        assert metric.avg_predicted_prob == pytest.approx(0.1)
        assert metric.actual_hit_rate == pytest.approx(0.0)
        assert metric.calibration_gap == pytest.approx(0.1)
        assert sum(b["count"] for b in metric.calibration_bins) == 1

    def test_rerun_replaces_metric(self, evaluated_slate):
        evaluator = PerformanceEvaluator()
        first = evaluator.evaluate("weighted-avg-v1", "points", START, END)

        OutcomeReconciler().reconcile(500, {6: {"points": 28}})
        second = evaluator.evaluate("weighted-avg-v1", "points", START, END)

        assert second.id == first.id
        assert second.total_predictions == 6
        assert second.predictions_with_outcome == 6
        assert second.correct_predictions == 3
        assert len(evaluator.list_metrics()) == 1

    def test_empty_period(self, db):
        metric = PerformanceEvaluator().evaluate(
            "weighted-avg-v1", "points", date(2025, 1, 1), date(2025, 1, 31)
        )

        assert metric.total_predictions == 0
        assert metric.predictions_with_outcome == 0
        assert metric.accuracy is None
        assert metric.value_bet_accuracy is None
        assert metric.brier_score is None
        assert metric.roi is None

    def test_period_outside_predictions(self, evaluated_slate):
        metric = PerformanceEvaluator().evaluate("weighted-avg-v1", "points", DAY.replace(day=6), END)
        assert metric.total_predictions == 0

    def test_reversed_period_raises(self, db):
        with pytest.raises(ValueError):
            PerformanceEvaluator().evaluate("weighted-avg-v1", "points", END, START)

    def test_custom_threshold(self, evaluated_slate):
        metric = PerformanceEvaluator(value_threshold=0.15).evaluate(
            "weighted-avg-v1", "points", START, END
        )

        # Only the two 0.70 overs clear 15%
        assert metric.value_bets_identified == 2
        assert metric.value_bets_correct == 1


class TestEvaluateAll:
    """Test evaluating every model/prop combination."""

    def test_one_metric_per_combination(self, evaluated_slate, prediction_factory):
        evaluated_slate.upsert(prediction_factory(player_id=1, prop_type="assists", line_value=6.5))
        evaluated_slate.upsert(prediction_factory(player_id=1, model_version="weighted-avg-v2"))

        metrics = PerformanceEvaluator().evaluate_all(START, END)

        keys = [(m.model_version, m.prop_type) for m in metrics]
        assert keys == [
            ("weighted-avg-v1", "assists"),
            ("weighted-avg-v1", "points"),
            ("weighted-avg-v2", "points"),
        ]

    def test_list_metrics_filters(self, evaluated_slate):
        evaluator = PerformanceEvaluator()
        evaluator.evaluate("weighted-avg-v1", "points", START, END)
        evaluator.evaluate("weighted-avg-v1", "points", START, date(2024, 11, 15))

        assert len(evaluator.list_metrics(model_version="weighted-avg-v1")) == 2
        assert evaluator.list_metrics(prop_type="rebounds") == []
        latest = evaluator.list_metrics(limit=1)[0]
        assert latest.evaluation_period_end == END


class TestCalibrationTable:
    """Test the reliability table helper."""

    def test_bins(self):
        table = calibration_table([0.12, 0.18, 0.85], [0, 1, 1], n_bins=5)

        assert [b["count"] for b in table] == [2, 1]
        assert table[0]["mean_predicted"] == pytest.approx(0.15)
        assert table[0]["observed_rate"] == pytest.approx(0.5)
        assert table[1]["bin_start"] == pytest.approx(0.8)
