"""Outcome reconciliation and model performance tracking."""

from .evaluator import PerformanceEvaluator, PerformanceStats, calibration_table, is_correct
from .reconciler import OutcomeReconciler, actual_stat_value, classify_result

__all__ = [
    "OutcomeReconciler",
    "classify_result",
    "actual_stat_value",
    "PerformanceEvaluator",
    "PerformanceStats",
    "calibration_table",
    "is_correct",
]
