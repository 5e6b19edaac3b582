"""Player performance aggregation."""

from .aggregator import SEASON, PerformanceAggregator, SnapshotData

__all__ = ["SEASON", "PerformanceAggregator", "SnapshotData"]
