"""Metric collection and in-memory performance state."""

from geobench.metrics.sources import MetricSourceAdapter, SourceResult
from geobench.metrics.store import MetricSample, PerformanceStore, RegionalStat

__all__ = ["MetricSourceAdapter", "SourceResult", "MetricSample", "PerformanceStore", "RegionalStat"]
