"""Benchmark orchestration, result finalization and history."""

from geobench.benchmark.history import HistoricalAggregator
from geobench.benchmark.models import BenchmarkResults, BenchmarkRun, TimeSeriesSample
from geobench.benchmark.orchestrator import BenchmarkOrchestrator

__all__ = [
    "HistoricalAggregator",
    "BenchmarkResults",
    "BenchmarkRun",
    "TimeSeriesSample",
    "BenchmarkOrchestrator",
]
