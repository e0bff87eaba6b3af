# geobench/benchmark/history.py
"""
Historical Aggregator

Folds finished benchmark runs into long-lived aggregates:
- Daily averages keyed by completion day (capped number of days)
- Per-region running averages with a capped trend list
- A capped list of per-run summaries used for overall trends

Averages are running (incremental) means; raw per-run samples are not
retained at this granularity.
"""

from collections import OrderedDict, deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from geobench.benchmark.models import BenchmarkRun
from geobench.benchmark.trends import classify_trend, incremental_mean, mean
from geobench.utils.logger import logger


@dataclass
class DailyAverage:
    """Running averages of all runs finished on one calendar day."""

    date: str
    runs: int = 0
    avg_tps: float = 0.0
    avg_latency: float = 0.0
    avg_optimization: float = 0.0

    def add(self, tps: float, latency: float, optimization: float) -> None:
        count = self.runs
        self.avg_tps, _ = incremental_mean(self.avg_tps, count, tps)
        self.avg_latency, _ = incremental_mean(self.avg_latency, count, latency)
        self.avg_optimization, self.runs = incremental_mean(self.avg_optimization, count, optimization)

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date,
            "runs": self.runs,
            "avg_tps": self.avg_tps,
            "avg_latency": self.avg_latency,
            "avg_optimization": self.avg_optimization,
        }


@dataclass
class RegionTrendEntry:
    timestamp: str
    tps: float
    latency: float
    optimization: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "tps": self.tps,
            "latency": self.latency,
            "optimization": self.optimization,
        }


@dataclass
class RegionalHistory:
    """Running averages and recent trend of one region across runs."""

    region: str
    max_trend: int = 20
    runs: int = 0
    avg_tps: float = 0.0
    avg_latency: float = 0.0
    avg_optimization: float = 0.0
    trend: deque = field(init=False)

    def __post_init__(self) -> None:
        self.trend = deque(maxlen=self.max_trend)

    def add(self, entry: RegionTrendEntry) -> None:
        count = self.runs
        self.avg_tps, _ = incremental_mean(self.avg_tps, count, entry.tps)
        self.avg_latency, _ = incremental_mean(self.avg_latency, count, entry.latency)
        self.avg_optimization, self.runs = incremental_mean(self.avg_optimization, count, entry.optimization)
        self.trend.append(entry)

    def to_dict(self) -> dict[str, Any]:
        return {
            "region": self.region,
            "runs": self.runs,
            "avg_tps": self.avg_tps,
            "avg_latency": self.avg_latency,
            "avg_optimization": self.avg_optimization,
            "trend": [e.to_dict() for e in self.trend],
        }


@dataclass
class RunSummary:
    """What the aggregator remembers about one run."""

    id: str
    status: str
    finished_at: datetime
    region: Optional[str]
    workload: Optional[str]
    avg_tps: float
    avg_latency: float
    optimization: float
    improvement: dict[str, float]
    estimated: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "status": self.status,
            "finished_at": self.finished_at.isoformat(),
            "region": self.region,
            "workload": self.workload,
            "avg_tps": self.avg_tps,
            "avg_latency": self.avg_latency,
            "optimization": self.optimization,
            "improvement": dict(self.improvement),
            "estimated": self.estimated,
        }


def _number(data: dict[str, Any], key: str) -> float:
    value = data.get(key, 0.0)
    return float(value) if isinstance(value, (int, float)) else 0.0


class HistoricalAggregator:
    """Consumes terminal runs and answers trend/summary questions."""

    def __init__(
        self,
        max_days: int = 30,
        max_region_trend: int = 20,
        max_runs: int = 100,
        trend_window: int = 5,
        trend_threshold: float = 0.05,
    ):
        self.max_days = max_days
        self.max_region_trend = max_region_trend
        self.trend_window = trend_window
        self.trend_threshold = trend_threshold
        self._daily: OrderedDict[str, DailyAverage] = OrderedDict()
        self._regions: dict[str, RegionalHistory] = {}
        self._runs: deque[RunSummary] = deque(maxlen=max_runs)

    def ingest(self, run: BenchmarkRun) -> None:
        """
        Fold a completed or failed run into the aggregates.

        Missing result fields count as zero; non-terminal runs are ignored.
        """
        if not run.is_terminal:
            logger.warning(f"Ignoring non-terminal run {run.id} ({run.status.value})")
            return

        finished_at = run.end_time or datetime.now()
        overall = run.results.overall
        tps = _number(overall, "avg_tps")
        latency = _number(overall, "avg_latency")
        optimization = _number(overall, "geo_optimization_rate")

        self._daily_entry(finished_at.date().isoformat()).add(tps, latency, optimization)

        for region, stats in run.results.by_region.items():
            history = self._regions.get(region)
            if history is None:
                history = self._regions[region] = RegionalHistory(region=region, max_trend=self.max_region_trend)
            history.add(
                RegionTrendEntry(
                    timestamp=finished_at.isoformat(),
                    tps=_number(stats, "avg_tps"),
                    latency=_number(stats, "avg_latency"),
                    optimization=_number(stats, "optimization"),
                )
            )

        improvement = run.results.comparison.get("improvement", {})
        self._runs.append(
            RunSummary(
                id=run.id,
                status=run.status.value,
                finished_at=finished_at,
                region=run.region,
                workload=run.workload,
                avg_tps=tps,
                avg_latency=latency,
                optimization=optimization,
                improvement={k: _number(improvement, k) for k in ("tps_increase", "latency_reduction", "error_reduction")},
                estimated=run.results.estimated,
            )
        )
        logger.debug(f"Aggregated run {run.id} into {finished_at.date().isoformat()}")

    def _daily_entry(self, day: str) -> DailyAverage:
        entry = self._daily.get(day)
        if entry is None:
            entry = self._daily[day] = DailyAverage(date=day)
            while len(self._daily) > self.max_days:
                self._daily.popitem(last=False)
        return entry

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def daily_average(self, day: str) -> Optional[DailyAverage]:
        return self._daily.get(day)

    def daily_averages(self) -> list[dict[str, Any]]:
        return [entry.to_dict() for entry in sorted(self._daily.values(), key=lambda e: e.date)]

    def region(self, region: str) -> Optional[RegionalHistory]:
        return self._regions.get(region)

    def regional_comparisons(self) -> list[dict[str, Any]]:
        return [history.to_dict() for history in self._regions.values()]

    def run_summaries(self) -> list[RunSummary]:
        return list(self._runs)

    def _classify(self, values: list[float], higher_is_better: bool):
        return classify_trend(
            values,
            higher_is_better=higher_is_better,
            window=self.trend_window,
            threshold=self.trend_threshold,
        ).value

    def trends(self) -> dict[str, str]:
        """Overall trend of throughput, latency and optimization across runs."""
        runs = list(self._runs)
        return {
            "tps": self._classify([r.avg_tps for r in runs], True),
            "latency": self._classify([r.avg_latency for r in runs], False),
            "optimization": self._classify([r.optimization for r in runs], True),
        }

    def region_trends(self, region: str) -> dict[str, str]:
        history = self._regions.get(region)
        entries = list(history.trend) if history else []
        return {
            "tps": self._classify([e.tps for e in entries], True),
            "latency": self._classify([e.latency for e in entries], False),
            "optimization": self._classify([e.optimization for e in entries], True),
        }

    def regional_analysis(self) -> dict[str, dict[str, Any]]:
        return {
            name: {
                "avg_tps": history.avg_tps,
                "avg_latency": history.avg_latency,
                "avg_optimization": history.avg_optimization,
                "count": history.runs,
                "trend": self.region_trends(name),
            }
            for name, history in self._regions.items()
        }

    def average_improvement(self) -> dict[str, float]:
        runs = list(self._runs)
        return {
            "tps": mean([r.improvement.get("tps_increase", 0.0) for r in runs]),
            "latency": mean([r.improvement.get("latency_reduction", 0.0) for r in runs]),
            "error_rate": mean([r.improvement.get("error_reduction", 0.0) for r in runs]),
        }

    def best_performance(self) -> Optional[dict[str, Any]]:
        if not self._runs:
            return None
        return max(self._runs, key=lambda r: r.avg_tps).to_dict()

    def summary(self) -> dict[str, Any]:
        return {
            "total_runs": len(self._runs),
            "average_improvement": self.average_improvement(),
            "best_performance": self.best_performance(),
            "trends": self.trends(),
        }

    def export(self) -> dict[str, Any]:
        """Everything the dashboard charts read."""
        return {
            "daily_averages": self.daily_averages(),
            "regional_comparisons": self.regional_comparisons(),
            "runs": [r.to_dict() for r in self._runs],
        }
