# geobench/core/queries.py
"""
Query Facade

Read-side operations behind the HTTP API and the CLI. Returns plain dicts
ready for JSON encoding.
"""

import time
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, Optional

from geobench.benchmark.models import BenchmarkRun
from geobench.core.constants import TIME_WINDOWS
from geobench.core.exceptions import RunNotFoundError, UnknownMetricError
from geobench.metrics.sources import series_points

if TYPE_CHECKING:
    from geobench.core.engine import TelemetryEngine

# Queries answered live by status(); the rest come from the last tick.
_STATUS_QUERIES = ("active_nodes", "monitoring_service")


def _matches(value: Optional[str], wanted: Optional[str]) -> bool:
    return not wanted or wanted == "all" or value == wanted


class QueryFacade:
    """Status, history and run lookups over one engine."""

    def __init__(self, engine: "TelemetryEngine"):
        self.engine = engine

    async def status(self) -> dict[str, Any]:
        """Monitoring flag, performance snapshot, benchmark pointer and live source checks."""
        engine = self.engine
        live = [q for q in engine.settings.sources.queries if q.name in _STATUS_QUERIES]
        results = await engine.adapter.fetch(live)
        current = engine.orchestrator.current

        return {
            "monitoring": engine.monitor.is_monitoring,
            "performance": engine.snapshot(),
            "benchmark": {
                "running": current is not None,
                "current_id": current.id if current else None,
                "progress": current.progress if current else None,
            },
            "sources": {name: result.to_dict() for name, result in results.items()},
            "connections": engine.hub.connection_count,
            "timestamp": datetime.now().isoformat(),
        }

    def filter_runs(
        self,
        region: Optional[str] = None,
        workload: Optional[str] = None,
        time_window: Optional[str] = None,
    ) -> list[BenchmarkRun]:
        """
        Archived runs matching the filters, oldest first.

        "all" (or None) disables a filter. An unknown time window means all time.
        """
        runs = self.engine.orchestrator.history()
        runs = [r for r in runs if _matches(r.region, region) and _matches(r.workload, workload)]

        seconds = TIME_WINDOWS.get(time_window or "all")
        if seconds is not None:
            cutoff = datetime.now() - timedelta(seconds=seconds)
            runs = [r for r in runs if (r.end_time or r.start_time) >= cutoff]
        return runs

    def history(
        self,
        region: Optional[str] = None,
        workload: Optional[str] = None,
        time_window: Optional[str] = None,
    ) -> dict[str, Any]:
        aggregator = self.engine.aggregator
        runs = self.filter_runs(region, workload, time_window)
        recent = runs[-self.engine.settings.history.recent_runs :]

        summary = aggregator.summary()
        summary["total_runs"] = len(runs)

        return {
            "recent": [r.summary() for r in recent],
            "history": [r.summary() for r in runs],
            "historical": aggregator.export(),
            "regional": aggregator.regional_analysis(),
            "trends": aggregator.daily_averages(),
            "summary": summary,
        }

    def benchmark_details(self, run_id: str) -> dict[str, Any]:
        """Full record of one run, active or archived."""
        run = self.engine.orchestrator.get_run(run_id)
        if run is None:
            raise RunNotFoundError(run_id)
        return run.to_dict()

    async def start_benchmark(self, config: Optional[dict[str, Any]] = None) -> str:
        return await self.engine.orchestrator.start(config)

    async def metric_history(self, name: str, minutes: int = 60, step: str = "15s") -> dict[str, Any]:
        """
        Range history of one configured metric query.

        Raises:
            UnknownMetricError: If no query with this name is configured
        """
        query = next((q for q in self.engine.settings.sources.queries if q.name == name), None)
        if query is None:
            raise UnknownMetricError(name)

        end = time.time()
        result = await self.engine.adapter.fetch_range(query, start=end - minutes * 60, end=end, step=step)
        return {
            "name": name,
            "source": result.source,
            "available": result.available,
            "error": result.error,
            "points": series_points(result.value) if result.available else [],
        }
