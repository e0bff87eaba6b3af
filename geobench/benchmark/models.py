# geobench/benchmark/models.py
"""Benchmark run records."""

import math
import secrets
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from geobench.core.constants import RunStatus


def _finite(value: Any) -> Optional[float]:
    if isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value):
        return float(value)
    return None


def generate_run_id() -> str:
    """Opaque, unique run token: benchmark_<epoch ms>_<random>."""
    return f"benchmark_{int(time.time() * 1000)}_{secrets.token_hex(5)}"


@dataclass
class TimeSeriesSample:
    """Throughput/latency observed in the benchmark's output."""

    timestamp: float = field(default_factory=time.time)
    tps: Optional[float] = None
    latency: Optional[float] = None
    type: str = "realtime"

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "tps": self.tps,
            "latency": self.latency,
            "type": self.type,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TimeSeriesSample":
        return cls(
            timestamp=_finite(data.get("timestamp")) or time.time(),
            tps=_finite(data.get("tps")),
            latency=_finite(data.get("latency")),
            type=str(data.get("type") or "imported"),
        )


@dataclass
class BenchmarkResults:
    """Nested result structure of one run."""

    overall: dict[str, Any] = field(default_factory=dict)
    by_region: dict[str, dict[str, Any]] = field(default_factory=dict)
    by_transaction_type: dict[str, dict[str, Any]] = field(default_factory=dict)
    time_series: list[TimeSeriesSample] = field(default_factory=list)
    consensus: dict[str, Any] = field(default_factory=dict)
    resources: dict[str, Any] = field(default_factory=dict)
    comparison: dict[str, Any] = field(default_factory=dict)
    # True when no real samples were parsed and numbers were derived/synthesized.
    estimated: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "overall": dict(self.overall),
            "by_region": {k: dict(v) for k, v in self.by_region.items()},
            "by_transaction_type": {k: dict(v) for k, v in self.by_transaction_type.items()},
            "time_series": [s.to_dict() for s in self.time_series],
            "consensus": dict(self.consensus),
            "resources": dict(self.resources),
            "comparison": dict(self.comparison),
            "estimated": self.estimated,
        }


@dataclass
class BenchmarkRun:
    """
    One benchmark run.

    Mutated only by the orchestrator while pending/running; callers outside
    the orchestrator only ever see copies of terminal runs.
    """

    id: str = field(default_factory=generate_run_id)
    status: RunStatus = RunStatus.PENDING
    config: dict[str, Any] = field(default_factory=dict)
    start_time: datetime = field(default_factory=datetime.now)
    end_time: Optional[datetime] = None
    progress: float = 0.0
    round: int = 0
    exit_code: Optional[int] = None
    error: Optional[str] = None
    results: BenchmarkResults = field(default_factory=BenchmarkResults)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def duration(self) -> float:
        end = self.end_time or datetime.now()
        return max((end - self.start_time).total_seconds(), 0.0)

    @property
    def region(self) -> Optional[str]:
        return self.config.get("region")

    @property
    def workload(self) -> Optional[str]:
        return self.config.get("workload")

    def advance_progress(self, progress: float) -> bool:
        """Raise progress; never lowers it. Returns True if it changed."""
        progress = min(max(progress, 0.0), 100.0)
        if progress <= self.progress:
            return False
        self.progress = progress
        return True

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "status": self.status.value,
            "config": dict(self.config),
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "progress": self.progress,
            "round": self.round,
            "exit_code": self.exit_code,
            "error": self.error,
            "region": self.region,
            "workload": self.workload,
            "results": self.results.to_dict(),
        }

    def summary(self) -> dict[str, Any]:
        """Compact form for lists."""
        overall = self.results.overall
        return {
            "id": self.id,
            "status": self.status.value,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "region": self.region,
            "workload": self.workload,
            "avg_tps": overall.get("avg_tps", 0.0),
            "avg_latency": overall.get("avg_latency", 0.0),
            "estimated": self.results.estimated,
        }
