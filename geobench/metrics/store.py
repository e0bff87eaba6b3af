# geobench/metrics/store.py
"""Bounded in-memory performance state."""

import time
from collections import deque
from dataclasses import asdict, dataclass, field
from typing import Any, Optional

from geobench.core.constants import METRIC_SERIES
from geobench.utils.logger import logger


@dataclass
class MetricSample:
    """A single point of a metric series."""

    value: float
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        return {"timestamp": self.timestamp, "value": self.value}


@dataclass
class RegionalStat:
    """Current performance of one geographic region."""

    region: str
    tps: float = 0.0
    latency: float = 0.0
    transactions: int = 0
    error_rate: float = 0.0
    # Fraction of requests that took the geo-optimized path.
    optimization: float = 0.0
    throughput: float = 0.0
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class PerformanceStore:
    """
    Latest samples per metric and per region.

    - Fixed-capacity ring buffer per metric (FIFO eviction)
    - Regional snapshot overwritten each tick, plus a capped trend per region
    - Consensus/realtime summary blocks and last source availability
    """

    def __init__(
        self,
        max_samples: int = 50,
        max_region_trend: int = 20,
        regions: Optional[list[str]] = None,
    ):
        self.max_samples = max_samples
        self.max_region_trend = max_region_trend
        self._series: dict[str, deque[MetricSample]] = {
            name: deque(maxlen=max_samples) for name in METRIC_SERIES
        }
        self._regions: dict[str, RegionalStat] = {r: RegionalStat(region=r) for r in regions or []}
        self._region_trends: dict[str, deque[RegionalStat]] = {}
        self._consensus: dict[str, Any] = {
            "block_height": 0,
            "block_time": 0.0,
            "leader_elections": 0,
            "commit_efficiency": 0.0,
        }
        self._realtime: dict[str, Any] = {
            "current_tps": 0.0,
            "avg_latency": 0.0,
            "active_nodes": 0,
            "network_status": "unknown",
        }
        self._sources: dict[str, dict[str, Any]] = {}
        self._extra: dict[str, Any] = {}
        self._estimated = False
        self._updated_at: Optional[float] = None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def record(self, metric: str, sample: MetricSample) -> None:
        """Append a sample; the oldest one is evicted once the buffer is full."""
        series = self._series.get(metric)
        if series is None:
            series = self._series[metric] = deque(maxlen=self.max_samples)
        series.append(sample)
        self._touch()

    def record_value(self, metric: str, value: float, timestamp: Optional[float] = None) -> MetricSample:
        sample = MetricSample(value=value, timestamp=timestamp if timestamp is not None else time.time())
        self.record(metric, sample)
        return sample

    def record_region(self, region: str, stat: RegionalStat) -> None:
        """Overwrite the region's current stat and append it to the region's trend."""
        self._regions[region] = stat
        trend = self._region_trends.get(region)
        if trend is None:
            trend = self._region_trends[region] = deque(maxlen=self.max_region_trend)
        trend.append(stat)
        self._touch()

    def update_consensus(self, **fields: Any) -> None:
        self._consensus.update(fields)
        self._touch()

    def update_realtime(self, **fields: Any) -> None:
        self._realtime.update(fields)
        self._touch()

    def set_sources(self, status: dict[str, dict[str, Any]]) -> None:
        """Replace the per-source availability block of the snapshot."""
        self._sources = status

    def set_extra(self, key: str, value: Any) -> None:
        """Attach an opaque payload (e.g. the monitoring service document)."""
        self._extra[key] = value

    def mark_estimated(self, estimated: bool) -> None:
        self._estimated = estimated

    def _touch(self) -> None:
        self._updated_at = time.time()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def series(self, metric: str) -> list[MetricSample]:
        return list(self._series.get(metric, ()))

    def latest(self, metric: str) -> Optional[float]:
        series = self._series.get(metric)
        return series[-1].value if series else None

    def region(self, region: str) -> Optional[RegionalStat]:
        return self._regions.get(region)

    def region_trend(self, region: str) -> list[RegionalStat]:
        return list(self._region_trends.get(region, ()))

    @property
    def regions(self) -> list[str]:
        return list(self._regions)

    def snapshot(self) -> dict[str, Any]:
        """
        Full current state as plain data.

        This is what gets broadcast and what joining observers receive, so
        a late subscriber sees the same view as long-lived ones.
        """
        return {
            "timestamp": time.time(),
            "updated_at": self._updated_at,
            "metrics": {name: [s.to_dict() for s in series] for name, series in self._series.items()},
            "geographic": {name: stat.to_dict() for name, stat in self._regions.items()},
            "regional_trends": {
                name: [s.to_dict() for s in trend] for name, trend in self._region_trends.items()
            },
            "consensus": dict(self._consensus),
            "realtime": dict(self._realtime),
            "sources": {name: dict(status) for name, status in self._sources.items()},
            "external": dict(self._extra),
            "estimated": self._estimated,
        }

    def clear(self) -> None:
        for series in self._series.values():
            series.clear()
        self._region_trends.clear()
        logger.debug("Performance store cleared")
