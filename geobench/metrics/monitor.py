# geobench/metrics/monitor.py
"""
Performance Monitor

Two periodic activities, each an asyncio task:
- Local metrics collection (default every 2s): fetch from the sources,
  merge into the store, broadcast `performance-update`
- Cross-region snapshot (default every 5s): broadcast `realtime-metrics`

Monitoring can be switched on and off at runtime; the switch is broadcast
as `monitoring-status`.
"""

import asyncio
import time
from typing import Any, Callable, Optional

from geobench.api.websocket.manager import BroadcastHub
from geobench.config.settings import Settings
from geobench.core.constants import EventType, Topic
from geobench.metrics.estimation import MetricEstimator
from geobench.metrics.sources import MetricSourceAdapter, SourceResult, scalar_from_prometheus, split_by_label
from geobench.metrics.store import PerformanceStore, RegionalStat
from geobench.utils.logger import log_exception, log_performance, logger

# Query names that feed summary blocks instead of a series.
_CONSENSUS_QUERIES = {"block_height", "leader_elections"}
_REALTIME_QUERIES = {"active_nodes"}
_REGIONAL_FIELDS = {"regional_tps": "tps", "regional_latency": "latency"}


class PerformanceMonitor:
    """Owns the collection timers and merges each tick into the store."""

    def __init__(
        self,
        settings: Settings,
        store: PerformanceStore,
        adapter: MetricSourceAdapter,
        hub: BroadcastHub,
        estimator: Optional[MetricEstimator] = None,
        snapshot_provider: Optional[Callable[[], dict[str, Any]]] = None,
    ):
        self.settings = settings
        self.store = store
        self.adapter = adapter
        self.hub = hub
        self.estimator = estimator or MetricEstimator(settings.benchmark.seed)
        self.snapshot_provider = snapshot_provider or store.snapshot
        self._collect_task: Optional[asyncio.Task] = None
        self._snapshot_task: Optional[asyncio.Task] = None
        self._ticks = 0

    @property
    def is_monitoring(self) -> bool:
        return self._collect_task is not None and not self._collect_task.done()

    @property
    def ticks(self) -> int:
        return self._ticks

    async def start(self) -> bool:
        """Start both loops. Returns False if monitoring was already on."""
        if self.is_monitoring:
            return False

        self._collect_task = asyncio.create_task(self._collect_loop())
        self._snapshot_task = asyncio.create_task(self._snapshot_loop())
        logger.info(
            f"Performance monitoring started (collect every {self.settings.monitoring.collect_interval}s, "
            f"snapshot every {self.settings.monitoring.snapshot_interval}s)"
        )
        await self.hub.broadcast_monitoring_status(True)
        return True

    async def stop(self) -> bool:
        """Stop both loops. Returns False if monitoring was already off."""
        if not self.is_monitoring:
            return False

        for task in (self._collect_task, self._snapshot_task):
            if task is None:
                continue
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        self._collect_task = None
        self._snapshot_task = None
        logger.info("Performance monitoring stopped")
        await self.hub.broadcast_monitoring_status(False)
        return True

    # ------------------------------------------------------------------
    # Collection
    # ------------------------------------------------------------------

    async def collect_once(self) -> dict[str, SourceResult]:
        """Fetch every configured query once and merge the results."""
        started = time.perf_counter()
        results = await self.adapter.fetch(self.settings.sources.queries)
        self.merge(results)
        self._ticks += 1
        log_performance(
            "collect_once",
            (time.perf_counter() - started) * 1000,
            {"available": sum(r.available for r in results.values()), "queries": len(results)},
        )
        return results

    def merge(self, results: dict[str, SourceResult], timestamp: Optional[float] = None) -> None:
        """
        Merge one tick of source results into the store.

        Unavailable results are skipped (the store keeps its last values).
        When nothing at all answered and estimation is enabled, the tick is
        synthesized and the snapshot is flagged as estimated.
        """
        now = timestamp if timestamp is not None else time.time()
        self.store.set_sources({name: {"available": r.available, "error": r.error} for name, r in results.items()})

        queries = {q.name: q for q in self.settings.sources.queries}
        regional: dict[str, dict[str, float]] = {}
        any_available = False

        for name, result in results.items():
            if not result.available:
                continue
            any_available = True
            query = queries.get(name)

            if query is not None and query.by_label:
                field_name = _REGIONAL_FIELDS.get(name, name)
                for region, value in split_by_label(result.value, query.by_label).items():
                    regional.setdefault(region, {})[field_name] = value
                continue

            if result.source != "prometheus":
                self.store.set_extra(name, result.value)
                continue

            value = scalar_from_prometheus(result.value)
            if value is None:
                continue
            if name in _CONSENSUS_QUERIES:
                self.store.update_consensus(**{name: int(value)})
            elif name in _REALTIME_QUERIES:
                self.store.update_realtime(**{name: int(value)})
            else:
                self.store.record_value(name, value, now)

        for region, fields in regional.items():
            self.store.record_region(region, self._regional_stat(region, fields, now))

        if not any_available and self.settings.monitoring.estimate_when_unavailable:
            self._apply_estimate(now)
            self.store.mark_estimated(True)
        else:
            self.store.mark_estimated(False)

        self._refresh_realtime(any_available)

    def _regional_stat(self, region: str, fields: dict[str, float], now: float) -> RegionalStat:
        previous = self.store.region(region) or RegionalStat(region=region)
        return RegionalStat(
            region=region,
            tps=fields.get("tps", previous.tps),
            latency=fields.get("latency", previous.latency),
            transactions=int(fields.get("transactions", previous.transactions)),
            error_rate=fields.get("error_rate", previous.error_rate),
            optimization=fields.get("optimization", previous.optimization),
            throughput=fields.get("throughput", previous.throughput),
            timestamp=now,
        )

    def _apply_estimate(self, now: float) -> None:
        tick = self.estimator.tick(self.settings.monitoring.regions)
        for name, value in tick["series"].items():
            self.store.record_value(name, value, now)
        for region, fields in tick["regions"].items():
            self.store.record_region(region, RegionalStat(region=region, timestamp=now, **fields))

        consensus = tick["consensus"]
        snapshot = self.store.snapshot()["consensus"]
        self.store.update_consensus(
            block_height=snapshot["block_height"] + consensus["block_height_delta"],
            block_time=consensus["block_time"],
            leader_elections=snapshot["leader_elections"] + int(consensus["leader_election"]),
            commit_efficiency=consensus["commit_efficiency"],
        )

    def _refresh_realtime(self, any_available: bool) -> None:
        cpu = self.store.latest("cpu")
        memory = self.store.latest("memory")
        if cpu is None and memory is None and not any_available:
            status = "unknown"
        elif (cpu or 0) < 80 and (memory or 0) < 90:
            status = "healthy"
        else:
            status = "warning"

        self.store.update_realtime(
            current_tps=self.store.latest("tps") or 0.0,
            avg_latency=self.store.latest("latency") or 0.0,
            network_status=status,
        )

    def cross_region_snapshot(self) -> dict[str, Any]:
        """Compact realtime view across regions."""
        snapshot = self.store.snapshot()
        payload: dict[str, Any] = {
            "timestamp": snapshot["timestamp"],
            "throughput": snapshot["realtime"]["current_tps"],
            "latency": snapshot["realtime"]["avg_latency"],
            "active_nodes": snapshot["realtime"]["active_nodes"],
            "regions": {
                name: {"tps": stat["tps"], "latency": stat["latency"]}
                for name, stat in snapshot["geographic"].items()
            },
            "estimated": snapshot["estimated"],
        }
        if snapshot["estimated"]:
            payload["cross_region_latency"] = self.estimator.cross_region()
        return payload

    # ------------------------------------------------------------------
    # Loops
    # ------------------------------------------------------------------

    async def _collect_loop(self) -> None:
        interval = self.settings.monitoring.collect_interval

        while True:
            try:
                await self.collect_once()
                await self.hub.broadcast_performance(self.snapshot_provider())
            except asyncio.CancelledError:
                break
            except Exception as e:
                log_exception(e, {"loop": "collect"})
                await self.hub.publish(Topic.MONITORING, EventType.MONITORING_ERROR, {"error": str(e)})

            try:
                await asyncio.sleep(interval)
            except asyncio.CancelledError:
                break

    async def _snapshot_loop(self) -> None:
        interval = self.settings.monitoring.snapshot_interval

        while True:
            try:
                await asyncio.sleep(interval)
                await self.hub.publish(Topic.PERFORMANCE, EventType.REALTIME_METRICS, self.cross_region_snapshot())
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.warning(f"Cross-region snapshot error: {e}")
