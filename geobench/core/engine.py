# geobench/core/engine.py
"""
Telemetry Engine

Owns every piece of mutable state of the service:
- Performance store, metric source adapter and monitor
- Broadcast hub
- Benchmark orchestrator and historical aggregator

One engine lives per process (the API keeps it on app.state); nothing
else holds engine data at module level.
"""

from typing import Any, Optional

import httpx

from geobench.api.websocket.manager import BroadcastHub
from geobench.benchmark.history import HistoricalAggregator
from geobench.benchmark.orchestrator import BenchmarkOrchestrator
from geobench.config.settings import Settings, get_settings
from geobench.core.constants import EventType
from geobench.core.queries import QueryFacade
from geobench.metrics.estimation import MetricEstimator
from geobench.metrics.monitor import PerformanceMonitor
from geobench.metrics.sources import MetricSourceAdapter
from geobench.metrics.store import PerformanceStore
from geobench.utils.logger import logger


class TelemetryEngine:
    """State owner wiring the collection side to the benchmark side."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        history = self.settings.history

        self.store = PerformanceStore(
            max_samples=history.max_samples,
            max_region_trend=history.max_region_trend,
            regions=self.settings.monitoring.regions,
        )
        self.adapter = MetricSourceAdapter.from_settings(self.settings.sources, transport=transport)
        self.hub = BroadcastHub(
            max_connections=self.settings.api.websocket.max_connections,
            queue_size=self.settings.api.websocket.queue_size,
        )
        self.estimator = MetricEstimator(self.settings.benchmark.seed)
        self.monitor = PerformanceMonitor(
            self.settings, self.store, self.adapter, self.hub, self.estimator, snapshot_provider=self.snapshot
        )
        self.aggregator = HistoricalAggregator(
            max_days=history.max_days,
            max_region_trend=history.max_region_trend,
            max_runs=history.max_runs,
            trend_window=history.trend_window,
            trend_threshold=history.trend_threshold,
        )
        self.orchestrator = BenchmarkOrchestrator(
            self.settings,
            self.hub,
            self.aggregator,
            self.estimator if self.settings.benchmark.estimate_missing_results else None,
        )
        self.queries = QueryFacade(self)

        self._initialized = False

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        """Bind the hub to engine state and start monitoring if configured."""
        if self._initialized:
            return

        logger.info("Initializing telemetry engine")
        self.hub.bind(
            snapshot_provider=self.snapshot,
            status_provider=lambda: self.monitor.is_monitoring,
            command_handler=self._handle_command,
            connect_hook=self._on_client_connect,
        )

        if self.settings.monitoring.auto_start:
            await self.monitor.start()

        self._initialized = True
        logger.info("Telemetry engine initialized")

    async def shutdown(self) -> None:
        """Stop monitoring and any active benchmark, then release HTTP clients."""
        logger.info("Shutting down telemetry engine...")

        await self.monitor.stop()
        await self.orchestrator.shutdown()
        await self.adapter.close()

        self._initialized = False
        logger.info("Telemetry engine shutdown complete")

    def snapshot(self) -> dict[str, Any]:
        """Store snapshot plus the pointer to the active benchmark."""
        snapshot = self.store.snapshot()
        current = self.orchestrator.current
        snapshot["benchmarks"] = {
            "running": current is not None,
            "current": current.summary() if current else None,
        }
        return snapshot

    async def _on_client_connect(self, client_id: str) -> None:
        if self.settings.monitoring.auto_start_on_connect and not self.monitor.is_monitoring:
            logger.info(f"Client {client_id} connected; starting monitoring")
            await self.monitor.start()

    async def _handle_command(self, command: str, data: dict[str, Any]) -> None:
        if command == EventType.START_MONITORING.value:
            await self.monitor.start()
        elif command == EventType.STOP_MONITORING.value:
            await self.monitor.stop()
