# geobench/core/constants.py
"""
Constants and Enums for GeoBench

Defines all constant values used throughout the application.
"""

from enum import Enum
from typing import Final

# ============================================
# Version Information
# ============================================
VERSION: Final[str] = "1.0.0"
APP_NAME: Final[str] = "GeoBench Monitor"


# ============================================
# Benchmark Runs
# ============================================
class RunStatus(str, Enum):
    """Lifecycle states of a benchmark run."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RunStatus.COMPLETED, RunStatus.FAILED)


class OutputStream(str, Enum):
    """Which process stream a chunk of benchmark output came from."""

    INFO = "info"
    ERROR = "error"


# ============================================
# Trends
# ============================================
class Trend(str, Enum):
    """Direction of a metric over recent runs."""

    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"


# ============================================
# Broadcast topics and events
# ============================================
class Topic(str, Enum):
    """Rooms a subscriber can join."""

    PERFORMANCE = "performance"
    BENCHMARK = "benchmark"
    MONITORING = "monitoring"


ALL_TOPICS: Final[list[str]] = [t.value for t in Topic]


class EventType(str, Enum):
    """Event names published to subscribers."""

    # Server -> Client
    CONNECTED = "connected"
    PERFORMANCE_UPDATE = "performance-update"
    REALTIME_METRICS = "realtime-metrics"
    BENCHMARK_STARTED = "benchmark-started"
    BENCHMARK_PROGRESS = "benchmark-progress"
    BENCHMARK_OUTPUT = "benchmark-output"
    BENCHMARK_COMPLETED = "benchmark-completed"
    MONITORING_STATUS = "monitoring-status"
    MONITORING_ERROR = "monitoring-error"
    PONG = "pong"

    # Client -> Server
    SUBSCRIBE = "subscribe"
    UNSUBSCRIBE = "unsubscribe"
    PING = "ping"
    START_MONITORING = "start-monitoring"
    STOP_MONITORING = "stop-monitoring"
    REQUEST_SNAPSHOT = "request-snapshot"


# ============================================
# Metrics
# ============================================
METRIC_SERIES: Final[list[str]] = ["tps", "latency", "cpu", "memory", "network_throughput"]

DEFAULT_REGIONS: Final[list[str]] = ["americas", "europe", "asiaPacific"]

# Share of traffic attributed to each region when a run reports only totals.
REGION_TRAFFIC_SHARE: Final[dict[str, float]] = {
    "americas": 0.40,
    "europe": 0.35,
    "asiaPacific": 0.25,
}

# Share of each transaction type in the default workload mix (percent).
TRANSACTION_MIX: Final[dict[str, int]] = {
    "createAsset": 40,
    "queryAsset": 35,
    "transferAsset": 15,
    "geoQuery": 10,
}

# Non geo-aware reference run the comparison block is computed against.
BASELINE_TPS: Final[float] = 320.0
BASELINE_LATENCY_MS: Final[float] = 850.0
BASELINE_ERROR_RATE: Final[float] = 0.05

TIME_WINDOWS: Final[dict[str, int]] = {
    "24h": 24 * 3600,
    "7d": 7 * 24 * 3600,
    "30d": 30 * 24 * 3600,
}
