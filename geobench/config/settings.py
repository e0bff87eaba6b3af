# geobench/config/settings.py
"""
GeoBench Configuration Settings

Manages all configuration using Pydantic Settings with YAML file support.

Resolution order:
1. settings.yaml (passed as init values)
2. Environment variables (GEOBENCH_ prefix, "__" for nested keys)
3. Defaults below
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class MetricQueryConfig(BaseModel):
    """A named query against one metric backend."""

    name: str
    expr: str = ""
    backend: str = "prometheus"
    # Split the result by this label instead of reducing it to one scalar.
    by_label: Optional[str] = None


def _default_queries() -> list[MetricQueryConfig]:
    return [
        MetricQueryConfig(name="tps", expr="sum(rate(hyperledger_fabric_transactions_total[1m]))"),
        MetricQueryConfig(name="latency", expr="avg(hyperledger_fabric_consensus_latency_seconds) * 1000"),
        MetricQueryConfig(name="cpu", expr="avg(rate(cpu_usage_seconds_total[5m])) * 100"),
        MetricQueryConfig(name="memory", expr="avg(memory_usage_bytes / memory_limit_bytes) * 100"),
        MetricQueryConfig(name="network_throughput", expr="sum(rate(network_bytes_total[5m])) / 1048576"),
        MetricQueryConfig(name="block_height", expr="max(hyperledger_fabric_blocks_total)"),
        MetricQueryConfig(
            name="leader_elections",
            expr="sum(hyperledger_fabric_orderer_consensus_etcdraft_leader_changes_total)",
        ),
        MetricQueryConfig(name="active_nodes", expr='count(up{job="hyperledger-fabric"} == 1)'),
        MetricQueryConfig(
            name="regional_tps",
            expr="sum by (region) (rate(hyperledger_fabric_transactions_total[1m]))",
            by_label="region",
        ),
        MetricQueryConfig(
            name="regional_latency",
            expr="avg by (region) (hyperledger_fabric_consensus_latency_seconds) * 1000",
            by_label="region",
        ),
        MetricQueryConfig(name="monitoring_service", backend="monitoring_service"),
    ]


class SourcesConfig(BaseModel):
    """External metric backends."""

    prometheus_url: str = "http://localhost:9090"
    monitoring_service_url: str = "http://localhost:3000"
    # Per-call timeout in seconds; a timed-out call is unavailable for that tick.
    timeout: float = 3.0
    queries: list[MetricQueryConfig] = Field(default_factory=_default_queries)


class MonitoringConfig(BaseModel):
    """Periodic collection configuration."""

    collect_interval: float = 2.0
    snapshot_interval: float = 5.0
    auto_start: bool = False
    # Start collecting when the first dashboard client connects.
    auto_start_on_connect: bool = True
    estimate_when_unavailable: bool = False
    regions: list[str] = Field(default_factory=lambda: ["americas", "europe", "asiaPacific"])


class HistoryConfig(BaseModel):
    """Capacities of the bounded in-memory collections."""

    max_samples: int = 50
    max_runs: int = 100
    max_days: int = 30
    max_region_trend: int = 20
    trend_window: int = 5
    trend_threshold: float = 0.05
    recent_runs: int = 20


class BenchmarkConfig(BaseModel):
    """Benchmark process configuration."""

    command: list[str] = Field(
        default_factory=lambda: [
            "npx",
            "caliper",
            "launch",
            "manager",
            "--caliper-bind-sut",
            "fabric:2.2",
            "--caliper-benchconfig",
            "large-scale-benchmark.yaml",
            "--caliper-networkconfig",
            "network-config.yaml",
            "--caliper-workspace",
            "./",
            "--caliper-flow-only-test",
        ]
    )
    workdir: Optional[str] = "caliper"
    total_rounds: int = 7
    # Seconds to wait after terminate() before kill() on cancel.
    stop_timeout: float = 10.0
    read_chunk_size: int = 4096
    estimate_missing_results: bool = True
    # Seed for the estimation fallback; None = nondeterministic.
    seed: Optional[int] = None
    default_config: dict = Field(
        default_factory=lambda: {
            "transactions": 50000,
            "workers": 20,
            "duration": 600,
            "regions": ["americas", "europe", "asiaPacific"],
        }
    )


class CORSConfig(BaseModel):
    """CORS configuration."""

    enabled: bool = False
    origins: list[str] = Field(
        default_factory=lambda: [
            "http://localhost:3000",
            "http://localhost:8080",
            "http://127.0.0.1:8080",
        ]
    )


class WebSocketConfig(BaseModel):
    """WebSocket configuration."""

    max_connections: int = 100
    # Per-subscriber queue size for in-process observers.
    queue_size: int = 256


class APIConfig(BaseModel):
    """API server configuration."""

    host: str = "127.0.0.1"
    port: int = 8080
    cors: CORSConfig = Field(default_factory=CORSConfig)
    websocket: WebSocketConfig = Field(default_factory=WebSocketConfig)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    file: Optional[str] = None
    rotation: str = "10 MB"
    retention: str = "1 week"


class AppConfig(BaseModel):
    """Application configuration."""

    name: str = "GeoBench Monitor"
    version: str = "1.0.0"
    debug: bool = False


class Settings(BaseSettings):
    """
    Main settings class for GeoBench.

    Loads configuration from:
    1. YAML configuration file (highest priority)
    2. Environment variables
    3. Default values (lowest priority)
    """

    model_config = SettingsConfigDict(
        env_prefix="GEOBENCH_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    app: AppConfig = Field(default_factory=AppConfig)
    api: APIConfig = Field(default_factory=APIConfig)
    sources: SourcesConfig = Field(default_factory=SourcesConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)
    history: HistoryConfig = Field(default_factory=HistoryConfig)
    benchmark: BenchmarkConfig = Field(default_factory=BenchmarkConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_yaml(cls, path: Path | str) -> "Settings":
        """
        Load settings from a YAML file.

        Args:
            path: Path to the YAML configuration file

        Returns:
            Settings instance with values from the file
        """
        path = Path(path)
        if not path.exists():
            return cls()

        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)

    def to_yaml(self, path: Path | str) -> None:
        """
        Save settings to a YAML file.

        Args:
            path: Path to save the configuration file
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w", encoding="utf-8") as f:
            yaml.dump(self.model_dump(), f, default_flow_style=False, sort_keys=False)


def get_config_path() -> Path:
    """
    Return the path to the active settings.yaml file.

    GEOBENCH_CONFIG wins when set; otherwise the first existing candidate,
    falling back to geobench/config/settings.yaml.
    """
    explicit = os.environ.get("GEOBENCH_CONFIG")
    if explicit:
        return Path(explicit)

    candidates = [
        Path("settings.yaml"),
        Path(__file__).parent / "settings.yaml",
        Path.home() / ".geobench" / "settings.yaml",
    ]
    for path in candidates:
        if path.exists():
            return path

    # May not exist yet; Settings.from_yaml handles missing gracefully
    return Path(__file__).parent / "settings.yaml"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings instance loaded from configuration
    """
    return Settings.from_yaml(get_config_path())


def reload_settings() -> Settings:
    """
    Reload settings from configuration file.

    Returns:
        Fresh Settings instance
    """
    get_settings.cache_clear()
    return get_settings()
