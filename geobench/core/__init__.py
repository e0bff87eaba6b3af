"""Core module for GeoBench."""

from geobench.core.constants import (
    ALL_TOPICS,
    EventType,
    RunStatus,
    Topic,
    Trend,
)
from geobench.core.exceptions import (
    GeoBenchException,
    SourceUnavailableError,
    BenchmarkException,
    BenchmarkAlreadyRunningError,
    ProcessSpawnError,
    ProcessRuntimeError,
    RunNotFoundError,
)

__all__ = [
    "ALL_TOPICS",
    "EventType",
    "RunStatus",
    "Topic",
    "Trend",
    "GeoBenchException",
    "SourceUnavailableError",
    "BenchmarkException",
    "BenchmarkAlreadyRunningError",
    "ProcessSpawnError",
    "ProcessRuntimeError",
    "RunNotFoundError",
]
