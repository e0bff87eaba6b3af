# geobench/metrics/sources.py
"""
Metric Source Adapter

Uniform access to the external time-series backends:
- Prometheus HTTP API (instant and range queries)
- The monitoring service's JSON metrics endpoint

Queries fan out concurrently. Every query gets its own timeout and error
capture, so one backend failing never aborts the others; a failed query
comes back as an explicit "unavailable" result and is simply tried again
on the next collection tick.
"""

import asyncio
import math
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Optional

import httpx

from geobench.config.settings import MetricQueryConfig, SourcesConfig
from geobench.core.exceptions import SourceUnavailableError, UnknownSourceError
from geobench.utils.logger import log_source_failure, logger


@dataclass
class SourceResult:
    """Outcome of one named query for one tick."""

    name: str
    source: str
    value: Any = None
    available: bool = True
    error: Optional[str] = None

    @classmethod
    def unavailable(cls, name: str, source: str, reason: str) -> "SourceResult":
        return cls(name=name, source=source, value=None, available=False, error=reason)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "source": self.source,
            "value": self.value,
            "available": self.available,
            "error": self.error,
        }


class MetricBackend(ABC):
    """A time-series backend that answers queries by expression."""

    name: str = "backend"

    @abstractmethod
    async def query(self, expr: str) -> Any:
        """Run one query and return its payload."""

    async def close(self) -> None:
        """Release network resources."""


class HTTPBackend(MetricBackend):
    """Backend reached over HTTP with a lazily created shared client."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 3.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout, connect=min(self.timeout, 5.0)),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
        self._client = None


class PrometheusBackend(HTTPBackend):
    """Prometheus HTTP API client."""

    name = "prometheus"

    async def query(self, expr: str) -> Any:
        client = await self._get_client()
        response = await client.get("/api/v1/query", params={"query": expr})
        response.raise_for_status()
        return self._unwrap(response.json())

    async def query_range(
        self,
        expr: str,
        start: Optional[float] = None,
        end: Optional[float] = None,
        step: str = "15s",
    ) -> Any:
        """Range query; defaults to the last hour."""
        now = time.time()
        params = {
            "query": expr,
            "start": int(start if start is not None else now - 3600),
            "end": int(end if end is not None else now),
            "step": step,
        }
        client = await self._get_client()
        response = await client.get("/api/v1/query_range", params=params)
        response.raise_for_status()
        return self._unwrap(response.json())

    def _unwrap(self, payload: dict[str, Any]) -> Any:
        if payload.get("status") != "success":
            raise SourceUnavailableError(self.name, payload.get("error", "query failed"))
        return payload.get("data", {})


class MonitoringServiceBackend(HTTPBackend):
    """The monitoring service exposes one JSON document; the expression is ignored."""

    name = "monitoring_service"

    async def query(self, expr: str) -> Any:
        client = await self._get_client()
        response = await client.get("/api/metrics")
        response.raise_for_status()
        return response.json()


class MetricSourceAdapter:
    """
    Fans queries out over the configured backends.

    Usage:
        adapter = MetricSourceAdapter.from_settings(settings.sources)
        results = await adapter.fetch(settings.sources.queries)
        if results["tps"].available:
            ...
    """

    def __init__(self, backends: dict[str, MetricBackend], timeout: float = 3.0):
        self._backends = backends
        self._timeout = timeout

    @classmethod
    def from_settings(
        cls,
        config: SourcesConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "MetricSourceAdapter":
        backends: dict[str, MetricBackend] = {
            PrometheusBackend.name: PrometheusBackend(config.prometheus_url, config.timeout, transport),
            MonitoringServiceBackend.name: MonitoringServiceBackend(
                config.monitoring_service_url, config.timeout, transport
            ),
        }
        return cls(backends, timeout=config.timeout)

    @property
    def backends(self) -> dict[str, MetricBackend]:
        return self._backends

    async def fetch(self, queries: Iterable[MetricQueryConfig]) -> dict[str, SourceResult]:
        """
        Run all queries concurrently.

        Never raises for backend problems: each failed or timed-out query is
        returned as an unavailable SourceResult.

        Args:
            queries: Named queries to run

        Returns:
            Mapping of query name to result, one entry per query
        """
        queries = list(queries)
        results = await asyncio.gather(*(self._fetch_one(q) for q in queries))
        return {result.name: result for result in results}

    async def fetch_range(
        self,
        query: MetricQueryConfig,
        start: Optional[float] = None,
        end: Optional[float] = None,
        step: str = "15s",
    ) -> SourceResult:
        """
        Range query for one named query, with the same error capture as fetch().

        Only Prometheus answers range queries; other backends come back unavailable.
        """

        async def _call(backend: MetricBackend) -> Any:
            if not isinstance(backend, PrometheusBackend):
                raise SourceUnavailableError(backend.name, "range queries are not supported")
            return await backend.query_range(query.expr, start=start, end=end, step=step)

        return await self._guarded(query, _call)

    async def _fetch_one(self, query: MetricQueryConfig) -> SourceResult:
        return await self._guarded(query, lambda backend: backend.query(query.expr))

    async def _guarded(
        self,
        query: MetricQueryConfig,
        call: Callable[[MetricBackend], Awaitable[Any]],
    ) -> SourceResult:
        try:
            backend = self._backends.get(query.backend)
            if backend is None:
                raise UnknownSourceError(query.backend)
            value = await asyncio.wait_for(call(backend), timeout=self._timeout)
            return SourceResult(name=query.name, source=query.backend, value=value)
        except asyncio.TimeoutError:
            reason = f"timed out after {self._timeout}s"
        except httpx.TimeoutException:
            reason = "HTTP timeout"
        except httpx.HTTPStatusError as e:
            reason = f"HTTP {e.response.status_code}"
        except httpx.HTTPError as e:
            reason = f"{type(e).__name__}: {e}"
        except (SourceUnavailableError, UnknownSourceError) as e:
            reason = e.message
        except Exception as e:
            # Malformed payloads and the like; still isolated to this query.
            reason = f"{type(e).__name__}: {e}"

        log_source_failure(query.backend, query.name, reason)
        return SourceResult.unavailable(query.name, query.backend, reason)

    async def close(self) -> None:
        """Close every backend's HTTP client."""
        for backend in self._backends.values():
            try:
                await backend.close()
            except Exception as e:
                logger.debug(f"Error closing backend {backend.name}: {e}")


# ------------------------------------------------------------------
# Prometheus payload helpers
# ------------------------------------------------------------------


def _sample_value(sample: Any) -> Optional[float]:
    try:
        value = float(sample[1])
    except (TypeError, ValueError, IndexError):
        return None
    # Prometheus encodes NaN and +/-Inf as strings; they carry no reading.
    return value if math.isfinite(value) else None


def _series_value(series: dict[str, Any]) -> Optional[float]:
    if "value" in series:
        return _sample_value(series["value"])
    values = series.get("values") or []
    # Range results: the newest point wins.
    return _sample_value(values[-1]) if values else None


def scalar_from_prometheus(data: Any) -> Optional[float]:
    """
    Reduce a Prometheus `data` block to one number.

    Vectors and matrices are summed across series (matrices use each
    series' latest point). Returns None when there is nothing to reduce.
    """
    if not isinstance(data, dict):
        return None

    result = data.get("result")
    if data.get("resultType") == "scalar":
        return _sample_value(result)
    if not result:
        return None

    values = [v for v in (_series_value(s) for s in result) if v is not None]
    return sum(values) if values else None


def split_by_label(data: Any, label: str) -> dict[str, float]:
    """Map each series' `label` value to its (latest) sample."""
    if not isinstance(data, dict):
        return {}

    split: dict[str, float] = {}
    for series in data.get("result") or []:
        key = series.get("metric", {}).get(label)
        value = _series_value(series)
        if key is not None and value is not None:
            split[key] = value
    return split


def series_points(data: Any) -> list[dict[str, float]]:
    """
    Flatten a range result into time-ordered points.

    Series are summed per timestamp; non-finite samples are dropped.
    """
    if not isinstance(data, dict):
        return []

    totals: dict[float, float] = {}
    for series in data.get("result") or []:
        for sample in series.get("values") or []:
            value = _sample_value(sample)
            if value is None:
                continue
            timestamp = float(sample[0])
            totals[timestamp] = totals.get(timestamp, 0.0) + value
    return [{"timestamp": ts, "value": totals[ts]} for ts in sorted(totals)]
