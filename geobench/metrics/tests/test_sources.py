import asyncio

import httpx
import pytest

from geobench.config.settings import MetricQueryConfig, SourcesConfig
from geobench.metrics.sources import (
    MetricBackend,
    MetricSourceAdapter,
    MonitoringServiceBackend,
    PrometheusBackend,
    scalar_from_prometheus,
    series_points,
    split_by_label,
)


def _vector(*series):
    return {"status": "success", "data": {"resultType": "vector", "result": list(series)}}


def _prometheus_handler(request: httpx.Request) -> httpx.Response:
    query = request.url.params.get("query", "")
    if query == "tps":
        return httpx.Response(200, json=_vector({"metric": {}, "value": [1700000000, "412.5"]}))
    if query == "latency":
        return httpx.Response(200, json=_vector({"metric": {}, "value": [1700000000, "380"]}))
    if query == "broken":
        return httpx.Response(500, text="boom")
    if query == "bad":
        return httpx.Response(200, json={"status": "error", "error": "parse error"})
    return httpx.Response(200, json=_vector())


class SlowBackend(MetricBackend):
    name = "slow"

    async def query(self, expr):
        await asyncio.sleep(5)
        return {"never": "returned"}


def _adapter(timeout=0.2):
    transport = httpx.MockTransport(_prometheus_handler)
    return MetricSourceAdapter(
        {
            "prometheus": PrometheusBackend("http://prometheus:9090", timeout=timeout, transport=transport),
            "slow": SlowBackend(),
        },
        timeout=timeout,
    )


@pytest.mark.asyncio
async def test_one_slow_source_does_not_block_the_others():
    adapter = _adapter()
    queries = [
        MetricQueryConfig(name="tps", expr="tps"),
        MetricQueryConfig(name="latency", expr="latency"),
        MetricQueryConfig(name="slow", expr="x", backend="slow"),
    ]

    results = await asyncio.wait_for(adapter.fetch(queries), timeout=2)
    await adapter.close()

    assert set(results) == {"tps", "latency", "slow"}
    assert results["tps"].available and results["latency"].available
    assert scalar_from_prometheus(results["tps"].value) == 412.5
    assert not results["slow"].available
    assert "timed out" in results["slow"].error


@pytest.mark.asyncio
async def test_failures_become_unavailable_markers():
    adapter = _adapter()
    results = await adapter.fetch(
        [
            MetricQueryConfig(name="broken", expr="broken"),
            MetricQueryConfig(name="bad", expr="bad"),
            MetricQueryConfig(name="nowhere", expr="x", backend="nonexistent"),
        ]
    )
    await adapter.close()

    assert results["broken"].error == "HTTP 500"
    assert "parse error" in results["bad"].error
    assert not results["nowhere"].available
    assert all(not r.available for r in results.values())


@pytest.mark.asyncio
async def test_connection_error_is_captured():
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    backend = PrometheusBackend("http://prometheus:9090", transport=httpx.MockTransport(refuse))
    adapter = MetricSourceAdapter({"prometheus": backend})
    results = await adapter.fetch([MetricQueryConfig(name="tps", expr="tps")])
    await adapter.close()

    assert not results["tps"].available
    assert "ConnectError" in results["tps"].error


@pytest.mark.asyncio
async def test_monitoring_service_backend_returns_document():
    def handler(request):
        assert request.url.path == "/api/metrics"
        return httpx.Response(200, json={"nodes": 6, "status": "ok"})

    adapter = MetricSourceAdapter.from_settings(SourcesConfig(), transport=httpx.MockTransport(handler))
    assert isinstance(adapter.backends["monitoring_service"], MonitoringServiceBackend)

    results = await adapter.fetch([MetricQueryConfig(name="svc", backend="monitoring_service")])
    await adapter.close()
    assert results["svc"].value == {"nodes": 6, "status": "ok"}


@pytest.mark.asyncio
async def test_query_range_hits_range_endpoint():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["step"] = request.url.params.get("step")
        return httpx.Response(
            200,
            json={
                "status": "success",
                "data": {"resultType": "matrix", "result": [{"metric": {}, "values": [[1, "1"], [2, "7"]]}]},
            },
        )

    backend = PrometheusBackend("http://prometheus:9090", transport=httpx.MockTransport(handler))
    data = await backend.query_range("up", start=0, end=60, step="30s")
    await backend.close()

    assert seen == {"path": "/api/v1/query_range", "step": "30s"}
    assert scalar_from_prometheus(data) == 7.0


def test_scalar_reduction():
    assert scalar_from_prometheus({"resultType": "scalar", "result": [1, "3.5"]}) == 3.5
    assert scalar_from_prometheus({"resultType": "vector", "result": []}) is None
    assert scalar_from_prometheus(None) is None
    vector = {
        "resultType": "vector",
        "result": [{"metric": {}, "value": [1, "2"]}, {"metric": {}, "value": [1, "3"]}],
    }
    assert scalar_from_prometheus(vector) == 5.0


def test_split_by_label():
    data = {
        "resultType": "vector",
        "result": [
            {"metric": {"region": "europe"}, "value": [1, "120"]},
            {"metric": {"region": "americas"}, "value": [1, "200"]},
            {"metric": {}, "value": [1, "9"]},
        ],
    }
    assert split_by_label(data, "region") == {"europe": 120.0, "americas": 200.0}
    assert split_by_label("garbage", "region") == {}


def test_non_finite_samples_are_ignored():
    nan = {"resultType": "vector", "result": [{"metric": {}, "value": [1, "NaN"]}]}
    assert scalar_from_prometheus(nan) is None
    assert scalar_from_prometheus({"resultType": "scalar", "result": [1, "+Inf"]}) is None
    mixed = {
        "resultType": "vector",
        "result": [
            {"metric": {"region": "europe"}, "value": [1, "-Inf"]},
            {"metric": {"region": "americas"}, "value": [1, "3"]},
        ],
    }
    assert scalar_from_prometheus(mixed) == 3.0
    assert split_by_label(mixed, "region") == {"americas": 3.0}


def test_series_points_sums_per_timestamp():
    data = {
        "resultType": "matrix",
        "result": [
            {"metric": {"region": "europe"}, "values": [[20, "2"], [10, "1"]]},
            {"metric": {"region": "americas"}, "values": [[10, "4"], [20, "NaN"]]},
        ],
    }
    assert series_points(data) == [{"timestamp": 10.0, "value": 5.0}, {"timestamp": 20.0, "value": 2.0}]
    assert series_points(None) == []


@pytest.mark.asyncio
async def test_fetch_range_is_guarded():
    def handler(request):
        if request.url.path == "/api/v1/query_range":
            return httpx.Response(
                200,
                json={
                    "status": "success",
                    "data": {"resultType": "matrix", "result": [{"metric": {}, "values": [[60, "9"]]}]},
                },
            )
        return httpx.Response(500)

    transport = httpx.MockTransport(handler)
    adapter = MetricSourceAdapter(
        {
            "prometheus": PrometheusBackend("http://prometheus:9090", transport=transport),
            "monitoring_service": MonitoringServiceBackend("http://monitor:3000", transport=transport),
        }
    )

    tps = await adapter.fetch_range(MetricQueryConfig(name="tps", expr="tps"), start=0, end=60)
    service = await adapter.fetch_range(MetricQueryConfig(name="svc", backend="monitoring_service"))
    missing = await adapter.fetch_range(MetricQueryConfig(name="x", backend="nowhere"))
    await adapter.close()

    assert tps.available
    assert series_points(tps.value) == [{"timestamp": 60.0, "value": 9.0}]
    assert not service.available
    assert "range queries are not supported" in service.error
    assert not missing.available
