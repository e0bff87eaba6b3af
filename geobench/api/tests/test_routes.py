import sys
import time

import httpx
import pytest
from fastapi.testclient import TestClient

from geobench.api.server import create_app
from geobench.config.settings import Settings


def _backend(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/api/metrics":
        return httpx.Response(200, json={"status": "ok"})
    return httpx.Response(
        200, json={"status": "success", "data": {"resultType": "vector", "result": [{"metric": {}, "value": [1, "4"]}]}}
    )


def _settings(script="pass"):
    return Settings(
        benchmark={"command": [sys.executable, "-c", script], "workdir": None, "stop_timeout": 2.0},
        monitoring={"auto_start": False, "auto_start_on_connect": False},
    )


@pytest.fixture
def client():
    app = create_app(_settings("import time; time.sleep(1)"), transport=httpx.MockTransport(_backend))
    with TestClient(app) as c:
        yield c


def _wait_for_status(client, run_id, timeout=10.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        body = client.get(f"/api/v1/benchmarks/{run_id}").json()
        if body["status"] in ("completed", "failed"):
            return body
        time.sleep(0.05)
    raise AssertionError(f"run {run_id} did not finish")


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["components"]["benchmark"]["running"] is False
    assert body["components"]["websocket"]["total_connections"] == 0
    assert body["components"]["websocket"]["max_connections"] == 100
    assert "X-Runtime-ID" in response.headers


def test_second_start_conflicts(client):
    first = client.post("/api/v1/benchmarks", json={"transactions": 100, "workload": "mixed"})
    assert first.status_code == 200
    assert first.json()["success"] is True
    run_id = first.json()["id"]

    second = client.post("/api/v1/benchmarks", json={})
    assert second.status_code == 409
    assert second.json()["error"] == "BENCHMARK_ALREADY_RUNNING"

    status = client.get("/api/v1/status").json()
    assert status["benchmark"]["running"] is True
    assert status["benchmark"]["current_id"] == run_id

    record = _wait_for_status(client, run_id)
    assert record["status"] == "completed"
    assert record["config"]["transactions"] == 100
    assert record["workload"] == "mixed"


def test_start_without_body(client):
    response = client.post("/api/v1/benchmarks")
    assert response.status_code == 200
    _wait_for_status(client, response.json()["id"])


def test_invalid_start_body_is_rejected(client):
    response = client.post("/api/v1/benchmarks", json={"workers": 0})
    assert response.status_code == 422

    response = client.post("/api/v1/benchmarks", json={"transaction_mix": ["createAsset", "queryAsset"]})
    assert response.status_code == 422
    assert client.get("/health").json()["components"]["benchmark"]["running"] is False


def test_unknown_run_is_404(client):
    response = client.get("/api/v1/benchmarks/benchmark_0_missing")
    assert response.status_code == 404
    assert response.json()["error"] == "BENCHMARK_NOT_FOUND"


def test_cancel_without_run_is_409(client):
    response = client.post("/api/v1/benchmarks/cancel")
    assert response.status_code == 409
    assert response.json()["error"] == "BENCHMARK_NOT_RUNNING"


def test_cancel_running_benchmark():
    app = create_app(_settings("import time; time.sleep(30)"), transport=httpx.MockTransport(_backend))
    with TestClient(app) as client:
        run_id = client.post("/api/v1/benchmarks", json={}).json()["id"]
        deadline = time.monotonic() + 5
        while client.get(f"/api/v1/benchmarks/{run_id}").json()["status"] != "running":
            assert time.monotonic() < deadline
            time.sleep(0.02)

        response = client.post("/api/v1/benchmarks/cancel")
        assert response.status_code == 200
        assert response.json()["id"] == run_id

        record = _wait_for_status(client, run_id)
        assert record["status"] == "failed"
        assert record["error"] == "Cancelled by request"


def test_import_and_history(client):
    imported = client.post(
        "/api/v1/benchmarks/import",
        json={
            "config": {"region": "europe", "workload": "geo"},
            "results": {"overall": {"avg_tps": 450.0, "avg_latency": 500.0}},
        },
    )
    assert imported.status_code == 200
    run_id = imported.json()["id"]

    history = client.get("/api/v1/benchmarks/history", params={"region": "europe", "time": "24h"}).json()
    assert [r["id"] for r in history["history"]] == [run_id]
    assert [r["id"] for r in history["recent"]] == [run_id]
    assert history["summary"]["total_runs"] == 1
    assert history["summary"]["best_performance"]["avg_tps"] == 450.0

    other = client.get("/api/v1/benchmarks/history", params={"region": "americas"}).json()
    assert other["history"] == []

    details = client.get(f"/api/v1/benchmarks/{run_id}").json()
    assert details["status"] == "completed"
    assert details["results"]["overall"]["avg_tps"] == 450.0


def test_import_rejects_reversed_times(client):
    response = client.post(
        "/api/v1/benchmarks/import",
        json={"start_time": "2024-05-02T10:00:00", "end_time": "2024-05-01T10:00:00", "results": {}},
    )
    assert response.status_code == 400
    assert response.json()["error"] == "API_VALIDATION_ERROR"
    assert response.json()["context"] == {"field": "end_time"}
    assert client.get("/api/v1/benchmarks/history").json()["history"] == []


def test_status_queries_sources(client):
    status = client.get("/api/v1/status").json()
    assert status["monitoring"] is False
    assert status["sources"]["active_nodes"]["available"] is True
    assert status["sources"]["monitoring_service"]["value"] == {"status": "ok"}
    assert "consensus" in status["performance"]


def test_monitoring_switch(client):
    assert client.post("/api/v1/monitoring/start").json()["success"] is True
    assert client.post("/api/v1/monitoring/start").json()["success"] is False
    assert client.get("/api/v1/status").json()["monitoring"] is True
    assert client.post("/api/v1/monitoring/stop").json()["success"] is True
    assert client.post("/api/v1/monitoring/stop").json()["success"] is False


def test_websocket_join_and_ping(client):
    with client.websocket_connect("/ws") as ws:
        assert ws.receive_json()["type"] == "connected"
        assert ws.receive_json()["type"] == "performance-update"
        status = ws.receive_json()
        assert status == {**status, "type": "monitoring-status", "data": {"is_monitoring": False}}

        ws.send_json({"type": "ping"})
        assert ws.receive_json()["type"] == "pong"


def test_metric_history_route(client):
    response = client.get("/api/v1/metrics/tps/history", params={"minutes": 10})
    assert response.status_code == 200
    assert response.json()["available"] is True

    missing = client.get("/api/v1/metrics/unknown/history")
    assert missing.status_code == 404
    assert missing.json()["error"] == "METRIC_NOT_FOUND"
