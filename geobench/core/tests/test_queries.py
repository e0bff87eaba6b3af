from datetime import datetime, timedelta

import httpx
import pytest

from geobench.config.settings import Settings
from geobench.core.engine import TelemetryEngine
from geobench.core.exceptions import RunNotFoundError, UnknownMetricError


@pytest.fixture
def engine():
    engine = TelemetryEngine(Settings())
    orchestrator = engine.orchestrator
    now = datetime.now()
    for region, workload, age, tps in [
        ("europe", "mixed", timedelta(hours=2), 400.0),
        ("europe", "geo", timedelta(days=3), 420.0),
        ("americas", "mixed", timedelta(days=20), 380.0),
    ]:
        orchestrator.import_run(
            {
                "config": {"region": region, "workload": workload},
                "start_time": now - age - timedelta(minutes=10),
                "end_time": now - age,
                "results": {"overall": {"avg_tps": tps, "avg_latency": 500.0}},
            }
        )
    return engine


def test_history_filters(engine):
    queries = engine.queries
    assert len(queries.filter_runs()) == 3
    assert len(queries.filter_runs(region="europe")) == 2
    assert len(queries.filter_runs(region="all", workload="mixed")) == 2
    assert len(queries.filter_runs(time_window="24h")) == 1
    assert len(queries.filter_runs(time_window="7d")) == 2
    assert len(queries.filter_runs(time_window="30d")) == 3
    assert len(queries.filter_runs(time_window="all")) == 3
    assert len(queries.filter_runs(region="europe", time_window="24h")) == 1


def test_history_payload(engine):
    payload = engine.queries.history(workload="mixed")
    assert payload["summary"]["total_runs"] == 2
    assert payload["summary"]["best_performance"]["avg_tps"] == 420.0
    assert set(payload["regional"]) == {"americas", "europe", "asiaPacific"}
    assert len(payload["trends"]) == 3
    assert len(payload["historical"]["runs"]) == 3


def test_recent_is_capped():
    engine = TelemetryEngine(Settings(history={"recent_runs": 2}))
    for _ in range(4):
        engine.orchestrator.import_run({"results": {"overall": {"avg_tps": 1.0}}})
    payload = engine.queries.history()
    assert len(payload["recent"]) == 2
    assert len(payload["history"]) == 4


def test_benchmark_details(engine):
    run_id = engine.orchestrator.history()[0].id
    assert engine.queries.benchmark_details(run_id)["id"] == run_id
    with pytest.raises(RunNotFoundError):
        engine.queries.benchmark_details("benchmark_0_nope")


def test_snapshot_carries_benchmark_pointer(engine):
    snapshot = engine.snapshot()
    assert snapshot["benchmarks"] == {"running": False, "current": None}


@pytest.mark.asyncio
async def test_metric_history_uses_range_queries():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["query"] = request.url.params.get("query")
        return httpx.Response(
            200,
            json={
                "status": "success",
                "data": {"resultType": "matrix", "result": [{"metric": {}, "values": [[1, "3"], [2, "4"]]}]},
            },
        )

    engine = TelemetryEngine(Settings(), transport=httpx.MockTransport(handler))
    history = await engine.queries.metric_history("tps", minutes=5, step="30s")
    await engine.adapter.close()

    assert seen["path"] == "/api/v1/query_range"
    assert seen["query"] == "sum(rate(hyperledger_fabric_transactions_total[1m]))"
    assert history["available"] is True
    assert [p["value"] for p in history["points"]] == [3.0, 4.0]

    with pytest.raises(UnknownMetricError):
        await engine.queries.metric_history("no_such_metric")
