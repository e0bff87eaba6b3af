from datetime import datetime, timedelta

import pytest

from geobench.benchmark.history import HistoricalAggregator
from geobench.benchmark.models import BenchmarkRun
from geobench.core.constants import RunStatus


def _run(tps, latency=500.0, optimization=60.0, end=None, regions=None, status=RunStatus.COMPLETED):
    run = BenchmarkRun(status=status, end_time=end or datetime(2026, 3, 1, 12, 0))
    run.results.overall = {"avg_tps": tps, "avg_latency": latency, "geo_optimization_rate": optimization}
    run.results.by_region = {
        region: {"avg_tps": tps / 2, "avg_latency": latency, "optimization": optimization}
        for region in (regions or [])
    }
    run.results.comparison = {"improvement": {"tps_increase": 10.0, "latency_reduction": 20.0, "error_reduction": 30.0}}
    return run


def test_daily_average_is_incremental_mean():
    agg = HistoricalAggregator()
    agg.ingest(_run(400.0, latency=600.0))
    agg.ingest(_run(500.0, latency=400.0))
    agg.ingest(_run(600.0, latency=500.0, status=RunStatus.FAILED))

    day = agg.daily_average("2026-03-01")
    assert day.runs == 3
    assert day.avg_tps == pytest.approx(500.0)
    assert day.avg_latency == pytest.approx(500.0)


def test_days_are_capped_oldest_first():
    agg = HistoricalAggregator(max_days=30)
    start = datetime(2026, 1, 1, 12, 0)
    for i in range(31):
        agg.ingest(_run(100.0, end=start + timedelta(days=i)))

    days = [d["date"] for d in agg.daily_averages()]
    assert len(days) == 30
    assert days[0] == "2026-01-02"
    assert agg.daily_average("2026-01-01") is None


def test_region_trend_is_capped():
    agg = HistoricalAggregator(max_region_trend=20)
    for i in range(25):
        agg.ingest(_run(float(i), regions=["europe"]))

    europe = agg.region("europe")
    assert europe.runs == 25
    assert len(europe.trend) == 20
    assert europe.trend[0].tps == 2.5


def test_non_terminal_runs_are_ignored():
    agg = HistoricalAggregator()
    agg.ingest(_run(100.0, status=RunStatus.RUNNING))
    assert agg.run_summaries() == []


def test_summary_on_empty_history_does_not_raise():
    summary = HistoricalAggregator().summary()
    assert summary["total_runs"] == 0
    assert summary["best_performance"] is None
    assert summary["trends"] == {"tps": "stable", "latency": "stable", "optimization": "stable"}
    assert summary["average_improvement"] == {"tps": 0.0, "latency": 0.0, "error_rate": 0.0}


def test_summary_trends_and_best_run():
    agg = HistoricalAggregator()
    for tps, latency in [(300.0, 800.0)] * 5 + [(400.0, 600.0)] * 5:
        agg.ingest(_run(tps, latency=latency, regions=["americas"]))

    summary = agg.summary()
    assert summary["trends"]["tps"] == "improving"
    assert summary["trends"]["latency"] == "improving"
    assert summary["trends"]["optimization"] == "stable"
    assert summary["best_performance"]["avg_tps"] == 400.0
    assert summary["average_improvement"]["latency"] == 20.0

    analysis = agg.regional_analysis()
    assert analysis["americas"]["count"] == 10
    assert analysis["americas"]["trend"]["tps"] == "improving"


def test_missing_result_fields_count_as_zero():
    agg = HistoricalAggregator()
    run = BenchmarkRun(status=RunStatus.FAILED, end_time=datetime(2026, 3, 2))
    agg.ingest(run)
    assert agg.daily_average("2026-03-02").avg_tps == 0.0
    assert agg.export()["runs"][0]["status"] == "failed"
