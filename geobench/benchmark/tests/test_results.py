import pytest

from geobench.benchmark.models import BenchmarkRun, TimeSeriesSample
from geobench.benchmark.results import compare_to_baseline, empty_overall, finalize_results
from geobench.core.constants import RunStatus
from geobench.metrics.estimation import MetricEstimator


def _run(samples=(), **config):
    run = BenchmarkRun(config=config, status=RunStatus.COMPLETED)
    run.results.time_series = [TimeSeriesSample(timestamp=float(i), tps=t, latency=l) for i, (t, l) in enumerate(samples)]
    return run


def test_measured_results():
    run = _run([(400.0, 500.0), (600.0, None), (None, 300.0)], transactions=1000, regions=["americas", "europe"])
    results = finalize_results(run)

    overall = results.overall
    assert results.estimated is False
    assert overall["avg_tps"] == 500.0
    assert overall["peak_tps"] == 600.0
    assert overall["avg_latency"] == 400.0
    assert (overall["min_latency"], overall["max_latency"]) == (300.0, 500.0)
    assert overall["total_transactions"] == 1000
    assert set(results.by_region) == {"americas", "europe"}
    assert sum(r["avg_tps"] for r in results.by_region.values()) == pytest.approx(500.0)
    assert len(results.time_series) == 3


def test_transaction_mix_split():
    run = _run([(100.0, 100.0)], transactions=1000)
    by_type = finalize_results(run).by_transaction_type
    assert by_type["createAsset"]["transactions"] == 400
    assert by_type["geoQuery"]["transactions"] == 100


def test_no_samples_without_estimator_is_zero_and_flagged():
    results = finalize_results(_run())
    assert results.estimated is True
    assert results.overall["avg_tps"] == 0.0
    assert results.overall["total_transactions"] == 0


def test_no_samples_with_estimator_is_synthesized_and_flagged():
    results = finalize_results(_run(), MetricEstimator(seed=1))
    assert results.estimated is True
    assert 520 <= results.overall["avg_tps"] < 620
    assert results.consensus and results.resources


def test_baseline_comparison():
    overall = empty_overall()
    overall.update(avg_tps=480.0, avg_latency=425.0, error_rate=0.025)
    improvement = compare_to_baseline(overall)["improvement"]
    assert improvement == {"tps_increase": 50.0, "latency_reduction": 50.0, "error_reduction": 50.0}
