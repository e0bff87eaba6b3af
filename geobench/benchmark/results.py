# geobench/benchmark/results.py
"""
Result finalization.

Turns the samples collected from a run's output (plus its config) into the
nested result structure: overall, per-region and per-transaction-type
aggregates and a comparison against the non geo-aware baseline. A run
without any parsed sample is marked estimated; its overall block is
synthesized when an estimator is supplied and zero otherwise.
"""

import math
from typing import Any, Optional

from geobench.benchmark.models import BenchmarkResults, BenchmarkRun
from geobench.benchmark.trends import mean
from geobench.core.constants import (
    BASELINE_ERROR_RATE,
    BASELINE_LATENCY_MS,
    BASELINE_TPS,
    DEFAULT_REGIONS,
    REGION_TRAFFIC_SHARE,
    TRANSACTION_MIX,
)
from geobench.metrics.estimation import MetricEstimator


def empty_overall(duration: float = 0.0) -> dict[str, Any]:
    return {
        "total_transactions": 0,
        "duration": duration,
        "avg_tps": 0.0,
        "peak_tps": 0.0,
        "avg_latency": 0.0,
        "min_latency": 0.0,
        "max_latency": 0.0,
        "error_rate": 0.0,
        "throughput_mbps": 0.0,
        "geo_optimization_rate": 0.0,
    }


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def coerce_overall(raw: Any, duration: float = 0.0) -> dict[str, Any]:
    """
    Overall block from untrusted input.

    Known fields take the supplied value when it is a finite number and
    stay zero otherwise; unknown fields are dropped.
    """
    overall = empty_overall(duration)
    if not isinstance(raw, dict):
        return overall
    for key, default in overall.items():
        value = raw.get(key)
        if _is_number(value):
            overall[key] = type(default)(value)
    return overall


def config_regions(config: dict[str, Any]) -> list[str]:
    """Regions named by a run config, or the defaults when missing or malformed."""
    regions = config.get("regions")
    if isinstance(regions, (list, tuple)) and regions and all(isinstance(r, str) for r in regions):
        return list(regions)
    return list(DEFAULT_REGIONS)


def config_mix(config: dict[str, Any]) -> dict[str, float]:
    """Transaction mix of a run config, or the default mix when missing or malformed."""
    mix = config.get("transaction_mix")
    if isinstance(mix, dict) and mix and all(_is_number(v) and v >= 0 for v in mix.values()):
        return {str(name): float(share) for name, share in mix.items()}
    return dict(TRANSACTION_MIX)


def measured_overall(run: BenchmarkRun) -> dict[str, Any]:
    """Aggregate the samples parsed from the run's output."""
    tps = [s.tps for s in run.results.time_series if s.tps is not None]
    latency = [s.latency for s in run.results.time_series if s.latency is not None]
    duration = run.duration

    overall = empty_overall(duration)
    overall.update(
        avg_tps=mean(tps),
        peak_tps=max(tps, default=0.0),
        avg_latency=mean(latency),
        min_latency=min(latency, default=0.0),
        max_latency=max(latency, default=0.0),
    )

    configured = run.config.get("transactions")
    if isinstance(configured, (int, float)) and configured > 0:
        overall["total_transactions"] = int(configured)
    else:
        overall["total_transactions"] = int(overall["avg_tps"] * duration)

    for key in ("error_rate", "geo_optimization_rate", "throughput_mbps"):
        value = run.config.get(key)
        if _is_number(value):
            overall[key] = float(value)
    return overall


def _region_shares(regions: list[str]) -> dict[str, float]:
    raw = {r: REGION_TRAFFIC_SHARE.get(r, 1.0 / len(regions)) for r in regions}
    total = sum(raw.values()) or 1.0
    return {r: share / total for r, share in raw.items()}


def derive_regions(overall: dict[str, Any], regions: list[str]) -> dict[str, dict[str, Any]]:
    """Split overall totals across regions by their traffic share."""
    if not regions:
        return {}

    by_region: dict[str, dict[str, Any]] = {}
    for region, share in _region_shares(regions).items():
        by_region[region] = {
            "transactions": int(overall["total_transactions"] * share),
            "avg_tps": overall["avg_tps"] * share,
            "peak_tps": overall["peak_tps"] * share,
            "avg_latency": overall["avg_latency"],
            "error_rate": overall["error_rate"],
            "optimization": overall["geo_optimization_rate"],
            "share": round(share * 100, 1),
        }
    return by_region


def derive_transaction_types(overall: dict[str, Any], mix: dict[str, float]) -> dict[str, dict[str, Any]]:
    """Split overall totals across transaction types by their share of the mix (percent)."""
    total_share = sum(mix.values()) or 1.0
    success_rate = (1.0 - overall["error_rate"]) * 100

    by_type: dict[str, dict[str, Any]] = {}
    for name, share in mix.items():
        fraction = share / total_share
        by_type[name] = {
            "transactions": int(overall["total_transactions"] * fraction),
            "avg_tps": overall["avg_tps"] * fraction,
            "avg_latency": overall["avg_latency"],
            "success_rate": success_rate,
            "share": share,
        }
    return by_type


def compare_to_baseline(overall: dict[str, Any]) -> dict[str, Any]:
    """Relative change against the baseline run, in percent."""

    def _pct(value: float) -> float:
        return round(value * 100, 1)

    latency = overall["avg_latency"]
    return {
        "baseline": {
            "avg_tps": BASELINE_TPS,
            "avg_latency": BASELINE_LATENCY_MS,
            "error_rate": BASELINE_ERROR_RATE,
        },
        "improvement": {
            "tps_increase": _pct((overall["avg_tps"] - BASELINE_TPS) / BASELINE_TPS),
            "latency_reduction": _pct((BASELINE_LATENCY_MS - latency) / BASELINE_LATENCY_MS) if latency else 0.0,
            "error_reduction": _pct((BASELINE_ERROR_RATE - overall["error_rate"]) / BASELINE_ERROR_RATE),
        },
    }


def finalize_results(run: BenchmarkRun, estimator: Optional[MetricEstimator] = None) -> BenchmarkResults:
    """
    Build the final result structure for a terminal run.

    Parsed samples are kept as they are. Nothing is discarded for failed
    runs; their partial samples are aggregated the same way.
    """
    series = list(run.results.time_series)
    results = BenchmarkResults(time_series=series)

    if any(s.tps is not None or s.latency is not None for s in series):
        overall = measured_overall(run)
    else:
        results.estimated = True
        overall = estimator.run_overall(run.duration) if estimator else empty_overall(run.duration)
        if estimator:
            results.consensus = estimator.run_consensus()
            results.resources = estimator.run_resources()

    results.overall = overall
    results.by_region = derive_regions(overall, config_regions(run.config))
    results.by_transaction_type = derive_transaction_types(overall, config_mix(run.config))
    results.comparison = compare_to_baseline(overall)
    return results
