# geobench/benchmark/parser.py
"""
Benchmark output parsing.

Caliper reports progress as "Round <n>" lines and performance as
"<x> tps" / "<y> ms" figures. Each output chunk is scanned independently
for both signals.
"""

import re
import time
from dataclasses import dataclass
from typing import Optional

from geobench.benchmark.models import BenchmarkRun, TimeSeriesSample

_ROUND_RE = re.compile(r"Round\s*(\d+)")
_TPS_RE = re.compile(r"(\d+\.?\d*)\s*tps", re.IGNORECASE)
_LATENCY_RE = re.compile(r"(\d+\.?\d*)\s*ms", re.IGNORECASE)


@dataclass
class OutputSignals:
    """Signals found in one chunk."""

    round: Optional[int] = None
    tps: Optional[float] = None
    latency: Optional[float] = None

    @property
    def empty(self) -> bool:
        return self.round is None and self.tps is None and self.latency is None


def parse_chunk(chunk: str) -> OutputSignals:
    """Extract round, throughput and latency markers from one chunk."""
    signals = OutputSignals()

    if "Round" in chunk:
        match = _ROUND_RE.search(chunk)
        if match:
            signals.round = int(match.group(1))

    if "tps" in chunk.lower():
        match = _TPS_RE.search(chunk)
        if match:
            signals.tps = float(match.group(1))

    if "latency" in chunk.lower() or "avg" in chunk.lower():
        match = _LATENCY_RE.search(chunk)
        if match:
            signals.latency = float(match.group(1))

    return signals


def round_progress(round_number: int, total_rounds: int) -> float:
    """Percentage complete after `round_number` of `total_rounds`."""
    if total_rounds <= 0:
        return 0.0
    return min(round_number / total_rounds * 100.0, 100.0)


def apply_signals(
    run: BenchmarkRun,
    signals: OutputSignals,
    total_rounds: int,
    timestamp: Optional[float] = None,
) -> bool:
    """
    Fold one chunk's signals into the run.

    Progress only ever moves forward. A throughput marker appends a sample;
    a latency marker fills the latest sample's missing latency (so tps and
    latency from the same chunk end up in one entry) or appends a
    latency-only sample.

    Returns:
        True if progress changed
    """
    now = timestamp if timestamp is not None else time.time()
    progressed = False

    if signals.round is not None:
        run.round = max(run.round, signals.round)
        progressed = run.advance_progress(round_progress(signals.round, total_rounds))

    series = run.results.time_series
    if signals.tps is not None:
        series.append(TimeSeriesSample(timestamp=now, tps=signals.tps))

    if signals.latency is not None:
        if series and series[-1].latency is None:
            series[-1].latency = signals.latency
        else:
            series.append(TimeSeriesSample(timestamp=now, latency=signals.latency))

    return progressed
