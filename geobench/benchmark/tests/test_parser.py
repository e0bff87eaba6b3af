from geobench.benchmark.models import BenchmarkRun
from geobench.benchmark.parser import apply_signals, parse_chunk, round_progress


def test_parse_round_throughput_and_latency():
    signals = parse_chunk("Round 3 finished: 452.5 TPS, avg latency 318 ms")
    assert signals.round == 3
    assert signals.tps == 452.5
    assert signals.latency == 318.0


def test_latency_needs_a_latency_or_avg_keyword():
    assert parse_chunk("waited 50 ms for peers").latency is None
    assert parse_chunk("Latency: 12.5ms").latency == 12.5


def test_plain_output_has_no_signals():
    assert parse_chunk("Installing dependencies...").empty


def test_round_progress_is_capped():
    assert round_progress(0, 7) == 0.0
    assert round_progress(7, 7) == 100.0
    assert round_progress(9, 7) == 100.0
    assert round_progress(3, 0) == 0.0


def test_progress_never_decreases():
    run = BenchmarkRun()
    assert apply_signals(run, parse_chunk("Round 5"), total_rounds=10) is True
    assert run.progress == 50.0

    assert apply_signals(run, parse_chunk("Round 2"), total_rounds=10) is False
    assert run.progress == 50.0
    assert run.round == 5


def test_latency_merges_into_latest_sample():
    run = BenchmarkRun()
    apply_signals(run, parse_chunk("throughput 300 tps"), total_rounds=7, timestamp=1.0)
    apply_signals(run, parse_chunk("avg latency 420 ms"), total_rounds=7, timestamp=2.0)
    apply_signals(run, parse_chunk("avg latency 390 ms"), total_rounds=7, timestamp=3.0)

    series = run.results.time_series
    assert len(series) == 2
    assert (series[0].tps, series[0].latency) == (300.0, 420.0)
    assert (series[1].tps, series[1].latency, series[1].timestamp) == (None, 390.0, 3.0)


def test_same_chunk_tps_and_latency_share_a_sample():
    run = BenchmarkRun()
    apply_signals(run, parse_chunk("Round 1: 250 tps, avg 600 ms"), total_rounds=7)
    assert len(run.results.time_series) == 1
    assert run.results.time_series[0].latency == 600.0
