import pytest
from hypothesis import given
from hypothesis import strategies as st

from geobench.benchmark.trends import classify_trend, incremental_mean, mean
from geobench.core.constants import Trend


def test_fewer_than_two_windows_is_stable():
    assert classify_trend([1, 2, 3, 4, 5, 100, 200, 300, 400]) == Trend.STABLE


def test_higher_is_better():
    values = [100] * 5 + [120] * 5
    assert classify_trend(values) == Trend.IMPROVING
    assert classify_trend(list(reversed(values))) == Trend.DECLINING


def test_lower_is_better():
    values = [500] * 5 + [400] * 5
    assert classify_trend(values, higher_is_better=False) == Trend.IMPROVING
    assert classify_trend(list(reversed(values)), higher_is_better=False) == Trend.DECLINING


def test_small_moves_are_stable():
    values = [100] * 5 + [104] * 5
    assert classify_trend(values) == Trend.STABLE


def test_only_the_last_two_windows_count():
    values = [1] * 10 + [100] * 10
    assert classify_trend(values) == Trend.STABLE


def test_mean_of_nothing_is_zero():
    assert mean([]) == 0.0


@given(st.lists(st.floats(min_value=-1e6, max_value=1e6, allow_nan=False), min_size=1, max_size=200))
def test_incremental_mean_matches_arithmetic_mean(values):
    avg, count = 0.0, 0
    for v in values:
        avg, count = incremental_mean(avg, count, v)

    assert count == len(values)
    assert avg == pytest.approx(sum(values) / len(values), rel=1e-6, abs=1e-3)
