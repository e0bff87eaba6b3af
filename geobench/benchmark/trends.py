# geobench/benchmark/trends.py
"""Running means and trend classification."""

from typing import Sequence

from geobench.core.constants import Trend


def incremental_mean(avg: float, count: int, value: float) -> tuple[float, int]:
    """
    Fold one value into a running mean.

    Args:
        avg: Current mean over `count` values
        count: Number of values folded in so far
        value: New value

    Returns:
        (new mean, new count)
    """
    new_count = count + 1
    return (avg * count + value) / new_count, new_count


def mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def classify_trend(
    values: Sequence[float],
    higher_is_better: bool = True,
    window: int = 5,
    threshold: float = 0.05,
) -> Trend:
    """
    Compare the mean of the last `window` values with the `window` before.

    A move beyond `threshold` (relative) in the favorable direction is
    improving, in the unfavorable direction declining. Fewer than
    2 * window values is always stable.
    """
    if window <= 0 or len(values) < 2 * window:
        return Trend.STABLE

    recent = mean(values[-window:])
    previous = mean(values[-2 * window : -window])

    if recent > previous * (1 + threshold):
        rose, fell = True, False
    elif recent < previous * (1 - threshold):
        rose, fell = False, True
    else:
        return Trend.STABLE

    if higher_is_better:
        return Trend.IMPROVING if rose else Trend.DECLINING
    return Trend.IMPROVING if fell else Trend.DECLINING
