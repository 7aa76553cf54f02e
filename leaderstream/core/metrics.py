"""
Derived metrics over a participant's value series.

Side-effect free: every function is a pure calculator over a sequence of
floats. The engine only falls back to these when the feed does not report an
authoritative value itself.

- max_drawdown: largest relative drop from a running peak, in percent
- win_rate: share of up-steps, in percent
- risk_ratio: Sharpe-like proxy, mean/stddev of step returns scaled by sqrt(n).
  Not annualized and not risk-free adjusted.
"""

from __future__ import annotations

from math import sqrt
from typing import Optional, Sequence

from leaderstream.types.types import DerivedMetrics


class ReturnStats:
    """
    Key API: update(r) per step return
    Internals: Welford's algorithm; population variance (divides by n)
    """

    def __init__(self) -> None:
        self.n: int = 0
        self.mean: float = 0.0
        self.M2: float = 0.0

    def update(self, r: float) -> None:
        self.n += 1
        delta = r - self.mean
        self.mean += delta / self.n
        delta2 = r - self.mean
        self.M2 += delta * delta2

    @property
    def variance(self) -> float:
        if self.n == 0:
            return 0.0
        return self.M2 / self.n

    @property
    def std(self) -> float:
        return sqrt(max(0.0, self.variance))


def max_drawdown(series: Sequence[float]) -> float:
    if len(series) < 2:
        return 0.0
    peak = series[0]
    max_dd = 0.0
    for v in series:
        if v > peak:
            peak = v
        dd = 0.0 if peak == 0 else (peak - v) / peak
        if dd > max_dd:
            max_dd = dd
    return max_dd * 100


def win_rate(series: Sequence[float]) -> float:
    if len(series) < 2:
        return 0.0
    wins = sum(1 for prev, cur in zip(series, series[1:]) if cur > prev)
    return wins / (len(series) - 1) * 100


def risk_ratio(series: Sequence[float]) -> float:
    stats = ReturnStats()
    for prev, cur in zip(series, series[1:]):
        # zero base has no defined return
        if prev == 0:
            continue
        stats.update((cur - prev) / abs(prev))
    if stats.n == 0 or stats.std == 0:
        return 0.0
    return stats.mean / stats.std * sqrt(stats.n)


def net_change(series: Sequence[float]) -> float:
    if not series:
        return 0.0
    return series[-1] - series[0]


def pnl_pct(series: Sequence[float]) -> float:
    """Net change relative to the first value, in percent; raw change x100 from a zero base."""
    change = net_change(series)
    if not series or series[0] == 0:
        return change * 100
    return change / abs(series[0]) * 100


def derive(series: Sequence[float], risk_per_trade: Optional[float] = None) -> DerivedMetrics:
    """All calculator scalars for one series."""
    return DerivedMetrics(
        sharpe=risk_ratio(series),
        win_rate=win_rate(series),
        max_drawdown=max_drawdown(series),
        risk_per_trade=risk_per_trade,
    )
