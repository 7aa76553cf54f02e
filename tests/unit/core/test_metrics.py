import math

import pytest

from leaderstream.core import metrics


class TestMaxDrawdown:
    def test_largest_drop_from_running_peak(self) -> None:
        assert metrics.max_drawdown([100, 80, 120, 60]) == pytest.approx(50.0)

    def test_short_series_is_zero(self) -> None:
        assert metrics.max_drawdown([]) == 0.0
        assert metrics.max_drawdown([1]) == 0.0

    def test_monotonic_rise_is_zero(self) -> None:
        assert metrics.max_drawdown([1, 2, 3, 4]) == 0.0

    def test_zero_peak_has_no_drawdown(self) -> None:
        assert metrics.max_drawdown([0, -5, -10]) == 0.0


class TestWinRate:
    def test_share_of_up_steps(self) -> None:
        assert metrics.win_rate([1, 2, 1, 3]) == pytest.approx(200 / 3)

    def test_flat_steps_are_not_wins(self) -> None:
        assert metrics.win_rate([5, 5, 5]) == 0.0

    def test_short_series_is_zero(self) -> None:
        assert metrics.win_rate([]) == 0.0
        assert metrics.win_rate([7]) == 0.0


class TestRiskRatio:
    def test_mean_over_population_std_scaled(self) -> None:
        # returns 0.1, 0.2 -> mean 0.15, population std 0.05
        assert metrics.risk_ratio([100, 110, 132]) == pytest.approx(3 * math.sqrt(2))

    def test_constant_returns_have_zero_ratio(self) -> None:
        assert metrics.risk_ratio([100, 110, 121]) == 0.0

    def test_single_return_is_zero(self) -> None:
        assert metrics.risk_ratio([100, 110]) == 0.0

    def test_zero_base_steps_are_skipped(self) -> None:
        # 0 -> 10 has no return; remaining 10 -> 11 -> 13.2 are 0.1, 0.2
        assert metrics.risk_ratio([0, 10, 11, 13.2]) == pytest.approx(3 * math.sqrt(2))

    def test_empty_is_zero(self) -> None:
        assert metrics.risk_ratio([]) == 0.0


class TestReturnStats:
    def test_population_variance(self) -> None:
        stats = metrics.ReturnStats()
        for r in (1.0, 2.0, 3.0, 4.0):
            stats.update(r)
        assert stats.n == 4
        assert stats.mean == pytest.approx(2.5)
        assert stats.variance == pytest.approx(1.25)

    def test_empty(self) -> None:
        stats = metrics.ReturnStats()
        assert stats.variance == 0.0
        assert stats.std == 0.0


class TestChange:
    def test_net_change(self) -> None:
        assert metrics.net_change([100, 110, 125]) == 25
        assert metrics.net_change([]) == 0.0

    def test_pnl_pct(self) -> None:
        assert metrics.pnl_pct([100, 125]) == pytest.approx(25.0)
        assert metrics.pnl_pct([-50, -25]) == pytest.approx(50.0)

    def test_pnl_pct_from_zero_base(self) -> None:
        assert metrics.pnl_pct([0, 5]) == pytest.approx(500.0)
        assert metrics.pnl_pct([]) == 0.0


def test_derive_bundles_all_scalars():
    derived = metrics.derive([100, 80, 120, 60], risk_per_trade=0.02)
    assert derived.max_drawdown == pytest.approx(50.0)
    assert derived.win_rate == pytest.approx(100 / 3)
    assert derived.sharpe == metrics.risk_ratio([100, 80, 120, 60])
    assert derived.risk_per_trade == 0.02
