from __future__ import annotations

import math
from datetime import date

import numpy as np
import pytest

from stratcore.backtest import metrics
from stratcore.backtest.metrics import UNBOUNDED, MonthlyReturn


def test_constant_curve_has_zero_sharpe_and_drawdown() -> None:
    curve = [100_000.0] * 10
    rets = metrics.bar_returns(curve)
    assert metrics.sharpe_ratio(rets) == 0.0
    assert metrics.max_drawdown(curve) == 0.0


def test_sharpe_matches_sample_std_annualized() -> None:
    r = [0.01, -0.01, 0.02, 0.005]
    arr = np.array(r)
    expected = (arr.mean() - 0.02 / 252) / arr.std(ddof=1) * math.sqrt(252)
    assert metrics.sharpe_ratio(r) == pytest.approx(expected)
    assert metrics.sharpe_ratio(r, risk_free_rate=0.0) == pytest.approx(arr.mean() / arr.std(ddof=1) * math.sqrt(252))


def test_sharpe_needs_two_returns() -> None:
    assert metrics.sharpe_ratio([]) == 0.0
    assert metrics.sharpe_ratio([0.05]) == 0.0


def test_max_drawdown_uses_running_peak() -> None:
    assert metrics.max_drawdown([100, 120, 90, 130, 117]) == pytest.approx(0.25)
    assert metrics.max_drawdown([]) == 0.0


def test_profit_factor_edges() -> None:
    assert metrics.profit_factor([]) == 0.0
    assert metrics.profit_factor([0.0]) == 0.0
    assert metrics.profit_factor([10.0, 5.0]) == UNBOUNDED
    assert metrics.profit_factor([10.0, -5.0]) == pytest.approx(2.0)


def test_win_rate() -> None:
    assert metrics.win_rate([]) == 0.0
    assert metrics.win_rate([10.0, -5.0, 3.0, 0.0]) == pytest.approx(0.5)


def test_averages() -> None:
    pnls = [10.0, -4.0, 6.0, -2.0]
    assert metrics.average_trade(pnls) == pytest.approx(2.5)
    assert metrics.average_win(pnls) == pytest.approx(8.0)
    assert metrics.average_loss(pnls) == pytest.approx(-3.0)
    assert metrics.average_win([]) == 0.0


def test_streaks_single_scan() -> None:
    s = metrics.streaks([1, 2, -1, -2, -3, 4, 0, 5])
    assert s.wins == 2
    assert s.losses == 3


def test_monthly_returns_first_and_last_observation() -> None:
    points = [
        (date(2024, 1, 30), 100.0),
        (date(2024, 1, 31), 105.0),
        (date(2024, 2, 1), 100.0),
        (date(2024, 2, 29), 110.0),
        (date(2024, 3, 1), 110.0),
    ]
    assert metrics.monthly_returns(points) == [
        MonthlyReturn(month="2024-01", ret=pytest.approx(0.05)),
        MonthlyReturn(month="2024-02", ret=pytest.approx(0.10)),
        MonthlyReturn(month="2024-03", ret=0.0),
    ]


def test_sortino_and_calmar_unbounded_cases() -> None:
    assert metrics.sortino_ratio([0.01, 0.02]) == UNBOUNDED
    assert metrics.sortino_ratio([]) == 0.0
    assert metrics.sortino_ratio([0.01, -0.02, 0.03]) < UNBOUNDED
    assert metrics.calmar_ratio(0.2, 0.0) == UNBOUNDED
    assert metrics.calmar_ratio(-0.1, 0.0) == 0.0
    assert metrics.calmar_ratio(0.2, 0.1) == pytest.approx(2.0)


def test_returns_and_annualization() -> None:
    assert metrics.bar_returns([100.0, 110.0, 99.0]) == [pytest.approx(0.1), pytest.approx(-0.1)]
    assert metrics.bar_returns([100.0]) == []
    assert metrics.total_return(100_000, 110_000) == pytest.approx(0.1)
    assert metrics.annualized_return(0.1, 365) == pytest.approx(0.1)
    assert metrics.annualized_return(0.1, 0) == 0.0
    assert metrics.annualized_return(-1.5, 30) == -1.0
