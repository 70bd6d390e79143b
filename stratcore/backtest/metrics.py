"""stratcore.backtest.metrics

Performance analytics for simulated runs.

Every function is pure and total:
- empty or degenerate input resolves to 0, never NaN
- ratios with a zero denominator and a positive numerator are ``UNBOUNDED``

Trade statistics take realized P&L values of closing legs only.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime

import numpy as np

UNBOUNDED = math.inf

TRADING_DAYS = 252
DEFAULT_RISK_FREE_RATE = 0.02


@dataclass(frozen=True, slots=True)
class MonthlyReturn:
    month: str  # YYYY-MM
    ret: float


@dataclass(frozen=True, slots=True)
class Streaks:
    wins: int
    losses: int


def _as_array(values: Iterable[float]) -> np.ndarray:
    return np.asarray(list(values), dtype=np.float64)


def bar_returns(equity: Sequence[float]) -> list[float]:
    """Fractional change between consecutive equity values.

    Length is ``len(equity) - 1``. A non-positive prior value yields 0.
    """

    e = _as_array(equity)
    if e.size < 2:
        return []
    prev = e[:-1]
    out = np.zeros(prev.shape, dtype=np.float64)
    np.divide(e[1:] - prev, prev, out=out, where=prev > 0)
    return [float(x) for x in out]


def sharpe_ratio(
    returns: Sequence[float],
    *,
    risk_free_rate: float = DEFAULT_RISK_FREE_RATE,
    periods_per_year: int = TRADING_DAYS,
) -> float:
    """Annualized Sharpe: mean excess return over sample std (ddof=1)."""

    r = _as_array(returns)
    if r.size < 2:
        return 0.0
    sd = float(np.std(r, ddof=1))
    if sd == 0.0 or not math.isfinite(sd):
        return 0.0
    excess = float(np.mean(r)) - (float(risk_free_rate) / periods_per_year)
    return (excess / sd) * math.sqrt(periods_per_year)


def sortino_ratio(
    returns: Sequence[float],
    *,
    target_return: float = 0.0,
    risk_free_rate: float = DEFAULT_RISK_FREE_RATE,
    periods_per_year: int = TRADING_DAYS,
) -> float:
    """Annualized Sortino using downside deviation below ``target_return``."""

    r = _as_array(returns)
    if r.size == 0:
        return 0.0
    downside = r[r < target_return]
    if downside.size == 0:
        return UNBOUNDED
    dd = float(np.sqrt(np.mean((downside - target_return) ** 2)))
    if dd == 0.0:
        return UNBOUNDED
    excess = float(np.mean(r)) - (float(risk_free_rate) / periods_per_year)
    return (excess / dd) * math.sqrt(periods_per_year)


def max_drawdown(equity: Sequence[float]) -> float:
    """Largest peak-to-trough decline as a fraction of the peak, in [0, 1]."""

    e = _as_array(equity)
    if e.size == 0:
        return 0.0
    peak = np.maximum.accumulate(e)
    dd = np.zeros(e.shape, dtype=np.float64)
    np.divide(peak - e, peak, out=dd, where=peak > 0)
    return float(np.clip(dd.max(), 0.0, 1.0))


def total_return(initial_capital: float, final_equity: float) -> float:
    if initial_capital <= 0:
        return 0.0
    return (float(final_equity) - float(initial_capital)) / float(initial_capital)


def annualized_return(total: float, days: float) -> float:
    """Compound ``total`` over ``days`` calendar days to a yearly rate."""

    if days <= 0:
        return 0.0
    growth = 1.0 + float(total)
    if growth <= 0:
        return -1.0
    return growth ** (365.0 / float(days)) - 1.0


def calmar_ratio(annual_return: float, drawdown: float) -> float:
    if drawdown == 0:
        return UNBOUNDED if annual_return > 0 else 0.0
    return float(annual_return) / float(drawdown)


def win_rate(pnls: Sequence[float]) -> float:
    p = _as_array(pnls)
    if p.size == 0:
        return 0.0
    return float(np.count_nonzero(p > 0)) / float(p.size)


def profit_factor(pnls: Sequence[float]) -> float:
    p = _as_array(pnls)
    gross_profit = float(p[p > 0].sum())
    gross_loss = float(-p[p < 0].sum())
    if gross_loss == 0.0:
        return UNBOUNDED if gross_profit > 0 else 0.0
    return gross_profit / gross_loss


def average_trade(pnls: Sequence[float]) -> float:
    p = _as_array(pnls)
    return float(p.mean()) if p.size else 0.0


def average_win(pnls: Sequence[float]) -> float:
    p = _as_array(pnls)
    wins = p[p > 0]
    return float(wins.mean()) if wins.size else 0.0


def average_loss(pnls: Sequence[float]) -> float:
    p = _as_array(pnls)
    losses = p[p < 0]
    return float(losses.mean()) if losses.size else 0.0


def streaks(pnls: Iterable[float]) -> Streaks:
    """Longest consecutive winning and losing runs. Flat trades break both."""

    best_w = best_l = cur_w = cur_l = 0
    for pnl in pnls:
        if pnl > 0:
            cur_w += 1
            cur_l = 0
        elif pnl < 0:
            cur_l += 1
            cur_w = 0
        else:
            cur_w = cur_l = 0
        best_w = max(best_w, cur_w)
        best_l = max(best_l, cur_l)
    return Streaks(wins=best_w, losses=best_l)


def monthly_returns(points: Iterable[tuple[date | datetime, float]]) -> list[MonthlyReturn]:
    """Per calendar month: (last - first) / first of the observed values.

    Months appear in first-seen order, which is chronological for an equity
    curve.
    """

    bounds: dict[str, list[float]] = {}
    for d, value in points:
        key = f"{d.year:04d}-{d.month:02d}"
        if key not in bounds:
            bounds[key] = [float(value), float(value)]
        else:
            bounds[key][1] = float(value)

    out: list[MonthlyReturn] = []
    for month, (first, last) in bounds.items():
        ret = (last - first) / first if first > 0 else 0.0
        out.append(MonthlyReturn(month=month, ret=ret))
    return out
