"""stratcore.backtest.indicators

Technical indicators over a single price series.

Every output array is aligned with its input. Value ``i`` uses only inputs
``0..i``; warm-up positions are NaN. :func:`indicator_rows` turns the arrays
into one mapping per bar and drops NaN keys.
"""

from __future__ import annotations

import numpy as np


def sma(x: np.ndarray, n: int) -> np.ndarray:
    x = np.asarray(x, dtype=np.float64)
    out = np.full_like(x, np.nan, dtype=np.float64)
    if n <= 0 or x.size < n:
        return out

    csum = np.cumsum(x, dtype=np.float64)
    # rolling sum for windows ending at i (inclusive): sum[x[i-n+1:i+1]]
    roll_sum = csum[n - 1 :].copy()
    roll_sum[1:] = roll_sum[1:] - csum[:-n]
    out[n - 1 :] = roll_sum / float(n)
    return out


def ema(x: np.ndarray, n: int) -> np.ndarray:
    """Exponential moving average seeded with the SMA of the first ``n`` values.

    Leading NaNs in ``x`` are skipped; the seed window starts at the first
    finite value.
    """

    x = np.asarray(x, dtype=np.float64)
    out = np.full_like(x, np.nan, dtype=np.float64)
    finite = np.flatnonzero(np.isfinite(x))
    if n <= 0 or finite.size == 0:
        return out
    start = int(finite[0])
    if x.size - start < n:
        return out

    alpha = 2.0 / (n + 1.0)
    seed_at = start + n - 1
    prev = float(np.mean(x[start : seed_at + 1]))
    out[seed_at] = prev
    for i in range(seed_at + 1, x.size):
        prev = alpha * float(x[i]) + (1.0 - alpha) * prev
        out[i] = prev
    return out


def macd(
    close: np.ndarray,
    *,
    fast: int = 12,
    slow: int = 26,
    signal: int = 9,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Return (macd line, signal line, histogram)."""

    line = ema(close, fast) - ema(close, slow)
    sig = ema(line, signal)
    return line, sig, line - sig


def rsi(close: np.ndarray, n: int = 14) -> np.ndarray:
    close = np.asarray(close, dtype=np.float64)
    out = np.full_like(close, np.nan, dtype=np.float64)
    if n <= 1 or close.size <= n:
        return out

    diff = np.diff(close, prepend=close[0])
    up = np.maximum(diff, 0.0)
    down = np.maximum(-diff, 0.0)

    # Wilder smoothing (EMA-like)
    avg_up = float(np.mean(up[1 : n + 1]))
    avg_down = float(np.mean(down[1 : n + 1]))
    out[n] = _rsi_value(avg_up, avg_down)

    for i in range(n + 1, close.size):
        avg_up = (avg_up * (n - 1) + up[i]) / n
        avg_down = (avg_down * (n - 1) + down[i]) / n
        out[i] = _rsi_value(avg_up, avg_down)

    return out


def _rsi_value(avg_up: float, avg_down: float) -> float:
    if avg_down == 0.0:
        return 100.0 if avg_up > 0 else 50.0
    rs = avg_up / avg_down
    return 100.0 - (100.0 / (1.0 + rs))


def true_range(high: np.ndarray, low: np.ndarray, close: np.ndarray) -> np.ndarray:
    high = np.asarray(high, dtype=np.float64)
    low = np.asarray(low, dtype=np.float64)
    close = np.asarray(close, dtype=np.float64)
    if close.size == 0:
        return np.zeros(0, dtype=np.float64)
    prev_close = np.roll(close, 1)
    prev_close[0] = close[0]
    return np.maximum.reduce([high - low, np.abs(high - prev_close), np.abs(low - prev_close)])


def atr(high: np.ndarray, low: np.ndarray, close: np.ndarray, n: int = 14) -> np.ndarray:
    """Average true range with Wilder smoothing."""

    tr = true_range(high, low, close)
    out = np.full_like(tr, np.nan, dtype=np.float64)
    if n <= 0 or tr.size < n:
        return out

    prev = float(np.mean(tr[:n]))
    out[n - 1] = prev
    for i in range(n, tr.size):
        prev = (prev * (n - 1) + float(tr[i])) / n
        out[i] = prev
    return out


def indicator_rows(
    *,
    close: np.ndarray,
    high: np.ndarray | None = None,
    low: np.ndarray | None = None,
    volume: np.ndarray | None = None,
) -> list[dict[str, float]]:
    """Per-bar indicator mappings for one symbol.

    Keys: sma20, sma50, ema12, ema26, macd, macd_signal, macd_histogram, rsi,
    atr, avg_volume. A key is absent while its indicator is warming up.
    """

    close = np.asarray(close, dtype=np.float64)
    high = close if high is None else np.asarray(high, dtype=np.float64)
    low = close if low is None else np.asarray(low, dtype=np.float64)

    line, sig, hist = macd(close)
    series: dict[str, np.ndarray] = {
        "sma20": sma(close, 20),
        "sma50": sma(close, 50),
        "ema12": ema(close, 12),
        "ema26": ema(close, 26),
        "macd": line,
        "macd_signal": sig,
        "macd_histogram": hist,
        "rsi": rsi(close, 14),
        "atr": atr(high, low, close, 14),
    }
    if volume is not None:
        series["avg_volume"] = sma(np.asarray(volume, dtype=np.float64), 20)

    rows: list[dict[str, float]] = []
    for i in range(close.size):
        row = {k: float(v[i]) for k, v in series.items() if np.isfinite(v[i])}
        rows.append(row)
    return rows
