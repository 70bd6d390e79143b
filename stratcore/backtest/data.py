"""stratcore.backtest.data

Historical market data for the simulation engine.

CSV schema (one symbol per file):
- required: date, close
- optional: open, high, low, volume

Missing optional prices default to close; missing volume defaults to 0.
Providers tolerate gaps by omission: a date without a bar simply has no entry.
"""

from __future__ import annotations

import csv
import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, timedelta
from pathlib import Path
from typing import Protocol

import numpy as np

from stratcore.backtest.indicators import indicator_rows
from stratcore.core.exceptions import MarketDataError
from stratcore.core.time import is_business_day, parse_dt


@dataclass(frozen=True, slots=True)
class OHLCVBar:
    date: date
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0


class MarketDataProvider(Protocol):
    def get_bars(self, symbol: str, start: date, end: date) -> list[OHLCVBar]: ...


@dataclass
class InMemoryMarketData:
    """Provider backed by a dict of pre-loaded bars."""

    bars: dict[str, list[OHLCVBar]] = field(default_factory=dict)

    def add(self, symbol: str, bars: Sequence[OHLCVBar]) -> None:
        merged = {b.date: b for b in self.bars.get(symbol, [])}
        merged.update({b.date: b for b in bars})
        self.bars[symbol] = [merged[d] for d in sorted(merged)]

    def get_bars(self, symbol: str, start: date, end: date) -> list[OHLCVBar]:
        if symbol not in self.bars:
            raise MarketDataError(f"no data for symbol: {symbol}")
        return [b for b in self.bars[symbol] if start <= b.date <= end]


@dataclass
class CsvMarketData:
    """Provider reading ``<root>/<SYMBOL>.csv`` on demand."""

    root: Path

    def get_bars(self, symbol: str, start: date, end: date) -> list[OHLCVBar]:
        path = Path(self.root) / f"{symbol}.csv"
        return [b for b in load_bars_csv(path) if start <= b.date <= end]


def _parse_date(value: str) -> date:
    v = value.strip()
    if "T" in v or " " in v:
        return parse_dt(v).date()
    return date.fromisoformat(v)


def load_bars_csv(path: str | Path) -> list[OHLCVBar]:
    p = Path(path)
    if not p.exists():
        raise MarketDataError(f"CSV not found: {p}")

    rows: list[dict[str, str]] = []
    with p.open("r", encoding="utf-8") as f:
        r = csv.DictReader(f)
        for row in r:
            rows.append({k.strip().lower(): (v.strip() if isinstance(v, str) else "") for k, v in row.items() if k is not None})

    if not rows:
        return []
    for required in ("date", "close"):
        if required not in rows[0]:
            raise MarketDataError(f"CSV missing required column: {required}")

    def num(row: dict[str, str], name: str, default: float) -> float:
        v = row.get(name, "")
        if v is None or v == "":
            return default
        return float(v)

    bars: dict[date, OHLCVBar] = {}
    for lineno, row in enumerate(rows, start=2):
        try:
            d = _parse_date(row["date"])
            close = float(row["close"])
            bar = OHLCVBar(
                date=d,
                open=num(row, "open", close),
                high=num(row, "high", close),
                low=num(row, "low", close),
                close=close,
                volume=num(row, "volume", 0.0),
            )
        except ValueError as e:
            raise MarketDataError(f"{p}:{lineno}: {e}") from e
        bars[d] = bar

    return [bars[d] for d in sorted(bars)]


def synthetic_bars(
    closes: Sequence[float],
    *,
    start: date,
    volume: float = 1_000_000.0,
) -> list[OHLCVBar]:
    """Flat OHLC bars on consecutive business days from ``start``."""

    out: list[OHLCVBar] = []
    d = start
    for c in closes:
        while not is_business_day(d):
            d += timedelta(days=1)
        out.append(OHLCVBar(date=d, open=c, high=c, low=c, close=c, volume=volume))
        d += timedelta(days=1)
    return out


@dataclass(frozen=True, slots=True)
class MarketBar:
    """Cross-symbol snapshot for one date, as the engine steps through it."""

    date: date
    prices: dict[str, float]
    volume: dict[str, float]
    indicators: dict[str, dict[str, float]]


def assemble_bars(
    per_symbol: Mapping[str, Sequence[OHLCVBar]],
    symbols: Sequence[str],
) -> list[MarketBar]:
    """Merge per-symbol series into date-ordered cross-symbol bars.

    Only business days with at least one usable close produce a bar. Within a
    bar, symbols keep the order of ``symbols``. Indicators are computed over
    each symbol's own history up to and including the bar.
    """

    by_date: dict[date, dict[str, tuple[OHLCVBar, dict[str, float]]]] = {}
    for symbol in symbols:
        series = [
            b
            for b in per_symbol.get(symbol, [])
            if is_business_day(b.date) and math.isfinite(b.close) and b.close > 0
        ]
        if not series:
            continue
        rows = indicator_rows(
            close=np.array([b.close for b in series]),
            high=np.array([b.high for b in series]),
            low=np.array([b.low for b in series]),
            volume=np.array([b.volume for b in series]),
        )
        for bar, row in zip(series, rows, strict=True):
            by_date.setdefault(bar.date, {})[symbol] = (bar, row)

    out: list[MarketBar] = []
    for d in sorted(by_date):
        entries = by_date[d]
        ordered = [s for s in symbols if s in entries]
        out.append(
            MarketBar(
                date=d,
                prices={s: entries[s][0].close for s in ordered},
                volume={s: entries[s][0].volume for s in ordered},
                indicators={s: entries[s][1] for s in ordered},
            )
        )
    return out
