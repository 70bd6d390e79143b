from __future__ import annotations

from datetime import date
from pathlib import Path

import pytest

from stratcore.backtest.data import (
    CsvMarketData,
    InMemoryMarketData,
    OHLCVBar,
    assemble_bars,
    load_bars_csv,
    synthetic_bars,
)
from stratcore.core.exceptions import MarketDataError


def test_load_bars_csv_sorts_and_defaults(temp_dir: Path) -> None:
    p = temp_dir / "X.csv"
    p.write_text(
        "date,open,high,low,close,volume\n"
        "2024-01-09,101,103,100,102,5000\n"
        "2024-01-08,99,101,98,100,\n"
    )
    bars = load_bars_csv(p)
    assert [b.date for b in bars] == [date(2024, 1, 8), date(2024, 1, 9)]
    assert bars[0].volume == 0.0
    assert bars[1] == OHLCVBar(date=date(2024, 1, 9), open=101, high=103, low=100, close=102, volume=5000)


def test_load_bars_csv_close_only(temp_dir: Path) -> None:
    p = temp_dir / "Y.csv"
    p.write_text("Date,Close\n2024-01-08T00:00:00Z,50\n")
    (bar,) = load_bars_csv(p)
    assert bar.date == date(2024, 1, 8)
    assert bar.open == bar.high == bar.low == 50.0


def test_load_bars_csv_errors(temp_dir: Path) -> None:
    with pytest.raises(MarketDataError):
        load_bars_csv(temp_dir / "missing.csv")

    no_close = temp_dir / "a.csv"
    no_close.write_text("date,open\n2024-01-08,1\n")
    with pytest.raises(MarketDataError):
        load_bars_csv(no_close)

    bad = temp_dir / "b.csv"
    bad.write_text("date,close\n2024-01-08,abc\n")
    with pytest.raises(MarketDataError):
        load_bars_csv(bad)


def test_csv_provider_filters_range(temp_dir: Path) -> None:
    (temp_dir / "X.csv").write_text("date,close\n2024-01-08,1\n2024-01-09,2\n2024-01-10,3\n")
    bars = CsvMarketData(root=temp_dir).get_bars("X", date(2024, 1, 9), date(2024, 1, 10))
    assert [b.close for b in bars] == [2.0, 3.0]


def test_in_memory_provider() -> None:
    md = InMemoryMarketData()
    md.add("X", synthetic_bars([1.0, 2.0, 3.0], start=date(2024, 1, 8)))
    assert [b.close for b in md.get_bars("X", date(2024, 1, 9), date(2024, 1, 31))] == [2.0, 3.0]
    with pytest.raises(MarketDataError):
        md.get_bars("NOPE", date(2024, 1, 1), date(2024, 1, 31))


def test_synthetic_bars_skip_weekends() -> None:
    bars = synthetic_bars([1.0, 2.0], start=date(2024, 1, 6))  # Saturday
    assert [b.date for b in bars] == [date(2024, 1, 8), date(2024, 1, 9)]


def test_assemble_bars_merges_by_date_then_symbol_order() -> None:
    x = synthetic_bars([10.0, 11.0, 12.0], start=date(2024, 1, 8))
    y = synthetic_bars([20.0, 21.0], start=date(2024, 1, 9))
    weekend = OHLCVBar(date=date(2024, 1, 13), open=1, high=1, low=1, close=1, volume=1)
    bad = OHLCVBar(date=date(2024, 1, 15), open=0, high=0, low=0, close=0, volume=0)

    bars = assemble_bars({"Y": [*y, weekend, bad], "X": x}, ["X", "Y"])

    assert [b.date for b in bars] == [date(2024, 1, 8), date(2024, 1, 9), date(2024, 1, 10)]
    assert list(bars[0].prices) == ["X"]
    assert list(bars[1].prices) == ["X", "Y"]
    assert bars[2].prices == {"X": 12.0, "Y": 21.0}
    assert set(bars[2].indicators) == {"X", "Y"}
