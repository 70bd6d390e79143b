from __future__ import annotations

from datetime import date

import pytest

from stratcore.backtest.signals import BarContext, IndicatorSignalSource, parse_signal
from stratcore.core.types import Action


def test_parse_signal_json_percent_confidence() -> None:
    sig = parse_signal('{"action": "BUY", "confidence": 85, "reasoning": "breakout"}')
    assert sig.action == Action.BUY
    assert sig.confidence == pytest.approx(0.85)
    assert sig.reasoning == "breakout"


def test_parse_signal_mapping_with_aliases() -> None:
    sig = parse_signal({"recommendation": "sell", "confidence": 0.7, "reason": "overbought"})
    assert sig.action == Action.SELL
    assert sig.confidence == pytest.approx(0.7)
    assert sig.reasoning == "overbought"


@pytest.mark.parametrize(
    "raw",
    [
        "not json",
        "[1, 2]",
        '{"action": "moon", "confidence": 0.5}',
        '{"action": "buy", "confidence": -1}',
        '{"action": "buy", "confidence": 150}',
        '{"confidence": 0.9}',
    ],
)
def test_parse_signal_falls_back_to_hold(raw: str) -> None:
    sig = parse_signal(raw)
    assert sig.action == Action.HOLD
    assert sig.confidence == 0.0


def _ctx(price: float, **ind: float) -> BarContext:
    return BarContext(date=date(2024, 1, 8), price=price, volume=1_000.0, indicators=ind)


def test_indicator_source_buys_on_oversold_momentum() -> None:
    src = IndicatorSignalSource()
    sig = src.decide("X", _ctx(100.0, rsi=25.0, macd_histogram=0.5, sma20=90.0))
    assert sig.action == Action.BUY
    assert sig.confidence == pytest.approx(0.8)


@pytest.mark.parametrize(
    "ind",
    [
        {},
        {"rsi": 40.0, "macd_histogram": 0.5, "sma20": 90.0},
        {"rsi": 25.0, "macd_histogram": -0.1, "sma20": 90.0},
        {"rsi": 25.0, "macd_histogram": 0.5, "sma20": 110.0},
    ],
)
def test_indicator_source_holds_otherwise(ind: dict[str, float]) -> None:
    assert IndicatorSignalSource().decide("X", _ctx(100.0, **ind)).action == Action.HOLD
