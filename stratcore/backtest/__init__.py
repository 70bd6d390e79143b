"""stratcore.backtest

Trade simulation.

- ``fills``: slippage and commission model for one hypothetical order
- ``metrics``: risk/return statistics over equity curves and trade P&L
- ``engine``: bar-by-bar replay that ties data, signals and fills together
"""

from __future__ import annotations

from stratcore.backtest.data import InMemoryMarketData, MarketDataProvider, OHLCVBar, load_bars_csv
from stratcore.backtest.engine import BacktestEngine, run_backtest
from stratcore.backtest.fills import FillResult, SlippageConfig, simulate_fill, simulate_partial_fill
from stratcore.backtest.metrics import UNBOUNDED
from stratcore.backtest.models import ExitPolicy, SimConfig, SimResult
from stratcore.backtest.signals import IndicatorSignalSource, SignalSource, parse_signal

__all__ = [
    "BacktestEngine",
    "run_backtest",
    "SimConfig",
    "SimResult",
    "ExitPolicy",
    "FillResult",
    "SlippageConfig",
    "simulate_fill",
    "simulate_partial_fill",
    "UNBOUNDED",
    "OHLCVBar",
    "MarketDataProvider",
    "InMemoryMarketData",
    "load_bars_csv",
    "SignalSource",
    "IndicatorSignalSource",
    "parse_signal",
]
