"""stratcore.backtest.models

Run inputs, mutable portfolio state and run outputs of the simulation engine.

``PortfolioState`` is owned by exactly one engine instance and discarded at the
end of the run. Everything the run produces is frozen.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from typing import Any

from stratcore.backtest.metrics import MonthlyReturn
from stratcore.core.config import BacktestSettings
from stratcore.core.exceptions import InvalidSimConfigError
from stratcore.core.serialization import canonical_json, jsonable
from stratcore.core.types import Side


def _as_date(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


@dataclass(frozen=True, slots=True)
class SimConfig:
    symbols: tuple[str, ...]
    start: date
    end: date
    initial_capital: float
    commission_per_trade: float = 1.0
    strategy_id: str = "backtest"

    def __post_init__(self) -> None:
        object.__setattr__(self, "symbols", tuple(dict.fromkeys(str(s) for s in self.symbols)))
        object.__setattr__(self, "start", _as_date(self.start))
        object.__setattr__(self, "end", _as_date(self.end))

        if not self.symbols:
            raise InvalidSimConfigError("at least one symbol is required")
        if self.end <= self.start:
            raise InvalidSimConfigError(f"end date {self.end} must be after start date {self.start}")
        if not self.initial_capital > 0:
            raise InvalidSimConfigError(f"initial capital must be > 0, got {self.initial_capital}")
        if self.commission_per_trade < 0:
            raise InvalidSimConfigError("commission_per_trade must be >= 0")


@dataclass(frozen=True, slots=True)
class ExitPolicy:
    take_profit_pct: float = 0.10
    stop_loss_pct: float = 0.05

    @classmethod
    def from_settings(cls, s: BacktestSettings) -> ExitPolicy:
        return cls(take_profit_pct=float(s.take_profit_pct), stop_loss_pct=float(s.stop_loss_pct))

    def exit_reason(self, *, entry_price: float, price: float) -> str | None:
        if entry_price <= 0:
            return None
        change = (price - entry_price) / entry_price
        if change >= self.take_profit_pct:
            return "take_profit"
        if change <= -self.stop_loss_pct:
            return "stop_loss"
        return None


@dataclass(slots=True)
class OpenPosition:
    symbol: str
    quantity: float
    entry_price: float
    entry_date: date
    mark_price: float
    unrealized_pnl: float = 0.0

    def mark(self, price: float) -> None:
        self.mark_price = float(price)
        self.unrealized_pnl = (self.mark_price - self.entry_price) * self.quantity

    @property
    def market_value(self) -> float:
        return self.quantity * self.mark_price

    @property
    def unrealized_return(self) -> float:
        if self.entry_price <= 0:
            return 0.0
        return (self.mark_price - self.entry_price) / self.entry_price


@dataclass(slots=True)
class PortfolioState:
    cash: float
    positions: dict[str, OpenPosition] = field(default_factory=dict)
    equity: float = 0.0

    def __post_init__(self) -> None:
        self.recompute()

    def recompute(self) -> float:
        self.equity = self.cash + sum(p.market_value for p in self.positions.values())
        return self.equity

    def mark_to_market(self, prices: dict[str, float]) -> float:
        """Mark every priced position; unpriced positions keep their last mark."""

        for symbol, pos in self.positions.items():
            px = prices.get(symbol)
            if px is not None:
                pos.mark(px)
        return self.recompute()


@dataclass(frozen=True, slots=True)
class SimTrade:
    date: date
    symbol: str
    action: Side
    quantity: float
    price: float
    commission: float
    pnl: float | None = None  # closing legs only
    entry_price: float | None = None
    exit_price: float | None = None
    reason: str = ""

    @property
    def is_closing(self) -> bool:
        return self.action == Side.SELL


@dataclass(frozen=True, slots=True)
class EquityPoint:
    date: date
    equity: float


@dataclass(frozen=True, slots=True)
class BacktestProgress:
    date: date
    percent: float  # 0-100
    trades_executed: int
    equity: float


@dataclass(frozen=True, slots=True)
class SimResult:
    initial_capital: float
    final_equity: float
    total_return: float
    annualized_return: float
    sharpe_ratio: float
    sortino_ratio: float
    calmar_ratio: float
    max_drawdown: float
    win_rate: float
    profit_factor: float
    total_trades: int
    closed_trades: int
    average_trade: float
    average_win: float
    average_loss: float
    max_consecutive_wins: int
    max_consecutive_losses: int
    trades: tuple[SimTrade, ...]
    equity_curve: tuple[EquityPoint, ...]
    daily_returns: tuple[float, ...]
    monthly_returns: tuple[MonthlyReturn, ...]

    def to_dict(self) -> dict[str, Any]:
        return jsonable(asdict(self))

    def to_json(self) -> str:
        return canonical_json(self.to_dict())
