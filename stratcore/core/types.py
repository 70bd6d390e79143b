"""stratcore.core.types

Lightweight dataclasses and enums shared across packages.

Pydantic models own IO boundaries; dataclasses keep runtime lean.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum


class Side(StrEnum):
    BUY = "buy"
    SELL = "sell"

    @property
    def opposite(self) -> Side:
        return Side.SELL if self is Side.BUY else Side.BUY


class OrderType(StrEnum):
    MARKET = "market"
    LIMIT = "limit"


class OrderStatus(StrEnum):
    PENDING = "pending"
    SUBMITTED = "submitted"
    PARTIAL = "partial"
    FILLED = "filled"
    CANCELLED = "cancelled"
    REJECTED = "rejected"
    FAILED = "failed"


class Action(StrEnum):
    BUY = "buy"
    SELL = "sell"
    HOLD = "hold"


class Severity(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def reportable(self) -> bool:
        """High and critical findings go to the audit sink automatically."""

        return self in (Severity.HIGH, Severity.CRITICAL)


@dataclass(frozen=True, slots=True)
class TradeSignal:
    """One decision from a signal source.

    ``confidence`` is a fraction in [0, 1].
    """

    action: Action
    confidence: float = 0.0
    reasoning: str = ""

    @classmethod
    def hold(cls, reasoning: str = "") -> TradeSignal:
        return cls(action=Action.HOLD, confidence=0.0, reasoning=reasoning)


@dataclass(frozen=True, slots=True)
class OrderRecord:
    """A persisted order as the compliance layer sees it."""

    id: str
    strategy_id: str
    symbol: str
    side: Side
    quantity: float
    status: OrderStatus
    created_at: datetime
    order_type: OrderType = OrderType.MARKET
    price: float | None = None
    filled_price: float | None = None

    @property
    def is_filled(self) -> bool:
        return self.status == OrderStatus.FILLED

    @property
    def is_cancelled(self) -> bool:
        return self.status == OrderStatus.CANCELLED


class PositionSide(StrEnum):
    LONG = "long"
    SHORT = "short"


@dataclass(frozen=True, slots=True)
class PositionSnapshot:
    """An open live position as the risk layer sees it."""

    symbol: str
    quantity: float
    current_price: float
    entry_price: float = 0.0
    side: PositionSide = PositionSide.LONG
    unrealized_pnl: float = 0.0
    stop_loss: float | None = None
    take_profit: float | None = None

    @property
    def market_value(self) -> float:
        return abs(self.quantity * self.current_price)
