"""stratcore.backtest.fills

Fill simulator.

Turns a hypothetical order plus market conditions into an execution price and
commission. Pure functions; no state, no IO.

Slippage model (fraction of market price):
- base
- + (quantity / 1% of average volume) * volume_impact
- + volatility * market_impact
- capped at ``max_pct`` (2%)

Buys fill above the market, sells below. Rejections are values: an order that
cannot fill returns ``filled=False`` with every numeric field zero.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from stratcore.core.config import SlippageSettings
from stratcore.core.types import OrderType, Side

# Price impact at full consumption of the available liquidity.
PARTIAL_FILL_MAX_IMPACT = 0.005


@dataclass(frozen=True, slots=True)
class SlippageConfig:
    base_pct: float = 0.001
    volume_impact: float = 0.0005
    market_impact: float = 0.0002
    max_pct: float = 0.02

    @classmethod
    def from_settings(cls, s: SlippageSettings) -> SlippageConfig:
        return cls(
            base_pct=float(s.base_pct),
            volume_impact=float(s.volume_impact),
            market_impact=float(s.market_impact),
            max_pct=float(s.max_pct),
        )


DEFAULT_SLIPPAGE = SlippageConfig()
ZERO_SLIPPAGE = SlippageConfig(base_pct=0.0, volume_impact=0.0, market_impact=0.0)


@dataclass(frozen=True, slots=True)
class FillResult:
    filled: bool
    fill_price: float = 0.0
    fill_quantity: float = 0.0
    commission: float = 0.0
    slippage: float = 0.0  # |fill - market| * quantity


NO_FILL = FillResult(filled=False)


@dataclass(frozen=True, slots=True)
class PartialFill:
    fill_quantity: float
    avg_fill_price: float


def slippage_pct(
    *,
    quantity: float,
    avg_volume: float,
    volatility: float,
    config: SlippageConfig = DEFAULT_SLIPPAGE,
) -> float:
    if avg_volume <= 0 or not math.isfinite(avg_volume):
        # No liquidity information: assume the worst the model allows.
        return float(config.max_pct)

    pct = float(config.base_pct)
    volume_ratio = float(quantity) / (float(avg_volume) / 100.0)
    pct += volume_ratio * float(config.volume_impact)
    pct += max(0.0, float(volatility)) * float(config.market_impact)
    return min(pct, float(config.max_pct))


def realistic_fill_price(
    side: Side,
    *,
    market_price: float,
    quantity: float,
    avg_volume: float,
    volatility: float,
    config: SlippageConfig = DEFAULT_SLIPPAGE,
) -> float:
    pct = slippage_pct(quantity=quantity, avg_volume=avg_volume, volatility=volatility, config=config)
    amount = float(market_price) * pct
    if Side(side) == Side.BUY:
        return float(market_price) + amount
    return float(market_price) - amount


def should_fill(side: Side, *, limit_price: float | None, market_price: float) -> bool:
    """Limit check. ``None`` means no limit (market order)."""

    if limit_price is None:
        return True
    if Side(side) == Side.BUY:
        return float(market_price) <= float(limit_price)
    return float(market_price) >= float(limit_price)


def commission(quantity: float, *, per_trade: float, per_share: float = 0.0) -> float:
    return float(per_trade) + float(quantity) * float(per_share)


def simulate_fill(
    side: Side,
    order_type: OrderType,
    quantity: float,
    limit_price: float | None,
    market_price: float,
    avg_volume: float,
    volatility: float,
    commission_per_trade: float,
    config: SlippageConfig | None = None,
    *,
    commission_per_share: float = 0.0,
) -> FillResult:
    """Simulate one order against the current market.

    Assumes full liquidity. Use :func:`simulate_partial_fill` when liquidity is
    explicitly constrained.
    """

    cfg = config or DEFAULT_SLIPPAGE
    qty = float(quantity)
    px = float(market_price)

    if not math.isfinite(qty) or qty <= 0:
        return NO_FILL
    if not math.isfinite(px) or px <= 0:
        return NO_FILL

    if OrderType(order_type) == OrderType.LIMIT:
        if limit_price is None:
            return NO_FILL
        if not should_fill(side, limit_price=limit_price, market_price=px):
            return NO_FILL

    fill_px = realistic_fill_price(
        side,
        market_price=px,
        quantity=qty,
        avg_volume=avg_volume,
        volatility=volatility,
        config=cfg,
    )
    fee = commission(qty, per_trade=commission_per_trade, per_share=commission_per_share)

    return FillResult(
        filled=True,
        fill_price=float(fill_px),
        fill_quantity=qty,
        commission=float(fee),
        slippage=abs(fill_px - px) * qty,
    )


def simulate_partial_fill(
    side: Side,
    *,
    requested_quantity: float,
    market_price: float,
    available_liquidity: float,
) -> PartialFill:
    """Fill up to ``available_liquidity`` with averaged price impact.

    Impact grows linearly to 0.5% when the whole book is consumed; the average
    fill pays half of it.
    """

    px = float(market_price)
    if requested_quantity <= 0 or available_liquidity <= 0 or px <= 0:
        return PartialFill(fill_quantity=0.0, avg_fill_price=0.0)

    qty = min(float(requested_quantity), float(available_liquidity))
    impact = (qty / float(available_liquidity)) * PARTIAL_FILL_MAX_IMPACT
    half = px * impact / 2.0
    avg = px + half if Side(side) == Side.BUY else px - half
    return PartialFill(fill_quantity=qty, avg_fill_price=float(avg))
