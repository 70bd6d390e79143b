"""stratcore.risk.sizing

Risk-budget position sizing.

- risk amount = account value * risk fraction
- stop distance = ATR * multiplier, or a fixed fraction of price without ATR
- notional = risk amount / (stop distance / price), capped at max_position_pct
- quantity = floor(notional / price)

Stops and targets sit around the entry at a fixed reward:risk ratio.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from stratcore.core.config import RiskConfig
from stratcore.core.types import Side


@dataclass(frozen=True, slots=True)
class RiskLimits:
    risk_per_trade_pct: float = 0.02
    max_position_pct: float = 0.10
    max_exposure_pct: float = 0.50
    max_positions: int = 10
    min_confidence: float = 0.60
    daily_loss_limit_pct: float = 0.03
    atr_stop_multiplier: float = 2.0
    default_stop_pct: float = 0.02
    reward_risk_ratio: float = 2.0

    @classmethod
    def from_config(cls, cfg: RiskConfig) -> RiskLimits:
        return cls(
            risk_per_trade_pct=float(cfg.risk_per_trade_pct),
            max_position_pct=float(cfg.max_position_pct),
            max_exposure_pct=float(cfg.max_exposure_pct),
            max_positions=int(cfg.max_positions),
            min_confidence=float(cfg.min_confidence),
            daily_loss_limit_pct=float(cfg.daily_loss_limit_pct),
            atr_stop_multiplier=float(cfg.atr_stop_multiplier),
            default_stop_pct=float(cfg.default_stop_pct),
            reward_risk_ratio=float(cfg.reward_risk_ratio),
        )


@dataclass(frozen=True, slots=True)
class PositionSizePlan:
    quantity: int
    notional: float
    stop_loss: float
    take_profit: float
    risk_amount: float


ZERO_PLAN = PositionSizePlan(quantity=0, notional=0.0, stop_loss=0.0, take_profit=0.0, risk_amount=0.0)


def calculate_position_size(
    side: Side,
    *,
    price: float,
    account_value: float,
    atr: float = 0.0,
    risk_fraction: float | None = None,
    limits: RiskLimits | None = None,
) -> PositionSizePlan:
    lim = limits or RiskLimits()
    px = float(price)
    acct = float(account_value)
    if not (math.isfinite(px) and px > 0 and math.isfinite(acct) and acct > 0):
        return ZERO_PLAN

    frac = float(lim.risk_per_trade_pct if risk_fraction is None else risk_fraction)
    risk_amount = acct * max(0.0, frac)

    a = float(atr)
    if math.isfinite(a) and a > 0:
        stop_distance = a * lim.atr_stop_multiplier
    else:
        stop_distance = px * lim.default_stop_pct

    notional = risk_amount / (stop_distance / px) if stop_distance > 0 else 0.0
    notional = min(notional, acct * lim.max_position_pct)
    quantity = math.floor(notional / px)

    target_distance = stop_distance * lim.reward_risk_ratio
    if Side(side) == Side.BUY:
        stop_loss, take_profit = px - stop_distance, px + target_distance
    else:
        stop_loss, take_profit = px + stop_distance, px - target_distance

    return PositionSizePlan(
        quantity=int(quantity),
        notional=quantity * px,
        stop_loss=stop_loss,
        take_profit=take_profit,
        risk_amount=risk_amount,
    )
