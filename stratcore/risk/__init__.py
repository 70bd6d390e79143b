"""stratcore.risk

Risk rule engine: sizing, pre-trade validation and post-trade limits.

Rejections are values (``RiskCheckResult``), not exceptions.
"""

from __future__ import annotations

from stratcore.risk.checks import RiskCheckResult
from stratcore.risk.limits import (
    DailyLossBreaker,
    check_daily_loss_limit,
    historical_var,
    portfolio_snapshot,
    should_close_position,
    trailing_stop,
)
from stratcore.risk.preflight import PreTradeResult, PreTradeValidator, TradeProposal
from stratcore.risk.sizing import PositionSizePlan, RiskLimits, calculate_position_size

__all__ = [
    "RiskCheckResult",
    "RiskLimits",
    "PositionSizePlan",
    "calculate_position_size",
    "TradeProposal",
    "PreTradeResult",
    "PreTradeValidator",
    "DailyLossBreaker",
    "check_daily_loss_limit",
    "trailing_stop",
    "should_close_position",
    "historical_var",
    "portfolio_snapshot",
]
