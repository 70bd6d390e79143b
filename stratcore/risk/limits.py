"""stratcore.risk.limits

Post-trade limits and live-position helpers.

- daily loss check and a per-strategy breaker that halts for the rest of the day
- trailing stops that only ever tighten
- stop-loss / take-profit exit check
- historical VaR and a portfolio exposure snapshot
"""

from __future__ import annotations

import logging
import math
import threading
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime

from stratcore.compliance.audit import CIRCUIT_BREAKER_TRIGGERED, AuditSink
from stratcore.core.time import ensure_utc, utc_now
from stratcore.core.types import PositionSide, PositionSnapshot, Severity
from stratcore.risk.checks import RiskCheckResult

logger = logging.getLogger(__name__)


def check_daily_loss_limit(daily_pnl: float, account_value: float, limit_pct: float) -> RiskCheckResult:
    """Fail (critical) once today's loss reaches ``limit_pct`` of the account."""

    acct = float(account_value)
    if not math.isfinite(acct) or acct <= 0:
        return RiskCheckResult.fail("daily_loss_limit", f"Invalid account value: ${acct}", Severity.CRITICAL)

    pnl = float(daily_pnl)
    loss_frac = abs(pnl) / acct
    if pnl < 0 and loss_frac >= limit_pct:
        return RiskCheckResult.fail(
            "daily_loss_limit",
            f"Daily loss limit reached: {loss_frac * 100:.2f}% >= {limit_pct * 100:.2f}%",
            Severity.CRITICAL,
        )
    return RiskCheckResult.ok("daily_loss_limit", f"Daily P&L within limits: {loss_frac * 100:.2f}%")


class DailyLossBreaker:
    """Per-strategy daily loss breaker.

    Once tripped, a strategy stays halted for the rest of that UTC calendar day
    whatever its P&L does next. The next day starts clean.
    """

    def __init__(self, *, limit_pct: float = 0.03, audit: AuditSink | None = None) -> None:
        self.limit_pct = float(limit_pct)
        self.audit = audit
        self._tripped: dict[str, date] = {}
        self._lock = threading.Lock()

    def _today(self, now: datetime | None) -> date:
        return ensure_utc(now or utc_now()).date()

    def is_halted(self, strategy_id: str, *, now: datetime | None = None) -> bool:
        today = self._today(now)
        with self._lock:
            day = self._tripped.get(strategy_id)
            if day is not None and day != today:
                del self._tripped[strategy_id]
                day = None
        return day == today

    def record(
        self,
        strategy_id: str,
        *,
        daily_pnl: float,
        account_value: float,
        now: datetime | None = None,
    ) -> RiskCheckResult:
        if self.is_halted(strategy_id, now=now):
            return RiskCheckResult.fail(
                "daily_loss_limit",
                "Trading halted for the rest of the day",
                Severity.CRITICAL,
            )

        result = check_daily_loss_limit(daily_pnl, account_value, self.limit_pct)
        if result.passed:
            return result

        today = self._today(now)
        with self._lock:
            self._tripped[strategy_id] = today
        logger.warning("circuit_breaker_triggered", extra={"strategy_id": strategy_id, "daily_pnl": daily_pnl})
        if self.audit is not None:
            self.audit.log_action(
                CIRCUIT_BREAKER_TRIGGERED,
                strategy_id,
                {
                    "reason": result.reason,
                    "daily_pnl": float(daily_pnl),
                    "account_value": float(account_value),
                    "day": today.isoformat(),
                },
            )
        return result

    def reset(self, strategy_id: str) -> None:
        with self._lock:
            self._tripped.pop(strategy_id, None)


def trailing_stop(
    side: PositionSide,
    *,
    entry_price: float,
    price: float,
    atr: float,
    existing_stop: float | None = None,
    multiplier: float = 2.0,
) -> float:
    """Next stop level for an open position. Never loosens an existing stop."""

    distance = float(atr) * float(multiplier)
    if PositionSide(side) == PositionSide.LONG:
        floor_stop = float(entry_price) * 0.98
        return max(float(price) - distance, existing_stop or 0.0, floor_stop)

    candidate = float(price) + distance
    if not existing_stop:
        return candidate
    return min(candidate, float(existing_stop), float(entry_price) * 1.02)


@dataclass(frozen=True, slots=True)
class ExitDecision:
    should_close: bool
    reason: str | None = None


def should_close_position(position: PositionSnapshot, price: float) -> ExitDecision:
    stop = position.stop_loss or 0.0
    target = position.take_profit or 0.0
    px = float(price)

    if position.side == PositionSide.LONG:
        if stop > 0 and px <= stop:
            return ExitDecision(True, "stop_loss")
        if target > 0 and px >= target:
            return ExitDecision(True, "take_profit")
    else:
        if stop > 0 and px >= stop:
            return ExitDecision(True, "stop_loss")
        if target > 0 and px <= target:
            return ExitDecision(True, "take_profit")
    return ExitDecision(False)


def historical_var(returns: Sequence[float], confidence: float = 0.95) -> float:
    """Historical-simulation VaR: the return at index floor((1 - c) * n)."""

    if not returns:
        return 0.0
    ordered = sorted(float(r) for r in returns)
    idx = math.floor((1.0 - float(confidence)) * len(ordered))
    idx = min(max(idx, 0), len(ordered) - 1)
    return ordered[idx]


@dataclass(frozen=True, slots=True)
class PortfolioRiskSnapshot:
    total_position_value: float
    unrealized_pnl: float
    exposure_pct: float
    position_count: int
    account_value: float


def portfolio_snapshot(positions: Sequence[PositionSnapshot], account_value: float) -> PortfolioRiskSnapshot:
    total = sum(p.market_value for p in positions)
    pnl = sum(p.unrealized_pnl for p in positions)
    acct = float(account_value)
    exposure = total / acct if acct > 0 else 0.0
    return PortfolioRiskSnapshot(
        total_position_value=float(total),
        unrealized_pnl=float(pnl),
        exposure_pct=exposure,
        position_count=len(positions),
        account_value=acct,
    )
