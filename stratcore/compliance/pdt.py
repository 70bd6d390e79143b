"""stratcore.compliance.pdt

Pattern day trader (PDT) tracking.

Rule: four or more day trades within five business days make an account a
pattern day trader, which requires at least $25,000 of equity.

Nothing is stored here. Every call recomputes from the order history, so the
answer is always consistent with what was actually filled.
"""

from __future__ import annotations

import logging
import math
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from stratcore.compliance.audit import DAY_TRADE, PDT_VIOLATION, AuditEntry, AuditTrail
from stratcore.compliance.orders import OrderHistory
from stratcore.core.config import ComplianceConfig
from stratcore.core.time import add_business_days, business_days_ago, ensure_utc, start_of_day, utc_now
from stratcore.core.types import OrderRecord, OrderStatus, Side

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 1_000


@dataclass(frozen=True, slots=True)
class DayTradeRecord:
    date: date
    symbol: str
    buy_order_id: str
    sell_order_id: str


@dataclass(frozen=True, slots=True)
class PDTStatus:
    is_day_trader: bool
    day_trade_count: int
    account_value: float
    pdt_minimum: float
    can_day_trade: bool
    next_reset_date: date
    days_until_reset: int
    warning: str | None = None


@dataclass(frozen=True, slots=True)
class DayTradeDecision:
    allowed: bool
    would_be_day_trade: bool
    status: PDTStatus
    reason: str | None = None


@dataclass(frozen=True, slots=True)
class PDTHistory:
    day_trades: tuple[DayTradeRecord, ...]
    violations: tuple[AuditEntry, ...]  # newest first


def find_day_trades(orders: Iterable[OrderRecord]) -> list[DayTradeRecord]:
    """One record per (UTC date, symbol) with a filled buy and a filled sell.

    Records come back in date order; within a date, in order of first
    appearance. The earliest buy and sell of the day are referenced.
    """

    groups: dict[tuple[date, str], list[OrderRecord]] = defaultdict(list)
    for o in sorted(orders, key=lambda o: ensure_utc(o.created_at)):
        if o.status != OrderStatus.FILLED:
            continue
        groups[(ensure_utc(o.created_at).date(), o.symbol.upper())].append(o)

    out: list[DayTradeRecord] = []
    for (day, symbol), day_orders in groups.items():
        buys = [o for o in day_orders if o.side == Side.BUY]
        sells = [o for o in day_orders if o.side == Side.SELL]
        if buys and sells:
            out.append(DayTradeRecord(date=day, symbol=symbol, buy_order_id=buys[0].id, sell_order_id=sells[0].id))
    return out


def _fmt_usd(v: float) -> str:
    return f"${v:,.0f}"


class PatternDayTraderTracker:
    def __init__(
        self,
        orders: OrderHistory,
        *,
        audit: AuditTrail | None = None,
        config: ComplianceConfig | None = None,
    ) -> None:
        self.orders = orders
        self.audit = audit
        self.config = config or ComplianceConfig()

    def day_trades(self, strategy_id: str, business_days: int, *, now: datetime | None = None) -> list[DayTradeRecord]:
        cutoff = business_days_ago(business_days, now=now)
        return find_day_trades(self.orders.orders_since(strategy_id, cutoff))

    def next_reset_date(self, trades: list[DayTradeRecord], *, now: datetime | None = None) -> date:
        """The day the oldest day trade drops out of the rolling window."""

        if not trades:
            return ensure_utc(now or utc_now()).date()
        oldest = min(t.date for t in trades)
        return add_business_days(oldest, self.config.rolling_business_days + 1)

    def check_status(self, strategy_id: str, account_value: float, *, now: datetime | None = None) -> PDTStatus:
        cfg = self.config
        current = ensure_utc(now or utc_now())
        trades = self.day_trades(strategy_id, cfg.rolling_business_days, now=current)
        count = len(trades)

        is_day_trader = count >= cfg.pdt_threshold
        can_day_trade = float(account_value) >= cfg.pdt_minimum

        reset = self.next_reset_date(trades, now=current)
        delta = start_of_day(reset) - current
        days_until_reset = max(0, math.ceil(delta / timedelta(days=1)))

        warning: str | None = None
        if count == cfg.pdt_threshold - 1:
            funded = (
                f"Your account meets the {_fmt_usd(cfg.pdt_minimum)} minimum."
                if can_day_trade
                else f"Your account is below the {_fmt_usd(cfg.pdt_minimum)} minimum."
            )
            warning = f"One more day trade will classify you as a Pattern Day Trader. {funded}"
        elif is_day_trader and not can_day_trade:
            warning = (
                f"Pattern Day Trader restriction active. Account must maintain {_fmt_usd(cfg.pdt_minimum)} "
                f"minimum. Current: {_fmt_usd(float(account_value))}"
            )
        elif count > 0:
            plural = "s" if count > 1 else ""
            warning = (
                f"{count} day trade{plural} in last {cfg.rolling_business_days} days. "
                f"{max(0, cfg.pdt_threshold - count)} remaining before PDT status."
            )

        return PDTStatus(
            is_day_trader=is_day_trader,
            day_trade_count=count,
            account_value=float(account_value),
            pdt_minimum=cfg.pdt_minimum,
            can_day_trade=can_day_trade,
            next_reset_date=reset,
            days_until_reset=days_until_reset,
            warning=warning,
        )

    def validate_day_trade(
        self,
        strategy_id: str,
        symbol: str,
        account_value: float,
        *,
        now: datetime | None = None,
    ) -> DayTradeDecision:
        """Check a sell of ``symbol`` before it is sent."""

        cfg = self.config
        current = ensure_utc(now or utc_now())
        status = self.check_status(strategy_id, account_value, now=current)

        bought_today = self.orders.orders_since(
            strategy_id,
            start_of_day(current),
            symbol=symbol,
            status=OrderStatus.FILLED,
            side=Side.BUY,
        )
        if not bought_today:
            return DayTradeDecision(allowed=True, would_be_day_trade=False, status=status)

        if not status.can_day_trade and status.day_trade_count >= cfg.pdt_threshold - 1:
            reason = (
                f"PDT violation: {status.day_trade_count + 1} day trades would exceed limit. "
                f"Account minimum: {_fmt_usd(cfg.pdt_minimum)}"
            )
            logger.warning("pdt_violation_prevented", extra={"strategy_id": strategy_id, "symbol": symbol})
            if self.audit is not None:
                self.audit.log_action(
                    PDT_VIOLATION,
                    strategy_id,
                    {
                        "symbol": symbol,
                        "message": "Pattern Day Trader violation prevented",
                        "day_trade_count": status.day_trade_count,
                        "account_value": float(account_value),
                        "timestamp": current,
                    },
                )
            return DayTradeDecision(allowed=False, would_be_day_trade=True, status=status, reason=reason)

        if self.audit is not None:
            self.audit.log_action(
                DAY_TRADE,
                strategy_id,
                {
                    "symbol": symbol,
                    "day_trade_count": status.day_trade_count + 1,
                    "account_value": float(account_value),
                    "timestamp": current,
                },
            )
        return DayTradeDecision(allowed=True, would_be_day_trade=True, status=status)

    def history(self, strategy_id: str, days: int = 30, *, now: datetime | None = None) -> PDTHistory:
        """Day trades and recorded PDT violations over the last ``days`` business days."""

        trades = self.day_trades(strategy_id, days, now=now)
        violations: list[AuditEntry] = []
        if self.audit is not None:
            cutoff = business_days_ago(days, now=now)
            entries = self.audit.query(PDT_VIOLATION, since=cutoff, limit=HISTORY_LIMIT)
            violations = [e for e in entries if e.actor == strategy_id]
        return PDTHistory(day_trades=tuple(trades), violations=tuple(violations))
