"""stratcore.compliance.surveillance

Market-abuse surveillance over the live order history.

Four independent detectors, each a pure function of (orders, now, thresholds):
- wash trading: offsetting fills at nearly the same price
- layering: heavy cancellation alongside real fills
- excessive velocity: too many fills in a short window
- spoofing: a large cancelled order immediately followed by a smaller
  opposite-side fill

``MarketAbuseSurveillance.run_surveillance`` reads one snapshot of orders,
runs all four and forwards high/critical alerts to the audit sink.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import StrEnum
from itertools import pairwise
from typing import Any

from stratcore.compliance.audit import MARKET_ABUSE_ALERT, AuditSink
from stratcore.compliance.orders import OrderHistory
from stratcore.core.config import SurveillanceConfig
from stratcore.core.time import ensure_utc, utc_now
from stratcore.core.types import OrderRecord, OrderStatus, Severity, Side

logger = logging.getLogger(__name__)


class AlertType(StrEnum):
    WASH_TRADING = "wash_trading"
    LAYERING = "layering"
    EXCESSIVE_VELOCITY = "excessive_velocity"
    SPOOFING = "spoofing"


@dataclass(frozen=True, slots=True)
class SurveillanceAlert:
    type: AlertType
    severity: Severity
    description: str
    timestamp: datetime
    order_ids: tuple[str, ...] = ()
    stats: dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        return {
            "alert_type": str(self.type),
            "severity": str(self.severity),
            "description": self.description,
            "timestamp": self.timestamp.isoformat(),
            "order_ids": list(self.order_ids),
            "stats": dict(self.stats),
        }


@dataclass(frozen=True, slots=True)
class SurveillanceReport:
    strategy_id: str
    timestamp: datetime
    alerts: tuple[SurveillanceAlert, ...]
    summary: dict[str, int]


def _in_window(orders: Sequence[OrderRecord], now: datetime, window_s: float) -> list[OrderRecord]:
    cutoff = ensure_utc(now) - timedelta(seconds=float(window_s))
    return sorted(
        (o for o in orders if ensure_utc(o.created_at) >= cutoff),
        key=lambda o: ensure_utc(o.created_at),
    )


def _by_symbol(orders: Sequence[OrderRecord]) -> dict[str, list[OrderRecord]]:
    groups: dict[str, list[OrderRecord]] = defaultdict(list)
    for o in orders:
        groups[o.symbol.upper()].append(o)
    return groups


def _exec_price(o: OrderRecord) -> float:
    if o.filled_price is not None:
        return float(o.filled_price)
    return float(o.price or 0.0)


def detect_wash_trading(
    orders: Sequence[OrderRecord],
    *,
    now: datetime,
    window_s: float = 3600.0,
    price_tolerance: float = 0.01,
) -> list[SurveillanceAlert]:
    fills = [o for o in _in_window(orders, now, window_s) if o.status == OrderStatus.FILLED]
    alerts: list[SurveillanceAlert] = []
    for symbol, group in _by_symbol(fills).items():
        buys = [o for o in group if o.side == Side.BUY]
        sells = [o for o in group if o.side == Side.SELL]
        for buy in buys:
            buy_px = _exec_price(buy)
            if buy_px <= 0:
                continue
            for sell in sells:
                sell_px = _exec_price(sell)
                gap = abs((ensure_utc(sell.created_at) - ensure_utc(buy.created_at)).total_seconds())
                price_diff = abs(sell_px - buy_px) / buy_px
                if gap < window_s and price_diff < price_tolerance and buy.quantity == sell.quantity:
                    alerts.append(
                        SurveillanceAlert(
                            type=AlertType.WASH_TRADING,
                            severity=Severity.HIGH,
                            description=(
                                f"Potential wash trading detected in {symbol}: buy/sell at similar price "
                                f"({buy_px:.2f} vs {sell_px:.2f}) within {int(gap // 60)} minutes"
                            ),
                            timestamp=now,
                            order_ids=(buy.id, sell.id),
                            stats={"price_diff": price_diff, "gap_s": gap, "quantity": buy.quantity},
                        )
                    )
    return alerts


def detect_layering(
    orders: Sequence[OrderRecord],
    *,
    now: datetime,
    window_s: float = 300.0,
    cancel_rate: float = 0.70,
    min_cancelled: int = 5,
) -> list[SurveillanceAlert]:
    recent = _in_window(orders, now, window_s)
    cancelled = [o for o in recent if o.status == OrderStatus.CANCELLED]
    filled = [o for o in recent if o.status == OrderStatus.FILLED]
    if len(cancelled) <= min_cancelled or not filled:
        return []

    rate = len(cancelled) / len(recent)
    if rate <= cancel_rate:
        return []
    return [
        SurveillanceAlert(
            type=AlertType.LAYERING,
            severity=Severity.MEDIUM,
            description=f"High order cancellation rate ({rate * 100:.1f}%) with filled orders detected",
            timestamp=now,
            order_ids=tuple(o.id for o in cancelled),
            stats={"cancelled": len(cancelled), "filled": len(filled), "cancellation_rate": rate},
        )
    ]


def detect_excessive_velocity(
    orders: Sequence[OrderRecord],
    *,
    now: datetime,
    window_s: float = 60.0,
    max_fills: int = 50,
) -> list[SurveillanceAlert]:
    fills = [o for o in _in_window(orders, now, window_s) if o.status == OrderStatus.FILLED]
    if len(fills) <= max_fills:
        return []
    per_minute = len(fills) / (float(window_s) / 60.0)
    return [
        SurveillanceAlert(
            type=AlertType.EXCESSIVE_VELOCITY,
            severity=Severity.MEDIUM,
            description=f"Abnormally high trading velocity: {len(fills)} trades in {window_s:g} seconds",
            timestamp=now,
            stats={"fills": len(fills), "trades_per_minute": per_minute},
        )
    ]


def detect_spoofing(
    orders: Sequence[OrderRecord],
    *,
    now: datetime,
    window_s: float = 600.0,
    max_gap_s: float = 120.0,
    size_ratio: float = 2.0,
) -> list[SurveillanceAlert]:
    alerts: list[SurveillanceAlert] = []
    for symbol, group in _by_symbol(_in_window(orders, now, window_s)).items():
        for first, second in pairwise(group):
            if first.status != OrderStatus.CANCELLED or second.status != OrderStatus.FILLED:
                continue
            if first.side == second.side:
                continue
            if first.quantity < second.quantity * size_ratio:
                continue
            gap = (ensure_utc(second.created_at) - ensure_utc(first.created_at)).total_seconds()
            if 0 <= gap < max_gap_s:
                alerts.append(
                    SurveillanceAlert(
                        type=AlertType.SPOOFING,
                        severity=Severity.HIGH,
                        description=(
                            f"Potential spoofing in {symbol}: large {first.side} order cancelled, "
                            f"followed by opposite {second.side} fill"
                        ),
                        timestamp=now,
                        order_ids=(first.id, second.id),
                        stats={"cancelled_qty": first.quantity, "filled_qty": second.quantity, "gap_s": gap},
                    )
                )
    return alerts


def summarize(alerts: Sequence[SurveillanceAlert]) -> dict[str, int]:
    summary = {"total": len(alerts)}
    for sev in Severity:
        summary[str(sev)] = sum(1 for a in alerts if a.severity == sev)
    return summary


class MarketAbuseSurveillance:
    def __init__(
        self,
        orders: OrderHistory,
        *,
        audit: AuditSink | None = None,
        config: SurveillanceConfig | None = None,
    ) -> None:
        self.orders = orders
        self.audit = audit
        self.config = config or SurveillanceConfig()

    def _lookback_s(self) -> float:
        c = self.config
        return max(c.wash_window_s, c.layering_window_s, c.velocity_window_s, c.spoofing_window_s)

    def scan(self, orders: Sequence[OrderRecord], *, now: datetime) -> list[SurveillanceAlert]:
        c = self.config
        return [
            *detect_wash_trading(orders, now=now, window_s=c.wash_window_s, price_tolerance=c.wash_price_tolerance),
            *detect_layering(
                orders,
                now=now,
                window_s=c.layering_window_s,
                cancel_rate=c.layering_cancel_rate,
                min_cancelled=c.layering_min_cancelled,
            ),
            *detect_excessive_velocity(orders, now=now, window_s=c.velocity_window_s, max_fills=c.velocity_max_fills),
            *detect_spoofing(
                orders,
                now=now,
                window_s=c.spoofing_window_s,
                max_gap_s=c.spoofing_gap_s,
                size_ratio=c.spoofing_size_ratio,
            ),
        ]

    def run_surveillance(self, strategy_id: str, *, now: datetime | None = None) -> SurveillanceReport:
        current = ensure_utc(now or utc_now())
        since = current - timedelta(seconds=self._lookback_s())
        orders = self.orders.orders_since(strategy_id, since)

        alerts = self.scan(orders, now=current)
        reportable = [a for a in alerts if a.severity.reportable]
        if reportable:
            self._report(strategy_id, reportable)

        return SurveillanceReport(
            strategy_id=strategy_id,
            timestamp=current,
            alerts=tuple(alerts),
            summary=summarize(alerts),
        )

    def _report(self, strategy_id: str, alerts: Sequence[SurveillanceAlert]) -> None:
        logger.warning(
            "market_abuse_alerts_reported",
            extra={"strategy_id": strategy_id, "count": len(alerts)},
        )
        if self.audit is None:
            return
        for alert in alerts:
            self.audit.log_action(MARKET_ABUSE_ALERT, strategy_id, alert.as_dict())
