from __future__ import annotations

from datetime import UTC, datetime, timedelta

from stratcore.compliance.audit import (
    DAY_TRADE,
    MARKET_ABUSE_ALERT,
    PDT_VIOLATION,
    RISK_ALERT,
    RISK_CHECK,
    AuditLogger,
    log_trade_executed,
)
from stratcore.compliance.pdt import PatternDayTraderTracker
from stratcore.compliance.reporting import build_compliance_report, summarize_audit_trail
from stratcore.compliance.surveillance import MarketAbuseSurveillance
from stratcore.core.config import Config
from stratcore.core.database import Database
from stratcore.core.types import OrderStatus, Side
from stratcore.risk.preflight import PreTradeValidator, TradeProposal
from stratcore.risk.sizing import RiskLimits

NOW = datetime(2024, 1, 12, 15, 0, tzinfo=UTC)


def test_orders_flow_through_pdt_surveillance_and_reporting(test_config: Config, make_order) -> None:
    db = Database(test_config.data_dir / "stratcore.db")
    try:
        audit = AuditLogger(db)

        for day in (9, 10, 11):
            db.insert_order(make_order("buy", datetime(2024, 1, day, 14, tzinfo=UTC)))
            db.insert_order(make_order("sell", datetime(2024, 1, day, 15, tzinfo=UTC)))
        db.insert_order(make_order("buy", NOW - timedelta(minutes=30), symbol="TSLA", quantity=5))

        tracker = PatternDayTraderTracker(db, audit=audit, config=test_config.compliance)
        status = tracker.check_status("s1", 10_000.0, now=NOW)
        assert status.day_trade_count == 3
        assert status.warning is not None

        blocked = tracker.validate_day_trade("s1", "TSLA", 10_000.0, now=NOW)
        assert not blocked.allowed
        assert len(tracker.history("s1", now=NOW).violations) == 1
        allowed = tracker.validate_day_trade("s1", "TSLA", 50_000.0, now=NOW)
        assert allowed.allowed and allowed.would_be_day_trade

        db.insert_order(make_order("sell", NOW - timedelta(minutes=20), symbol="TSLA", quantity=5, filled_price=100.2))
        db.insert_order(
            make_order("buy", NOW - timedelta(minutes=3), symbol="NVDA", quantity=100, status=OrderStatus.CANCELLED)
        )
        db.insert_order(make_order("sell", NOW - timedelta(minutes=2), symbol="NVDA", quantity=10))

        report = MarketAbuseSurveillance(db, audit=audit, config=test_config.surveillance).run_surveillance(
            "s1", now=NOW
        )
        assert sorted(str(a.type) for a in report.alerts) == ["spoofing", "wash_trading"]
        assert report.summary["high"] == 2

        validator = PreTradeValidator(limits=RiskLimits.from_config(test_config.risk), audit=audit)
        res = validator.validate(
            TradeProposal("s1", "AAPL", Side.BUY, quantity=500, price=100.0, confidence=0.9),
            account_value=100_000.0,
        )
        assert not res.approved
        log_trade_executed(audit, "s1", symbol="AAPL", side="buy", quantity=50, price=100.0, position_size_pct=5.0)

        actions = [e.action for e in audit.query(limit=50)]
        assert actions.count(MARKET_ABUSE_ALERT) == 2
        assert PDT_VIOLATION in actions and DAY_TRADE in actions
        assert RISK_ALERT in actions and RISK_CHECK in actions

        entries = audit.query(limit=50)
        lo = min(e.ts for e in entries)
        hi = max(e.ts for e in entries)
        cr = build_compliance_report(entries, "s1", lo, hi)
        assert cr.total_trades == 1
        assert cr.risk_violations == 1
        assert cr.compliance_score == 95

        summary = summarize_audit_trail(entries)
        assert summary.total_events == len(entries)
        assert summary.risk_checks_performed == 1
    finally:
        db.close()
