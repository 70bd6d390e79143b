"""stratcore.compliance

Compliance detectors and the audit trail.

Detectors read persisted orders only and never mutate them. Their findings go
to an append-only audit sink.
"""

from __future__ import annotations

from stratcore.compliance.audit import AuditEntry, AuditLogger, AuditSink, InMemoryAuditSink, log_trade_executed
from stratcore.compliance.orders import InMemoryOrderHistory, OrderHistory
from stratcore.compliance.pdt import DayTradeRecord, PatternDayTraderTracker, PDTHistory, PDTStatus, find_day_trades
from stratcore.compliance.reporting import ComplianceReport, build_compliance_report, summarize_audit_trail
from stratcore.compliance.surveillance import (
    AlertType,
    MarketAbuseSurveillance,
    SurveillanceAlert,
    SurveillanceReport,
)

__all__ = [
    "AuditEntry",
    "AuditLogger",
    "AuditSink",
    "InMemoryAuditSink",
    "log_trade_executed",
    "OrderHistory",
    "InMemoryOrderHistory",
    "DayTradeRecord",
    "PDTStatus",
    "PDTHistory",
    "PatternDayTraderTracker",
    "find_day_trades",
    "AlertType",
    "SurveillanceAlert",
    "SurveillanceReport",
    "MarketAbuseSurveillance",
    "ComplianceReport",
    "build_compliance_report",
    "summarize_audit_trail",
]
