"""stratcore.compliance.reporting

Compliance reports over audit entries.

Score: start at 100, minus 5 per high/critical risk alert, minus 10 per
circuit-breaker activation, clamped to [0, 100].
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from stratcore.compliance.audit import (
    CIRCUIT_BREAKER_TRIGGERED,
    RISK_ALERT,
    TRADE_EXECUTED,
    AuditEntry,
)
from stratcore.core.time import ensure_utc
from stratcore.core.types import Severity

# Average position size (percent of account) above which a report recommends
# cutting exposure.
POSITION_SIZE_WARN_PCT = 5.0
SCORE_WARN = 70


@dataclass(frozen=True, slots=True)
class ComplianceReport:
    strategy_id: str
    start: datetime
    end: datetime
    total_trades: int
    risk_violations: int
    circuit_breaker_activations: int
    average_position_size: float
    compliance_score: int
    recommendations: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class AuditTrailSummary:
    total_events: int
    event_types: dict[str, int] = field(default_factory=dict)
    risk_checks_performed: int = 0


def _select(entries: Iterable[AuditEntry], strategy_id: str, start: datetime, end: datetime) -> list[AuditEntry]:
    lo, hi = ensure_utc(start), ensure_utc(end)
    return [e for e in entries if e.actor == strategy_id and lo <= ensure_utc(e.ts) <= hi]


def _is_violation(entry: AuditEntry) -> bool:
    if entry.action != RISK_ALERT:
        return False
    try:
        return Severity(str(entry.details.get("severity", ""))).reportable
    except ValueError:
        return False


def build_compliance_report(
    entries: Iterable[AuditEntry],
    strategy_id: str,
    start: datetime,
    end: datetime,
) -> ComplianceReport:
    selected = _select(entries, strategy_id, start, end)

    trades = [e for e in selected if e.action == TRADE_EXECUTED]
    violations = sum(1 for e in selected if _is_violation(e))
    breakers = sum(1 for e in selected if e.action == CIRCUIT_BREAKER_TRIGGERED)

    sizes = [float(e.details["position_size"]) for e in trades if e.details.get("position_size")]
    avg_size = sum(sizes) / len(sizes) if sizes else 0.0

    score = max(0, min(100, 100 - violations * 5 - breakers * 10))

    recs: list[str] = []
    if violations > 5:
        recs.append("High number of risk violations detected. Review risk parameters.")
    if breakers > 0:
        recs.append("Circuit breaker activated. Consider reducing position sizes or daily loss limits.")
    if avg_size > POSITION_SIZE_WARN_PCT:
        recs.append("Average position size exceeds recommended threshold. Consider reducing exposure.")
    if score < SCORE_WARN:
        recs.append("Compliance score below acceptable threshold. Immediate review required.")

    return ComplianceReport(
        strategy_id=strategy_id,
        start=ensure_utc(start),
        end=ensure_utc(end),
        total_trades=len(trades),
        risk_violations=violations,
        circuit_breaker_activations=breakers,
        average_position_size=avg_size,
        compliance_score=score,
        recommendations=tuple(recs),
    )


def summarize_audit_trail(entries: Iterable[AuditEntry]) -> AuditTrailSummary:
    items = list(entries)
    counts = Counter(e.action for e in items)
    checks = sum(1 for e in items if e.details.get("checks"))
    return AuditTrailSummary(
        total_events=len(items),
        event_types=dict(sorted(counts.items())),
        risk_checks_performed=checks,
    )
