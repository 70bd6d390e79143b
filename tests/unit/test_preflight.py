from __future__ import annotations

import math

from stratcore.compliance.audit import RISK_ALERT, RISK_CHECK, InMemoryAuditSink
from stratcore.core.types import PositionSnapshot, Severity, Side
from stratcore.risk.preflight import PreTradeValidator, TradeProposal
from stratcore.risk.sizing import RiskLimits


def _proposal(**kw) -> TradeProposal:
    base = {
        "strategy_id": "s1",
        "symbol": "AAPL",
        "side": Side.BUY,
        "quantity": 50,
        "price": 100.0,
        "confidence": 0.8,
    }
    base.update(kw)
    return TradeProposal(**base)


def test_clean_proposal_is_approved_and_recorded() -> None:
    audit = InMemoryAuditSink()
    res = PreTradeValidator(audit=audit).validate(_proposal(), account_value=100_000.0)

    assert res.approved
    assert [c.name for c in res.checks] == [
        "position_size",
        "portfolio_exposure",
        "position_count",
        "price_sanity",
        "signal_confidence",
    ]
    assert res.failed == []
    assert audit.actions() == [RISK_CHECK]
    assert len(audit.entries[0].details["checks"]) == 5


def test_oversized_position_fails_high_and_alerts() -> None:
    audit = InMemoryAuditSink()
    res = PreTradeValidator(audit=audit).validate(_proposal(quantity=200), account_value=100_000.0)

    assert not res.approved
    (failed,) = res.failed
    assert failed.name == "position_size"
    assert failed.severity == Severity.HIGH
    assert "20.00%" in failed.reason
    assert audit.actions() == [RISK_ALERT, RISK_CHECK]
    assert audit.entries[0].details["check"] == "position_size"


def test_every_check_runs_even_after_a_failure() -> None:
    res = PreTradeValidator().validate(
        _proposal(quantity=1_000, price=-5.0, confidence=0.1),
        account_value=100_000.0,
    )
    names = [c.name for c in res.failed]
    assert names == ["price_sanity", "signal_confidence"]
    assert len(res.checks) == 5


def test_exposure_and_count_use_existing_positions() -> None:
    positions = [PositionSnapshot(symbol=f"S{i}", quantity=50, current_price=100.0) for i in range(6)]
    lim = RiskLimits(max_positions=6)
    res = PreTradeValidator(limits=lim).validate(_proposal(quantity=10), account_value=100_000.0, open_positions=positions)

    by_name = {c.name: c for c in res.checks}
    assert by_name["portfolio_exposure"].passed
    assert not by_name["position_count"].passed
    assert by_name["position_count"].severity == Severity.MEDIUM


def test_excess_exposure_is_critical() -> None:
    audit = InMemoryAuditSink()
    positions = [PositionSnapshot(symbol="BIG", quantity=600, current_price=100.0)]
    res = PreTradeValidator(audit=audit).validate(_proposal(quantity=1), account_value=100_000.0, open_positions=positions)

    failed = {c.name: c for c in res.failed}
    assert failed["portfolio_exposure"].severity == Severity.CRITICAL
    assert RISK_ALERT in audit.actions()


def test_medium_failures_are_not_alerted() -> None:
    audit = InMemoryAuditSink()
    res = PreTradeValidator(audit=audit).validate(_proposal(confidence=0.5), account_value=100_000.0)
    assert not res.approved
    assert res.reasons == ["Signal confidence 50.00% below minimum 60.00%"]
    assert audit.actions() == [RISK_CHECK]


def test_zero_account_fails_position_size() -> None:
    res = PreTradeValidator(record_checks=False).validate(_proposal(), account_value=0.0)
    assert not res.approved
    assert res.checks[0].name == "position_size" and not res.checks[0].passed
    assert res.details["notional"] == 5_000.0


def test_non_finite_price_fails_sanity() -> None:
    res = PreTradeValidator().validate(_proposal(price=math.nan, quantity=0), account_value=100_000.0)
    assert "price_sanity" in [c.name for c in res.failed]


def test_position_size_limit_is_inclusive() -> None:
    v = PreTradeValidator()
    at_limit = v.validate(_proposal(quantity=100, price=100.0), account_value=100_000.0)
    assert at_limit.checks[0].passed

    over = v.validate(_proposal(quantity=100, price=100.1), account_value=100_000.0)
    assert not over.checks[0].passed
