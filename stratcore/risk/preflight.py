"""stratcore.risk.preflight

Pre-trade validation.

Every check runs, in a fixed order, on every proposal:
- ``position_size``: proposed notional / account value <= max_position_pct
- ``portfolio_exposure``: open exposure / account value <= max_exposure_pct
- ``position_count``: open positions < max_positions
- ``price_sanity``: price is positive and finite
- ``signal_confidence``: confidence >= min_confidence

Approval requires all of them. Failed high/critical checks raise a risk alert
in the audit sink.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from stratcore.compliance.audit import RISK_ALERT, RISK_CHECK, AuditSink
from stratcore.core.types import PositionSnapshot, Severity, Side
from stratcore.risk.checks import RiskCheckResult
from stratcore.risk.sizing import RiskLimits

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TradeProposal:
    strategy_id: str
    symbol: str
    side: Side
    quantity: float
    price: float
    confidence: float  # 0..1

    @property
    def notional(self) -> float:
        return abs(float(self.quantity) * float(self.price))


@dataclass(frozen=True, slots=True)
class PreTradeResult:
    approved: bool
    checks: tuple[RiskCheckResult, ...] = ()
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def failed(self) -> list[RiskCheckResult]:
        return [c for c in self.checks if not c.passed]

    @property
    def reasons(self) -> list[str]:
        return [c.reason for c in self.failed]


def _pct(x: float) -> str:
    return f"{x * 100:.2f}%"


class PreTradeValidator:
    def __init__(
        self,
        *,
        limits: RiskLimits | None = None,
        audit: AuditSink | None = None,
        record_checks: bool = True,
    ) -> None:
        self.limits = limits or RiskLimits()
        self.audit = audit
        self.record_checks = record_checks

    def validate(
        self,
        proposal: TradeProposal,
        *,
        account_value: float,
        open_positions: Sequence[PositionSnapshot] = (),
    ) -> PreTradeResult:
        lim = self.limits
        acct = float(account_value)
        checks = (
            self._position_size(proposal, acct),
            self._portfolio_exposure(open_positions, acct),
            self._position_count(open_positions),
            self._price_sanity(proposal.price),
            self._signal_confidence(proposal.confidence),
        )
        approved = all(c.passed for c in checks)
        result = PreTradeResult(
            approved=approved,
            checks=checks,
            details={
                "strategy_id": proposal.strategy_id,
                "symbol": proposal.symbol,
                "side": str(proposal.side),
                "notional": proposal.notional,
                "account_value": acct,
                "max_position_pct": lim.max_position_pct,
            },
        )

        for check in result.failed:
            if check.severity is not None and check.severity.reportable:
                self._alert(proposal, check)
        if self.audit is not None and self.record_checks:
            self.audit.log_action(
                RISK_CHECK,
                proposal.strategy_id,
                {
                    "symbol": proposal.symbol,
                    "approved": approved,
                    "checks": [c.as_dict() for c in checks],
                },
            )

        logger.info(
            "pretrade_validated",
            extra={"strategy_id": proposal.strategy_id, "symbol": proposal.symbol, "approved": approved},
        )
        return result

    def _alert(self, proposal: TradeProposal, check: RiskCheckResult) -> None:
        logger.warning(
            "risk_alert",
            extra={"strategy_id": proposal.strategy_id, "check": check.name, "severity": str(check.severity)},
        )
        if self.audit is None:
            return
        self.audit.log_action(
            RISK_ALERT,
            proposal.strategy_id,
            {
                "check": check.name,
                "severity": str(check.severity),
                "message": check.reason,
                "symbol": proposal.symbol,
                "quantity": proposal.quantity,
                "price": proposal.price,
            },
        )

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    def _position_size(self, proposal: TradeProposal, acct: float) -> RiskCheckResult:
        limit = self.limits.max_position_pct
        frac = proposal.notional / acct if acct > 0 else math.inf
        if not frac <= limit:
            return RiskCheckResult.fail(
                "position_size",
                f"Position size {_pct(frac)} exceeds limit of {_pct(limit)}",
                Severity.HIGH,
            )
        return RiskCheckResult.ok("position_size", f"Position size {_pct(frac)} within limit")

    def _portfolio_exposure(self, positions: Sequence[PositionSnapshot], acct: float) -> RiskCheckResult:
        limit = self.limits.max_exposure_pct
        exposure = sum(p.market_value for p in positions)
        frac = exposure / acct if acct > 0 else (0.0 if exposure == 0 else math.inf)
        if frac > limit:
            return RiskCheckResult.fail(
                "portfolio_exposure",
                f"Total exposure {_pct(frac)} exceeds maximum {_pct(limit)}",
                Severity.CRITICAL,
            )
        return RiskCheckResult.ok("portfolio_exposure", f"Total exposure {_pct(frac)} within limits")

    def _position_count(self, positions: Sequence[PositionSnapshot]) -> RiskCheckResult:
        limit = self.limits.max_positions
        n = len(positions)
        if n >= limit:
            return RiskCheckResult.fail(
                "position_count",
                f"Maximum number of positions ({limit}) reached",
                Severity.MEDIUM,
            )
        return RiskCheckResult.ok("position_count", f"Position count {n}/{limit} acceptable")

    def _price_sanity(self, price: float) -> RiskCheckResult:
        px = float(price)
        if not math.isfinite(px) or px <= 0:
            return RiskCheckResult.fail("price_sanity", f"Invalid price: ${px}", Severity.CRITICAL)
        return RiskCheckResult.ok("price_sanity", "Price validation passed")

    def _signal_confidence(self, confidence: float) -> RiskCheckResult:
        limit = self.limits.min_confidence
        c = float(confidence)
        if not c >= limit:
            return RiskCheckResult.fail(
                "signal_confidence",
                f"Signal confidence {_pct(c)} below minimum {_pct(limit)}",
                Severity.MEDIUM,
            )
        return RiskCheckResult.ok("signal_confidence", f"Signal confidence {_pct(c)} acceptable")
