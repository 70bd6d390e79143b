"""stratcore.compliance.audit

Append-only audit sinks.

Risk alerts, day trades, PDT violations and market-abuse alerts all land here.
Sinks never rewrite or delete entries.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

from stratcore.core.database import Database
from stratcore.core.exceptions import AuditError
from stratcore.core.serialization import jsonable
from stratcore.core.time import ensure_utc, parse_dt, utc_now

# Action names written by this package.
RISK_ALERT = "risk_alert"
RISK_CHECK = "risk_check"
CIRCUIT_BREAKER_TRIGGERED = "circuit_breaker_triggered"
TRADE_EXECUTED = "trade_executed"
DAY_TRADE = "day_trade"
PDT_VIOLATION = "pdt_violation"
MARKET_ABUSE_ALERT = "market_abuse_alert"


class AuditSink(Protocol):
    def log_action(self, action: str, actor: str | None, details: dict[str, Any] | None = None) -> None: ...


class AuditTrail(AuditSink, Protocol):
    """A sink that can also be read back, newest entry first."""

    def query(
        self,
        action_type: str | None = None,
        since: datetime | None = None,
        limit: int = 100,
    ) -> list[AuditEntry]: ...


@dataclass(frozen=True, slots=True)
class AuditEntry:
    ts: datetime
    action: str
    actor: str | None
    component: str
    details: dict[str, Any]


@dataclass
class AuditLogger:
    """Writes compliance-relevant actions to the `audit_log` table."""

    db: Database
    component: str = "compliance"

    def log_action(self, action: str, actor: str | None, details: dict[str, Any] | None = None) -> None:
        try:
            self.db.append_audit(
                action=action,
                actor=actor,
                component=self.component,
                details=jsonable(details or {}),
            )
        except Exception as e:
            raise AuditError(f"audit write failed for {action}: {e}") from e

    def query(
        self,
        action_type: str | None = None,
        since: datetime | None = None,
        limit: int = 100,
    ) -> list[AuditEntry]:
        rows = self.db.query_audit(action=action_type, since=since, limit=limit)
        return [
            AuditEntry(
                ts=parse_dt(r["ts"]),
                action=r["action"],
                actor=r["actor"],
                component=r["component"] or "",
                details=r["details"],
            )
            for r in rows
        ]


@dataclass
class InMemoryAuditSink:
    """List-backed sink for tests and embedded use. Oldest entry first."""

    component: str = "compliance"
    entries: list[AuditEntry] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def log_action(
        self,
        action: str,
        actor: str | None,
        details: dict[str, Any] | None = None,
        *,
        ts: datetime | None = None,
    ) -> None:
        entry = AuditEntry(
            ts=ensure_utc(ts) if ts is not None else utc_now(),
            action=action,
            actor=actor,
            component=self.component,
            details=jsonable(details or {}),
        )
        with self._lock:
            self.entries.append(entry)

    def query(
        self,
        action_type: str | None = None,
        since: datetime | None = None,
        limit: int = 100,
    ) -> list[AuditEntry]:
        """Newest first, like the database-backed logger."""

        with self._lock:
            items: Iterable[AuditEntry] = list(self.entries)
        if action_type is not None:
            items = [e for e in items if e.action == action_type]
        if since is not None:
            cutoff = ensure_utc(since)
            items = [e for e in items if e.ts >= cutoff]
        return sorted(items, key=lambda e: e.ts, reverse=True)[: int(limit)]

    def actions(self) -> list[str]:
        with self._lock:
            return [e.action for e in self.entries]


def log_trade_executed(
    sink: AuditSink,
    strategy_id: str,
    *,
    symbol: str,
    side: str,
    quantity: float,
    price: float,
    position_size_pct: float,
) -> None:
    """Record an executed trade; ``position_size_pct`` is percent of account."""

    sink.log_action(
        TRADE_EXECUTED,
        strategy_id,
        {
            "symbol": symbol,
            "side": str(side),
            "quantity": float(quantity),
            "price": float(price),
            "position_size": float(position_size_pct),
        },
    )
