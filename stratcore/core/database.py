"""stratcore.core.database

SQLite persistence adapter.

Two append-mostly tables:
- ``orders``: live order history, read by the compliance detectors
- ``audit_log``: alerts, day trades and risk-check entries

The simulation engine never touches this module. Compliance reads orders and
writes audit rows; nothing here is rewritten in place except order status.
"""

from __future__ import annotations

import json
import sqlite3
import threading
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from stratcore.core.types import OrderRecord, OrderStatus, OrderType, Side

SCHEMA = """
-- ============================================================
-- Orders (written by the trading layer, read by compliance)
-- ============================================================
CREATE TABLE IF NOT EXISTS orders (
    id TEXT PRIMARY KEY,
    strategy_id TEXT NOT NULL,
    symbol TEXT NOT NULL,
    side TEXT NOT NULL CHECK(side IN ('buy', 'sell')),
    type TEXT NOT NULL DEFAULT 'market' CHECK(type IN ('market', 'limit')),
    quantity REAL NOT NULL,
    price REAL,
    filled_price REAL,
    status TEXT NOT NULL DEFAULT 'pending' CHECK(status IN (
        'pending', 'submitted', 'partial', 'filled', 'cancelled', 'rejected', 'failed'
    )),
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_orders_strategy_ts ON orders(strategy_id, created_at);
CREATE INDEX IF NOT EXISTS idx_orders_symbol ON orders(symbol);

-- ============================================================
-- Audit Log (append-only)
-- ============================================================
CREATE TABLE IF NOT EXISTS audit_log (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    ts TEXT NOT NULL,
    action TEXT NOT NULL,
    actor TEXT,
    component TEXT,
    details TEXT
);

CREATE INDEX IF NOT EXISTS idx_audit_ts ON audit_log(ts);
CREATE INDEX IF NOT EXISTS idx_audit_action ON audit_log(action);
"""


def _dt_to_iso(dt: datetime | None) -> str | None:
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC).isoformat(timespec="microseconds")


def _iso_to_dt(value: str) -> datetime:
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


@dataclass
class Database:
    """SQLite store for orders and the audit trail."""

    db_path: Path

    def __post_init__(self) -> None:
        self.db_path = Path(self.db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._init_schema()

    def close(self) -> None:
        self.conn.close()

    def _init_schema(self) -> None:
        with self.conn:
            self.conn.executescript(SCHEMA)
            self.conn.execute("PRAGMA journal_mode=WAL")
            self.conn.execute("PRAGMA synchronous=NORMAL")

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    def insert_order(self, order: OrderRecord) -> None:
        with self._lock, self.conn:
            self.conn.execute(
                """
                INSERT INTO orders (
                  id, strategy_id, symbol, side, type, quantity, price, filled_price, status, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    order.id,
                    order.strategy_id,
                    order.symbol.upper(),
                    str(order.side),
                    str(order.order_type),
                    float(order.quantity),
                    float(order.price) if order.price is not None else None,
                    float(order.filled_price) if order.filled_price is not None else None,
                    str(order.status),
                    _dt_to_iso(order.created_at),
                ),
            )

    def update_order_status(
        self, order_id: str, status: OrderStatus, *, filled_price: float | None = None
    ) -> None:
        with self._lock, self.conn:
            cur = self.conn.execute(
                "UPDATE orders SET status = ?, filled_price = COALESCE(?, filled_price) WHERE id = ?",
                (str(status), filled_price, order_id),
            )
            if cur.rowcount == 0:
                raise ValueError(f"order not found: {order_id}")

    def orders_since(
        self,
        strategy_id: str,
        since: datetime,
        *,
        symbol: str | None = None,
        status: OrderStatus | None = None,
        side: Side | None = None,
    ) -> list[OrderRecord]:
        """Orders created at or after ``since``, oldest first."""

        q = "SELECT * FROM orders WHERE strategy_id = ? AND created_at >= ?"
        params: list[Any] = [strategy_id, _dt_to_iso(since)]
        if symbol is not None:
            q += " AND symbol = ?"
            params.append(symbol.upper())
        if status is not None:
            q += " AND status = ?"
            params.append(str(status))
        if side is not None:
            q += " AND side = ?"
            params.append(str(side))
        q += " ORDER BY created_at ASC, rowid ASC"

        rows = self.conn.execute(q, tuple(params)).fetchall()
        return [self._row_to_order(r) for r in rows]

    @staticmethod
    def _row_to_order(row: sqlite3.Row) -> OrderRecord:
        return OrderRecord(
            id=str(row["id"]),
            strategy_id=str(row["strategy_id"]),
            symbol=str(row["symbol"]),
            side=Side(row["side"]),
            quantity=float(row["quantity"]),
            status=OrderStatus(row["status"]),
            created_at=_iso_to_dt(str(row["created_at"])),
            order_type=OrderType(row["type"]),
            price=float(row["price"]) if row["price"] is not None else None,
            filled_price=float(row["filled_price"]) if row["filled_price"] is not None else None,
        )

    # ------------------------------------------------------------------
    # Audit log
    # ------------------------------------------------------------------

    def append_audit(
        self,
        *,
        action: str,
        actor: str | None,
        component: str,
        details: dict[str, Any],
        ts: datetime | None = None,
    ) -> None:
        payload = json.dumps(details, sort_keys=True, default=str)
        stamp = _dt_to_iso(ts or datetime.now(tz=UTC))
        with self._lock, self.conn:
            self.conn.execute(
                "INSERT INTO audit_log (ts, action, actor, component, details) VALUES (?, ?, ?, ?, ?)",
                (stamp, action, actor, component, payload),
            )

    def query_audit(
        self,
        *,
        action: str | None = None,
        since: datetime | None = None,
        limit: int = 100,
    ) -> list[dict[str, Any]]:
        q = "SELECT ts, action, actor, component, details FROM audit_log WHERE 1=1"
        params: list[Any] = []

        if action is not None:
            q += " AND action = ?"
            params.append(action)

        if since is not None:
            q += " AND ts >= ?"
            params.append(_dt_to_iso(since))

        q += " ORDER BY ts DESC, id DESC LIMIT ?"
        params.append(int(limit))

        rows = self.conn.execute(q, tuple(params)).fetchall()
        return [
            {
                "ts": r[0],
                "action": r[1],
                "actor": r[2],
                "component": r[3],
                "details": json.loads(r[4]) if r[4] else {},
            }
            for r in rows
        ]
