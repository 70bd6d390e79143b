"""stratcore.compliance.orders

Read side of the live order history.

The detectors only ever read orders. :class:`~stratcore.core.database.Database`
satisfies :class:`OrderHistory`; :class:`InMemoryOrderHistory` serves tests and
callers that already hold the orders.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

from stratcore.core.time import ensure_utc
from stratcore.core.types import OrderRecord, OrderStatus, Side


class OrderHistory(Protocol):
    def orders_since(
        self,
        strategy_id: str,
        since: datetime,
        *,
        symbol: str | None = None,
        status: OrderStatus | None = None,
        side: Side | None = None,
    ) -> list[OrderRecord]: ...


@dataclass
class InMemoryOrderHistory:
    orders: list[OrderRecord] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def add(self, *orders: OrderRecord) -> None:
        with self._lock:
            self.orders.extend(orders)

    def extend(self, orders: Iterable[OrderRecord]) -> None:
        self.add(*orders)

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

        cutoff = ensure_utc(since)
        with self._lock:
            items = list(self.orders)
        out = [
            o
            for o in items
            if o.strategy_id == strategy_id
            and ensure_utc(o.created_at) >= cutoff
            and (symbol is None or o.symbol.upper() == symbol.upper())
            and (status is None or o.status == status)
            and (side is None or o.side == side)
        ]
        return sorted(out, key=lambda o: ensure_utc(o.created_at))
