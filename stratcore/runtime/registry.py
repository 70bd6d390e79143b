"""stratcore.runtime.registry

Strategy ownership.

At most one simulation or live cycle runs per strategy at a time. Callers take
ownership through :meth:`StrategyRegistry.acquire`; a second caller gets
:class:`~stratcore.core.exceptions.StrategyBusyError` instead of waiting.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from stratcore.core.exceptions import StrategyBusyError
from stratcore.core.time import utc_now


@dataclass
class StrategyHandle:
    strategy_id: str
    metadata: dict[str, Any] = field(default_factory=dict)
    owner: str | None = None
    acquired_at: datetime | None = None
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @property
    def busy(self) -> bool:
        return self._lock.locked()


class StrategyRegistry:
    def __init__(self) -> None:
        self._handles: dict[str, StrategyHandle] = {}
        self._lock = threading.Lock()

    def register(self, strategy_id: str, *, metadata: dict[str, Any] | None = None) -> StrategyHandle:
        """Register a strategy. Registering twice returns the existing handle."""

        with self._lock:
            handle = self._handles.get(strategy_id)
            if handle is None:
                handle = StrategyHandle(strategy_id=strategy_id, metadata=dict(metadata or {}))
                self._handles[strategy_id] = handle
            elif metadata:
                handle.metadata.update(metadata)
            return handle

    def unregister(self, strategy_id: str) -> None:
        with self._lock:
            handle = self._handles.get(strategy_id)
            if handle is not None and handle.busy:
                raise StrategyBusyError(f"strategy {strategy_id} is busy (owner={handle.owner})")
            self._handles.pop(strategy_id, None)

    def get(self, strategy_id: str) -> StrategyHandle:
        with self._lock:
            handle = self._handles.get(strategy_id)
        if handle is None:
            raise KeyError(f"unknown strategy: {strategy_id}")
        return handle

    def __contains__(self, strategy_id: object) -> bool:
        with self._lock:
            return strategy_id in self._handles

    @contextmanager
    def acquire(self, strategy_id: str, *, owner: str = "anonymous") -> Iterator[StrategyHandle]:
        handle = self.get(strategy_id)
        if not handle._lock.acquire(blocking=False):
            raise StrategyBusyError(f"strategy {strategy_id} is busy (owner={handle.owner})")
        handle.owner = owner
        handle.acquired_at = utc_now()
        try:
            yield handle
        finally:
            handle.owner = None
            handle.acquired_at = None
            handle._lock.release()

    def status(self) -> list[dict[str, Any]]:
        with self._lock:
            handles = sorted(self._handles.values(), key=lambda h: h.strategy_id)
        return [
            {
                "strategy_id": h.strategy_id,
                "busy": h.busy,
                "owner": h.owner,
                "acquired_at": h.acquired_at.isoformat() if h.acquired_at else None,
            }
            for h in handles
        ]
