"""stratcore.runtime.scheduler

Periodic strategy cycles.

The scheduler owns no threads. ``tick(now)`` runs whatever is due and returns;
``run(stop_event)`` is a thin blocking loop around it. A failing cycle is
logged and rescheduled; it never stops the loop.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from stratcore.core.config import SchedulerConfig
from stratcore.core.exceptions import StrategyBusyError
from stratcore.core.time import ensure_utc, utc_now
from stratcore.runtime.registry import StrategyRegistry

logger = logging.getLogger(__name__)

CycleFn = Callable[[str], None]

DEFAULT_INTERVAL_S = 300


@dataclass(slots=True)
class ScheduledCycle:
    strategy_id: str
    cycle: CycleFn
    interval_s: float
    next_run: datetime
    last_run: datetime | None = None
    runs: int = 0
    failures: int = 0
    last_error: str | None = None


@dataclass(frozen=True, slots=True)
class CycleStatus:
    strategy_id: str
    is_running: bool
    interval_s: float
    last_run: datetime | None
    next_run: datetime
    runs: int
    failures: int
    last_error: str | None


class CycleScheduler:
    def __init__(self, registry: StrategyRegistry | None = None, *, default_interval_s: float = DEFAULT_INTERVAL_S) -> None:
        if default_interval_s <= 0:
            raise ValueError("default_interval_s must be > 0")
        self.registry = registry or StrategyRegistry()
        self.default_interval_s = float(default_interval_s)
        self._cycles: dict[str, ScheduledCycle] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, s: SchedulerConfig, *, registry: StrategyRegistry | None = None) -> CycleScheduler:
        return cls(registry, default_interval_s=float(s.cycle_interval_seconds))

    def start(
        self,
        strategy_id: str,
        cycle: CycleFn,
        *,
        interval_s: float | None = None,
        now: datetime | None = None,
        run_immediately: bool = True,
    ) -> bool:
        """Schedule ``cycle`` for ``strategy_id``. Returns False if already scheduled."""

        interval = float(interval_s if interval_s is not None else self.default_interval_s)
        if interval <= 0:
            raise ValueError("interval_s must be > 0")
        current = ensure_utc(now or utc_now())

        with self._lock:
            if strategy_id in self._cycles:
                logger.info("cycle_already_scheduled", extra={"strategy_id": strategy_id})
                return False
            self.registry.register(strategy_id)
            first = current if run_immediately else current + timedelta(seconds=interval)
            self._cycles[strategy_id] = ScheduledCycle(
                strategy_id=strategy_id, cycle=cycle, interval_s=interval, next_run=first
            )

        logger.info("cycle_scheduled", extra={"strategy_id": strategy_id, "interval_s": interval})
        return True

    def stop(self, strategy_id: str) -> bool:
        with self._lock:
            removed = self._cycles.pop(strategy_id, None)
        if removed is None:
            logger.info("cycle_not_scheduled", extra={"strategy_id": strategy_id})
            return False
        logger.info("cycle_stopped", extra={"strategy_id": strategy_id})
        return True

    def stop_all(self) -> None:
        with self._lock:
            ids = list(self._cycles)
        for strategy_id in ids:
            self.stop(strategy_id)

    def tick(self, now: datetime | None = None) -> list[str]:
        """Run every due cycle once. Returns the strategy ids that ran."""

        current = ensure_utc(now or utc_now())
        with self._lock:
            due = sorted(
                (c for c in self._cycles.values() if c.next_run <= current),
                key=lambda c: (c.next_run, c.strategy_id),
            )

        ran: list[str] = []
        for sc in due:
            with self._lock:
                # stopped by an earlier cycle in this tick
                if self._cycles.get(sc.strategy_id) is not sc:
                    continue
            try:
                with self.registry.acquire(sc.strategy_id, owner="scheduler"):
                    try:
                        sc.cycle(sc.strategy_id)
                        sc.last_error = None
                    except Exception as e:
                        sc.failures += 1
                        sc.last_error = str(e)
                        logger.exception("cycle_failed", extra={"strategy_id": sc.strategy_id})
            except StrategyBusyError:
                logger.info("cycle_skipped_busy", extra={"strategy_id": sc.strategy_id})
                continue

            sc.runs += 1
            sc.last_run = current
            sc.next_run = current + timedelta(seconds=sc.interval_s)
            ran.append(sc.strategy_id)
        return ran

    def run(self, stop_event: threading.Event, *, poll_s: float = 1.0) -> None:
        logger.info("scheduler_started", extra={"strategies": len(self._cycles)})
        while not stop_event.is_set():
            self.tick()
            stop_event.wait(poll_s)
        logger.info("scheduler_stopped")

    def _busy(self, strategy_id: str) -> bool:
        try:
            return self.registry.get(strategy_id).busy
        except KeyError:
            return False

    def status(self) -> list[CycleStatus]:
        with self._lock:
            cycles = sorted(self._cycles.values(), key=lambda c: c.strategy_id)
        return [
            CycleStatus(
                strategy_id=c.strategy_id,
                is_running=self._busy(c.strategy_id),
                interval_s=c.interval_s,
                last_run=c.last_run,
                next_run=c.next_run,
                runs=c.runs,
                failures=c.failures,
                last_error=c.last_error,
            )
            for c in cycles
        ]
