"""stratcore.runtime

Strategy ownership and periodic cycles for live operation.
"""

from __future__ import annotations

from stratcore.runtime.registry import StrategyHandle, StrategyRegistry
from stratcore.runtime.scheduler import CycleScheduler, CycleStatus

__all__ = ["StrategyRegistry", "StrategyHandle", "CycleScheduler", "CycleStatus"]
