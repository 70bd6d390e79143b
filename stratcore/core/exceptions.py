"""stratcore.core.exceptions

Errors are part of the interface.

Only the fatal class raises. Rejections are values.
"""

from __future__ import annotations


class StratcoreError(Exception):
    """Base exception for stratcore."""


class ConfigError(StratcoreError):
    """Configuration is missing, invalid, or inconsistent."""


class SimulationError(StratcoreError):
    """A simulation run cannot start or continue."""


class InvalidSimConfigError(SimulationError):
    """Run request is malformed (date range, capital, symbols)."""


class NoHistoricalDataError(SimulationError):
    """Not a single usable bar for the requested range."""


class SimulationCancelled(SimulationError):
    """Caller asked the run to stop between bars."""


class MarketDataError(StratcoreError):
    """Market-data provider failed for a symbol."""


class SignalError(StratcoreError):
    """Signal source failed or returned an unusable payload."""


class AuditError(StratcoreError):
    """Audit sink rejected a write."""


class StrategyBusyError(StratcoreError):
    """Another writer already owns this strategy."""
