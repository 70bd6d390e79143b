"""stratcore.core

Core primitives.

If a module needs to exist, it should probably depend only on this package.
"""

from .config import Config
from .database import Database
from .exceptions import StratcoreError
from .time import business_days, parse_dt, utc_now
from .types import Action, OrderRecord, OrderStatus, OrderType, Severity, Side, TradeSignal

__all__ = [
    "Action",
    "Config",
    "Database",
    "OrderRecord",
    "OrderStatus",
    "OrderType",
    "Severity",
    "Side",
    "StratcoreError",
    "TradeSignal",
    "business_days",
    "parse_dt",
    "utc_now",
]
