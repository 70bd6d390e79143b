"""stratcore.backtest.signals

Trade-decision sources.

The engine treats a signal source as opaque: it asks for a decision per
symbol per bar and gets back a :class:`~stratcore.core.types.TradeSignal`.

Language-model analysts return loosely typed JSON. ``parse_signal`` is the
boundary: it validates with pydantic and degrades to ``hold`` on anything it
cannot trust.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Protocol

from pydantic import AliasChoices, BaseModel, Field, ValidationError, field_validator

from stratcore.core.types import Action, TradeSignal

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BarContext:
    """What a signal source sees for one symbol on one bar."""

    date: date
    price: float
    volume: float
    indicators: Mapping[str, float] = field(default_factory=dict)


class SignalSource(Protocol):
    def decide(self, symbol: str, ctx: BarContext) -> TradeSignal: ...


class SignalPayload(BaseModel):
    action: Action = Field(validation_alias=AliasChoices("action", "recommendation"))
    confidence: float = Field(default=0.0, ge=0.0, le=100.0)
    reasoning: str = Field(default="", validation_alias=AliasChoices("reasoning", "reason"))

    @field_validator("action", mode="before")
    @classmethod
    def normalize_action(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lower()
        return v


def parse_signal(raw: str | bytes | Mapping[str, Any]) -> TradeSignal:
    """Validate a raw analyst payload into a TradeSignal.

    Confidence above 1 is read as a percentage (0-100) and scaled down.
    Malformed payloads become ``hold`` with the failure in ``reasoning``.
    """

    try:
        data = json.loads(raw) if isinstance(raw, str | bytes) else dict(raw)
        if not isinstance(data, dict):
            raise ValueError("signal payload must be an object")
        payload = SignalPayload.model_validate(data)
    except (ValueError, TypeError, ValidationError) as e:
        logger.warning("signal_payload_invalid", extra={"error": str(e)})
        return TradeSignal.hold("invalid signal payload")

    confidence = payload.confidence
    if confidence > 1.0:
        confidence = confidence / 100.0
    return TradeSignal(action=payload.action, confidence=confidence, reasoning=payload.reasoning)


@dataclass(frozen=True, slots=True)
class IndicatorSignalSource:
    """Deterministic technical rule used when no analyst is attached.

    Buy when RSI is oversold, the MACD histogram is positive and price is
    above SMA20. Hold otherwise, including while indicators warm up.
    """

    rsi_oversold: float = 30.0
    confidence: float = 0.8

    def decide(self, symbol: str, ctx: BarContext) -> TradeSignal:
        ind = ctx.indicators
        rsi = ind.get("rsi")
        hist = ind.get("macd_histogram")
        sma20 = ind.get("sma20")
        if rsi is None or hist is None or sma20 is None:
            return TradeSignal.hold("indicators warming up")

        if rsi < self.rsi_oversold and hist > 0 and ctx.price > sma20:
            return TradeSignal(
                action=Action.BUY,
                confidence=self.confidence,
                reasoning="RSI oversold + MACD bullish + above SMA20",
            )
        return TradeSignal.hold()
