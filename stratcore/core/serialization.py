"""stratcore.core.serialization

Canonical JSON used for result snapshots and audit details.

Non-finite floats are not valid JSON; they are encoded as strings so two
identical runs always serialize to identical bytes.
"""

from __future__ import annotations

import json
import math
from datetime import date, datetime
from enum import Enum
from typing import Any

UNBOUNDED_TOKEN = "unbounded"


def jsonable(value: Any) -> Any:
    """Convert a nested structure into plain JSON types."""

    if isinstance(value, float):
        if math.isnan(value):
            return None
        if math.isinf(value):
            return UNBOUNDED_TOKEN if value > 0 else f"-{UNBOUNDED_TOKEN}"
        return value
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime | date):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): jsonable(v) for k, v in value.items()}
    if isinstance(value, list | tuple):
        return [jsonable(v) for v in value]
    return value


def canonical_json(data: Any) -> str:
    """Canonical JSON serialization used for snapshots and dedupe."""

    return json.dumps(jsonable(data), sort_keys=True, separators=(",", ":"), ensure_ascii=False)
