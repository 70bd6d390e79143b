"""stratcore.core.logs

Logging setup for processes embedding stratcore.

Modules log snake_case event names with context in ``extra=``. This module only
decides where those records go and how they look.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import Any

from stratcore.core.config import LoggingConfig

# Attributes every LogRecord carries; anything else came in through ``extra=``.
_RESERVED = set(logging.LogRecord("", 0, "", 0, "", None, None).__dict__) | {"message", "asctime"}


def _extras(record: logging.LogRecord) -> dict[str, Any]:
    return {k: v for k, v in record.__dict__.items() if k not in _RESERVED and not k.startswith("_")}


class JsonFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "event": record.getMessage(),
        }
        payload.update(_extras(record))
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, sort_keys=True, default=str)


class KeyValueFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        extras = _extras(record)
        if not extras:
            return base
        tail = " ".join(f"{k}={extras[k]}" for k in sorted(extras))
        return f"{base} {tail}"


def configure_logging(cfg: LoggingConfig | None = None) -> logging.Logger:
    """Attach a single stream handler to the ``stratcore`` logger."""

    cfg = cfg or LoggingConfig()
    root = logging.getLogger("stratcore")
    root.setLevel(cfg.level.upper())

    for h in list(root.handlers):
        root.removeHandler(h)

    handler = logging.StreamHandler()
    if cfg.json_output:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(KeyValueFormatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    root.addHandler(handler)
    root.propagate = False
    return root
