"""stratcore.risk.checks

One named validation outcome.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from stratcore.core.types import Severity


@dataclass(frozen=True, slots=True)
class RiskCheckResult:
    name: str
    passed: bool
    reason: str
    severity: Severity | None = None  # set only when the check failed

    @classmethod
    def ok(cls, name: str, reason: str) -> RiskCheckResult:
        return cls(name=name, passed=True, reason=reason)

    @classmethod
    def fail(cls, name: str, reason: str, severity: Severity) -> RiskCheckResult:
        return cls(name=name, passed=False, reason=reason, severity=severity)

    def as_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "passed": self.passed,
            "reason": self.reason,
            "severity": str(self.severity) if self.severity is not None else None,
        }
