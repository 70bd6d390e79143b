"""stratcore: strategy simulation, risk and compliance core.

Replay history before risking capital. Check every trade before it leaves.
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "1.0.0"
