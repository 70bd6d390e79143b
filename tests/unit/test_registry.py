from __future__ import annotations

import pytest

from stratcore.core.exceptions import StrategyBusyError
from stratcore.runtime.registry import StrategyRegistry


def test_register_is_idempotent() -> None:
    reg = StrategyRegistry()
    first = reg.register("s1", metadata={"kind": "backtest"})
    second = reg.register("s1", metadata={"owner": "ops"})
    assert first is second
    assert first.metadata == {"kind": "backtest", "owner": "ops"}
    assert "s1" in reg
    assert "s2" not in reg


def test_get_unknown_raises() -> None:
    with pytest.raises(KeyError):
        StrategyRegistry().get("nope")


def test_acquire_is_exclusive_and_released() -> None:
    reg = StrategyRegistry()
    reg.register("s1")

    with reg.acquire("s1", owner="backtest") as handle:
        assert handle.busy
        assert handle.owner == "backtest"
        assert reg.status()[0]["busy"] is True
        with pytest.raises(StrategyBusyError):
            with reg.acquire("s1", owner="live"):
                pass
        with pytest.raises(StrategyBusyError):
            reg.unregister("s1")

    assert not reg.get("s1").busy
    assert reg.get("s1").owner is None
    reg.unregister("s1")
    assert "s1" not in reg


def test_acquire_releases_on_error() -> None:
    reg = StrategyRegistry()
    reg.register("s1")
    with pytest.raises(RuntimeError):
        with reg.acquire("s1"):
            raise RuntimeError("cycle failed")
    assert not reg.get("s1").busy


def test_status_sorted() -> None:
    reg = StrategyRegistry()
    reg.register("b")
    reg.register("a")
    assert [s["strategy_id"] for s in reg.status()] == ["a", "b"]
