from __future__ import annotations

import itertools
import shutil
import sys
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

import pytest

# pytest may run without installing the project; ensure repo root is importable.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from stratcore.core.config import Config  # noqa: E402
from stratcore.core.types import OrderRecord, OrderStatus, Side  # noqa: E402


@pytest.fixture()
def temp_dir(tmp_path: Path) -> Path:
    return tmp_path


@pytest.fixture()
def test_config(temp_dir: Path) -> Config:
    """Config fixture that points data_dir to a temp directory."""

    repo_root = Path(__file__).resolve().parents[1]
    cfg_src = repo_root / "config" / "default.yaml"
    cfg_dst_dir = temp_dir / "config"
    cfg_dst_dir.mkdir(parents=True, exist_ok=True)

    # copy default + presets
    shutil.copy2(cfg_src, cfg_dst_dir / "default.yaml")
    shutil.copytree(repo_root / "config" / "presets", cfg_dst_dir / "presets")

    c = Config.from_yaml(cfg_dst_dir / "default.yaml")
    return c.model_copy(update={"data_dir": temp_dir / "data", "config_dir": cfg_dst_dir})


OrderFactory = Callable[..., OrderRecord]


@pytest.fixture()
def make_order() -> OrderFactory:
    """Build OrderRecords with sequential ids."""

    counter = itertools.count(1)

    def _make(
        side: Side | str,
        created_at: datetime,
        *,
        symbol: str = "AAPL",
        quantity: float = 10,
        status: OrderStatus = OrderStatus.FILLED,
        filled_price: float | None = 100.0,
        strategy_id: str = "s1",
    ) -> OrderRecord:
        return OrderRecord(
            id=f"o{next(counter)}",
            strategy_id=strategy_id,
            symbol=symbol,
            side=Side(side),
            quantity=quantity,
            status=status,
            created_at=created_at,
            filled_price=filled_price if status == OrderStatus.FILLED else None,
            price=filled_price,
        )

    return _make
