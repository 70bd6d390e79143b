"""stratcore.core.config

Three config surfaces only:
1) `config/default.yaml` + `config/presets/*.yaml`
2) Environment variables (`STRATCORE_` prefix, `__` nesting)
3) Explicit overrides in code

Everything else is derived.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings

from stratcore.core.exceptions import ConfigError


def _deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    result: dict[str, Any] = dict(base)
    for k, v in overlay.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _fraction(v: float) -> float:
    if not 0.0 < float(v) <= 1.0:
        raise ValueError(f"expected a fraction in (0, 1], got {v}")
    return float(v)


class BacktestSettings(BaseModel):
    commission_per_trade: float = 1.0
    position_fraction: float = 0.10
    take_profit_pct: float = 0.10
    stop_loss_pct: float = 0.05
    default_volume: float = 1_000_000.0
    default_volatility: float = 2.0
    risk_free_rate: float = 0.02
    periods_per_year: int = 252
    loader_workers: int = 4

    @field_validator("position_fraction", "take_profit_pct", "stop_loss_pct")
    @classmethod
    def fractions_in_range(cls, v: float) -> float:
        return _fraction(v)

    @field_validator("commission_per_trade", "default_volatility")
    @classmethod
    def non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("must be >= 0")
        return v

    @field_validator("default_volume")
    @classmethod
    def volume_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("default_volume must be > 0")
        return v

    @field_validator("loader_workers", "periods_per_year")
    @classmethod
    def at_least_one(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be >= 1")
        return v


class SlippageSettings(BaseModel):
    base_pct: float = 0.001
    volume_impact: float = 0.0005
    market_impact: float = 0.0002
    max_pct: float = 0.02

    @field_validator("base_pct", "volume_impact", "market_impact", "max_pct")
    @classmethod
    def non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("slippage parameters must be >= 0")
        return v


class RiskConfig(BaseModel):
    risk_per_trade_pct: float = 0.02
    max_position_pct: float = 0.10
    max_exposure_pct: float = 0.50
    max_positions: int = 10
    min_confidence: float = 0.60
    daily_loss_limit_pct: float = 0.03
    atr_stop_multiplier: float = 2.0
    default_stop_pct: float = 0.02
    reward_risk_ratio: float = 2.0

    @field_validator(
        "risk_per_trade_pct",
        "max_position_pct",
        "max_exposure_pct",
        "min_confidence",
        "daily_loss_limit_pct",
        "default_stop_pct",
    )
    @classmethod
    def fractions_in_range(cls, v: float) -> float:
        return _fraction(v)

    @field_validator("max_positions")
    @classmethod
    def max_positions_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_positions must be >= 1")
        return v


class ComplianceConfig(BaseModel):
    pdt_minimum: float = 25_000.0
    pdt_threshold: int = 4
    rolling_business_days: int = 5


class SurveillanceConfig(BaseModel):
    wash_window_s: float = 3600.0
    wash_price_tolerance: float = 0.01
    layering_window_s: float = 300.0
    layering_cancel_rate: float = 0.70
    layering_min_cancelled: int = 5
    velocity_window_s: float = 60.0
    velocity_max_fills: int = 50
    spoofing_window_s: float = 600.0
    spoofing_gap_s: float = 120.0
    spoofing_size_ratio: float = 2.0


class LoggingConfig(BaseModel):
    level: str = "INFO"
    json_output: bool = False


class AuditConfig(BaseModel):
    db_path: Path = Path("data/stratcore.db")


class SchedulerConfig(BaseModel):
    cycle_interval_seconds: int = 300

    @field_validator("cycle_interval_seconds")
    @classmethod
    def interval_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("cycle_interval_seconds must be >= 1")
        return v


class Config(BaseSettings):
    """Root configuration. Single source of truth."""

    # Paths
    data_dir: Path = Path("data")
    config_dir: Path = Path("config")

    # Preset selection
    preset: Literal["conservative", "balanced", "aggressive", "custom"] = "balanced"

    # Component configs
    backtest: BacktestSettings = Field(default_factory=BacktestSettings)
    slippage: SlippageSettings = Field(default_factory=SlippageSettings)
    risk: RiskConfig = Field(default_factory=RiskConfig)
    compliance: ComplianceConfig = Field(default_factory=ComplianceConfig)
    surveillance: SurveillanceConfig = Field(default_factory=SurveillanceConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    audit: AuditConfig = Field(default_factory=AuditConfig)

    model_config = {"env_prefix": "STRATCORE_", "env_nested_delimiter": "__"}

    @model_validator(mode="after")
    def position_cap_within_exposure(self) -> Config:
        if self.risk.max_position_pct > self.risk.max_exposure_pct:
            raise ValueError("risk.max_position_pct cannot exceed risk.max_exposure_pct")
        return self

    @classmethod
    def from_yaml(cls, path: Path) -> Config:
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")

        try:
            raw = yaml.safe_load(path.read_text()) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e

        preset_name = raw.get("preset", "balanced")
        preset_path = path.parent / "presets" / f"{preset_name}.yaml"
        if preset_path.exists():
            preset_data = yaml.safe_load(preset_path.read_text()) or {}
            raw = _deep_merge(preset_data, raw)

        try:
            return cls(**raw)
        except ValueError as e:
            raise ConfigError(f"Invalid config {path}: {e}") from e

    @classmethod
    def from_repo_defaults(cls, repo_root: Path | None = None) -> Config:
        root = repo_root or Path.cwd()
        return cls.from_yaml(root / "config" / "default.yaml")

    @classmethod
    def from_preset(
        cls,
        preset: Literal["conservative", "balanced", "aggressive"],
        *,
        repo_root: Path | None = None,
    ) -> Config:
        root = repo_root or Path.cwd()
        default_path = root / "config" / "default.yaml"
        if not default_path.exists():
            raise ConfigError(f"Config file not found: {default_path}")
        raw = yaml.safe_load(default_path.read_text()) or {}
        raw["preset"] = preset
        preset_path = default_path.parent / "presets" / f"{preset}.yaml"
        if not preset_path.exists():
            raise ConfigError(f"Preset not found: {preset_path}")
        preset_data = yaml.safe_load(preset_path.read_text()) or {}
        raw = _deep_merge(preset_data, raw)
        return cls(**raw)
