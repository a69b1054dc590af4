"""Configuration objects.

Style rules:
- keep signatures stable (no alias chaos)
- prefer explicit field names
- defaults are resolved once here, never inline at call sites
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .errors import InvalidParameter
from .types import DONCHIAN_WINDOWS, TurtleSystem


@dataclass(frozen=True)
class IndicatorConfig:
    """Indicator window configuration.

    Donchian windows are not configurable: they are fixed at 10/20/55 by the
    system rules below.
    """

    atr_window: int = 14
    ma_window: int = 200

    @property
    def min_history(self) -> int:
        """Bars needed before the full indicator set can be computed."""
        return max(max(DONCHIAN_WINDOWS), self.atr_window + 1, self.ma_window)


@dataclass(frozen=True)
class SystemRules:
    """Breakout windows and stop multiplier of one Turtle system."""

    system: TurtleSystem
    entry_window: int
    exit_window: int
    default_stop_multiplier: float


SYSTEM_RULES: dict[TurtleSystem, SystemRules] = {
    # fast: 20-bar entry, 10-bar exit
    TurtleSystem.SYSTEM1: SystemRules(TurtleSystem.SYSTEM1, entry_window=20, exit_window=10, default_stop_multiplier=2.0),
    # slow: 55-bar entry, tighter 20-bar exit
    TurtleSystem.SYSTEM2: SystemRules(TurtleSystem.SYSTEM2, entry_window=55, exit_window=20, default_stop_multiplier=1.5),
}


def rules_for(system: TurtleSystem | str) -> SystemRules:
    try:
        return SYSTEM_RULES[TurtleSystem(system)]
    except ValueError as exc:
        raise InvalidParameter(f"Unknown Turtle system: {system!r}") from exc


@dataclass(frozen=True)
class ScanConfig:
    """Per-invocation scan parameters.

    `stop_loss_multiplier=None` means "use the system default" (2.0 for
    System 1, 1.5 for System 2). An explicit value applies to both systems.
    """

    system: TurtleSystem = TurtleSystem.SYSTEM1
    use_trend_filter: bool = True
    risk_per_trade: float = 2.0  # percent, informational
    stop_loss_multiplier: Optional[float] = None

    def __post_init__(self) -> None:
        try:
            system = TurtleSystem(self.system)
        except ValueError as exc:
            raise InvalidParameter(f"system must be 'system1' or 'system2', got {self.system!r}") from exc
        object.__setattr__(self, "system", system)

        if not (0.0 < float(self.risk_per_trade) <= 100.0):
            raise InvalidParameter(f"riskPerTrade must be in (0, 100], got {self.risk_per_trade}")
        if self.stop_loss_multiplier is not None and not float(self.stop_loss_multiplier) > 0.0:
            raise InvalidParameter(f"stopLossMultiplier must be positive, got {self.stop_loss_multiplier}")

    def stop_multiplier_for(self, system: TurtleSystem | str) -> float:
        if self.stop_loss_multiplier is not None:
            return float(self.stop_loss_multiplier)
        return rules_for(system).default_stop_multiplier

    @classmethod
    def from_params_dict(cls, d: dict) -> "ScanConfig":
        """Create ScanConfig from a plain key/value payload (HTTP body, JSON file).

        Keys are typically camelCase (e.g., useTrendFilter). Unknown keys are ignored.
        """
        mapping = {
            "system": "system",
            "useTrendFilter": "use_trend_filter",
            "use_trend_filter": "use_trend_filter",
            "riskPerTrade": "risk_per_trade",
            "risk_per_trade": "risk_per_trade",
            "stopLossMultiplier": "stop_loss_multiplier",
            "stop_loss_multiplier": "stop_loss_multiplier",
        }
        kwargs = {}
        for k, v in (d or {}).items():
            if k in mapping:
                kwargs[mapping[k]] = v

        if isinstance(kwargs.get("system"), str):
            kwargs["system"] = kwargs["system"].strip().lower()
        if isinstance(kwargs.get("use_trend_filter"), str):
            kwargs["use_trend_filter"] = kwargs["use_trend_filter"].strip().lower() in {"1", "true", "yes", "on"}
        # JS callers send 0 for "use the default"
        if kwargs.get("stop_loss_multiplier") in (0, "", None):
            kwargs["stop_loss_multiplier"] = None
        if kwargs.get("stop_loss_multiplier") is not None:
            kwargs["stop_loss_multiplier"] = float(kwargs["stop_loss_multiplier"])
        if "risk_per_trade" in kwargs:
            kwargs["risk_per_trade"] = float(kwargs["risk_per_trade"])

        return cls(**kwargs)

    def to_params_dict(self) -> dict:
        return {
            "system": self.system.value,
            "useTrendFilter": bool(self.use_trend_filter),
            "riskPerTrade": float(self.risk_per_trade),
            "stopLossMultiplier": self.stop_loss_multiplier,
        }


@dataclass(frozen=True)
class CacheConfig:
    """Price cache settings."""

    # Histories fetched within a scan stay fresh for five minutes.
    ttl_seconds: float = 300.0
