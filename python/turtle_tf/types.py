"""Shared types for the signal engine.

The guiding principle is to keep the runtime objects small and explicit.
Everything the engine returns is a frozen dataclass: computed once per call,
never mutated afterwards.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date
from enum import Enum
from typing import Optional


class TurtleSystem(str, Enum):
    SYSTEM1 = "system1"
    SYSTEM2 = "system2"


class TrendContext(str, Enum):
    UPTREND = "uptrend"
    DOWNTREND = "downtrend"
    NEUTRAL = "neutral"


class SignalDirection(str, Enum):
    NONE = "none"
    BUY = "buy"
    SELL = "sell"


class PositionType(str, Enum):
    LONG = "long"
    SHORT = "short"


# fast exit, System 1 entry / System 2 exit, System 2 entry
DONCHIAN_WINDOWS = (10, 20, 55)


@dataclass(frozen=True)
class Bar:
    """One trading day.

    `date` is a calendar day (no timezone). Prices are positive floats with
    low <= close <= high; the validator enforces this before any indicator runs.
    """

    date: date
    open: float
    high: float
    low: float
    close: float
    volume: int = 0


@dataclass(frozen=True)
class DonchianLevels:
    """Donchian channel extrema for the 10/20/55 bar windows.

    The windows are fixed by the Turtle rules; field names carry them.
    """

    donchian20_high: float
    donchian20_low: float
    donchian10_high: float
    donchian10_low: float
    donchian55_high: float
    donchian55_low: float

    def channel(self, window: int) -> tuple[float, float]:
        """(highest high, lowest low) for a 10, 20 or 55 bar window."""
        if window not in DONCHIAN_WINDOWS:
            raise KeyError(f"no Donchian channel for window={window}")
        return getattr(self, f"donchian{window}_high"), getattr(self, f"donchian{window}_low")


@dataclass(frozen=True)
class TurtleIndicators(DonchianLevels):
    """Full indicator set, computed over windows ending at the latest bar."""

    atr14: float
    ma200: float


@dataclass(frozen=True)
class TrendAnalysis:
    context: TrendContext
    ma200: float
    price: float
    is_above_ma200: bool
    strength: float  # 0..1


@dataclass(frozen=True)
class SystemSignal:
    """Outcome of one Turtle system for the latest bar.

    `direction` is the tagged variant; `buy_signal` / `sell_signal` are views
    over it, so at most one of them is ever true.
    """

    system: TurtleSystem
    direction: SignalDirection
    entry_price: Optional[float] = None
    stop_loss: Optional[float] = None
    reason: str = ""
    trend_filtered: bool = False

    @property
    def buy_signal(self) -> bool:
        return self.direction is SignalDirection.BUY

    @property
    def sell_signal(self) -> bool:
        return self.direction is SignalDirection.SELL

    @property
    def fired(self) -> bool:
        return self.direction is not SignalDirection.NONE

    def to_dict(self) -> dict:
        return {
            "system": self.system.value,
            "direction": self.direction.value,
            "buy_signal": self.buy_signal,
            "sell_signal": self.sell_signal,
            "entry_price": self.entry_price,
            "stop_loss": self.stop_loss,
            "reason": self.reason,
            "trend_filtered": self.trend_filtered,
        }


@dataclass(frozen=True)
class SignalCalculation:
    """Everything computed for one ticker on its latest bar."""

    ticker: str
    date: str  # ISO calendar date of the latest bar
    close: float
    indicators: TurtleIndicators
    breakout_levels: DonchianLevels  # channels of the bars preceding the latest bar
    trend: TrendAnalysis
    system1: SystemSignal
    system2: SystemSignal
    system: TurtleSystem = TurtleSystem.SYSTEM1

    @property
    def current_price(self) -> float:
        return self.close

    @property
    def primary(self) -> SystemSignal:
        """Signal of the system selected in the scan configuration."""
        return self.for_system(self.system)

    def for_system(self, system: TurtleSystem | str) -> SystemSignal:
        return self.system1 if TurtleSystem(system) is TurtleSystem.SYSTEM1 else self.system2

    def to_dict(self) -> dict:
        trend = asdict(self.trend)
        trend["context"] = self.trend.context.value
        return {
            "ticker": self.ticker,
            "date": self.date,
            "close": self.close,
            "current_price": self.current_price,
            "system": self.system.value,
            "indicators": asdict(self.indicators),
            "breakout_levels": asdict(self.breakout_levels),
            "trend": trend,
            "system1": self.system1.to_dict(),
            "system2": self.system2.to_dict(),
        }


@dataclass(frozen=True)
class PositionSizingInput:
    account_balance: float
    entry_price: float
    stop_loss_price: float
    risk_percent: Optional[float] = None  # None -> default 2%


@dataclass(frozen=True)
class PositionSizingOutput:
    units: int
    position_size: float
    risk_amount: float
    stop_distance: float


@dataclass(frozen=True)
class SizingValidation:
    valid: bool
    error: Optional[str] = None

    @classmethod
    def ok(cls) -> "SizingValidation":
        return cls(True)

    @classmethod
    def rejected(cls, error: str) -> "SizingValidation":
        return cls(False, error)
