"""Error taxonomy for the signal engine.

The engine never logs. Every failure is raised with enough context for the
caller (scan loop, script) to log a useful diagnostic and skip the ticker.
"""

from __future__ import annotations


class TurtleEngineError(ValueError):
    """Base class for all engine failures."""


class InsufficientData(TurtleEngineError):
    """Bar sequence is shorter than the window an operation needs."""

    def __init__(self, required: int, available: int, what: str = "calculation"):
        self.required = int(required)
        self.available = int(available)
        self.what = what
        super().__init__(
            f"Insufficient data for {what}: {self.required} bars required, {self.available} available"
        )


class InvalidData(TurtleEngineError):
    """OHLC consistency violated or the bar sequence is malformed."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid historical data: {reason}")


class AmbiguousSignal(InvalidData):
    """Buy and sell breakouts of the same system fired on the same bar."""


class InvalidParameter(TurtleEngineError):
    """Sizing or configuration input outside its domain."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class ZeroStopDistance(InvalidParameter):
    def __init__(self, entry_price: float, stop_loss_price: float):
        self.entry_price = float(entry_price)
        self.stop_loss_price = float(stop_loss_price)
        super().__init__(
            f"Stop loss distance cannot be zero (entry={self.entry_price}, stop={self.stop_loss_price})"
        )
