"""Position sizing under the Turtle fixed-fractional risk rule.

Rules:
- risk per trade = risk_percent (default 2%) of account balance
- units = floor(risk amount / stop distance)
- position value capped at 20% of the account; when the cap binds,
  units = floor(cap / entry price)
"""

from __future__ import annotations

import math

from .errors import InvalidParameter, ZeroStopDistance
from .types import PositionSizingInput, PositionSizingOutput, SizingValidation

DEFAULT_RISK_PERCENT = 0.02
# Independent of risk_percent.
MAX_POSITION_FRACTION = 0.2


def validate_position_sizing(inp: PositionSizingInput) -> SizingValidation:
    """Check sizing inputs without raising."""
    if inp.account_balance <= 0:
        return SizingValidation.rejected("Account balance must be positive")
    if inp.entry_price <= 0:
        return SizingValidation.rejected("Entry price must be positive")
    if inp.stop_loss_price < 0:
        return SizingValidation.rejected("Stop loss price cannot be negative")
    if inp.entry_price == inp.stop_loss_price:
        return SizingValidation.rejected("Entry price and stop loss must be different")

    risk_percent = DEFAULT_RISK_PERCENT if inp.risk_percent is None else inp.risk_percent
    if risk_percent <= 0 or risk_percent > 1:
        return SizingValidation.rejected("Risk percent must be between 0 and 1")
    return SizingValidation.ok()


def calculate_position_size(inp: PositionSizingInput) -> PositionSizingOutput:
    """Size a trade; raises on invalid input.

    A zero stop distance raises ZeroStopDistance, any other rejected input
    raises InvalidParameter with the validation message.
    """
    stop_distance = abs(inp.entry_price - inp.stop_loss_price)
    if stop_distance == 0:
        raise ZeroStopDistance(inp.entry_price, inp.stop_loss_price)

    check = validate_position_sizing(inp)
    if not check.valid:
        raise InvalidParameter(check.error or "invalid position sizing input")

    risk_percent = DEFAULT_RISK_PERCENT if inp.risk_percent is None else inp.risk_percent
    risk_amount = inp.account_balance * risk_percent

    units = math.floor(risk_amount / stop_distance)
    max_position_size = inp.account_balance * MAX_POSITION_FRACTION
    # safety valve: re-floor against the cap
    if units * inp.entry_price > max_position_size:
        units = math.floor(max_position_size / inp.entry_price)

    return PositionSizingOutput(
        units=int(units),
        position_size=units * inp.entry_price,
        risk_amount=risk_amount,
        stop_distance=stop_distance,
    )
