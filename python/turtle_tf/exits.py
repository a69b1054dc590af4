"""Exit checks for open positions: Turtle trailing exit and fixed stop-loss.

Both checks are pure; position state lives with the caller.
"""

from __future__ import annotations

from .config import rules_for
from .types import PositionType, TurtleSystem
from .validation import BarsLike, to_ohlcv_df


def check_exit_signal(
    bars: BarsLike,
    position_type: PositionType | str,
    system: TurtleSystem | str = TurtleSystem.SYSTEM1,
) -> bool:
    """Turtle trailing exit on the latest close.

    Long exits when the close drops below the exit-window low of the bars
    before it (10 bars for System 1, 20 for System 2); short exits when the
    close rises above the matching high. Without window + 1 bars there is no
    exit (False), not an error.
    """
    side = PositionType(position_type)
    window = rules_for(system).exit_window

    df = to_ohlcv_df(bars)
    if len(df) < window + 1:
        return False

    close = float(df["Close"].iloc[-1])
    prior = df.iloc[-(window + 1):-1]
    if side is PositionType.LONG:
        return close < float(prior["Low"].min())
    return close > float(prior["High"].max())


def check_stop_loss(
    current_price: float,
    stop_loss_price: float,
    position_type: PositionType | str,
) -> bool:
    """Fixed stop: inclusive on both sides (price touching the stop exits)."""
    if PositionType(position_type) is PositionType.LONG:
        return current_price <= stop_loss_price
    return current_price >= stop_loss_price
