"""Turtle breakout signals.

Two independently parameterized systems:
- System 1: close above the 20-day high buys, close below the 10-day low sells.
- System 2: close above the 55-day high buys, close below the 20-day low sells.

Breakout levels come from the bars *preceding* the latest bar: the latest
close can never exceed a channel that already contains its own high. An
optional trend filter suppresses breakouts against the 200-day MA.
"""

from __future__ import annotations

from .config import IndicatorConfig, ScanConfig, rules_for
from .errors import AmbiguousSignal
from .indicators import calculate_turtle_indicators, donchian_levels
from .trend import analyze_trend
from .types import (
    DonchianLevels,
    SignalCalculation,
    SignalDirection,
    SystemSignal,
    TrendAnalysis,
    TurtleSystem,
)
from .validation import BarsLike, require_valid_history


def classify_system(
    system: TurtleSystem | str,
    close: float,
    levels: DonchianLevels,
    atr14: float,
    trend: TrendAnalysis,
    config: ScanConfig,
    ma_window: int = 200,
) -> SystemSignal:
    """Decide buy / sell / none for one system on the latest close."""
    rules = rules_for(system)
    entry_high, _ = levels.channel(rules.entry_window)
    _, exit_low = levels.channel(rules.exit_window)

    buy_breakout = close > entry_high
    sell_breakout = close < exit_low
    if buy_breakout and sell_breakout:
        raise AmbiguousSignal(
            f"{rules.system.value}: close {close:.2f} is above the {rules.entry_window}-day high "
            f"({entry_high:.2f}) and below the {rules.exit_window}-day low ({exit_low:.2f})"
        )

    direction = SignalDirection.NONE
    reason = ""
    trend_filtered = False

    if buy_breakout:
        if config.use_trend_filter and not trend.is_above_ma200:
            trend_filtered = True
            reason = (
                f"Breakout above {rules.entry_window}-day high ({entry_high:.2f}) but FILTERED: "
                f"price below {ma_window}-day MA ({trend.ma200:.2f})"
            )
        else:
            direction = SignalDirection.BUY
            reason = f"Close ({close:.2f}) > {rules.entry_window}-day high ({entry_high:.2f})"

    if sell_breakout:
        # a close equal to the MA is not above it, so the sell passes the filter
        if config.use_trend_filter and trend.is_above_ma200:
            trend_filtered = True
            reason = (
                f"Breakout below {rules.exit_window}-day low ({exit_low:.2f}) but FILTERED: "
                f"price above {ma_window}-day MA ({trend.ma200:.2f})"
            )
        else:
            direction = SignalDirection.SELL
            reason = f"Close ({close:.2f}) < {rules.exit_window}-day low ({exit_low:.2f})"

    if direction is SignalDirection.NONE:
        return SystemSignal(system=rules.system, direction=direction, reason=reason, trend_filtered=trend_filtered)

    multiplier = config.stop_multiplier_for(rules.system)
    entry_price = float(close)
    if direction is SignalDirection.BUY:
        stop_loss = entry_price - multiplier * atr14
    else:
        stop_loss = entry_price + multiplier * atr14

    return SystemSignal(
        system=rules.system,
        direction=direction,
        entry_price=entry_price,
        stop_loss=stop_loss,
        reason=reason,
        trend_filtered=trend_filtered,
    )


def generate_signal(
    ticker: str,
    bars: BarsLike,
    config: ScanConfig = ScanConfig(),
    ind_cfg: IndicatorConfig = IndicatorConfig(),
) -> SignalCalculation:
    """Run the full pipeline for one ticker's history.

    validate -> indicators -> trend -> both systems. Raises InsufficientData
    or InvalidData when the history cannot be trusted; never degrades to a
    silent "no signal".
    """
    df = require_valid_history(bars, min_bars=ind_cfg.min_history)

    indicators = calculate_turtle_indicators(df, ind_cfg)
    breakout_levels = donchian_levels(df.iloc[:-1])
    trend = analyze_trend(df, ind_cfg)

    close = float(df["Close"].iloc[-1])
    signals = {
        system: classify_system(
            system,
            close,
            breakout_levels,
            indicators.atr14,
            trend,
            config,
            ma_window=ind_cfg.ma_window,
        )
        for system in TurtleSystem
    }

    return SignalCalculation(
        ticker=ticker,
        date=df.index[-1].date().isoformat(),
        close=close,
        indicators=indicators,
        breakout_levels=breakout_levels,
        trend=trend,
        system1=signals[TurtleSystem.SYSTEM1],
        system2=signals[TurtleSystem.SYSTEM2],
        system=config.system,
    )
