"""Indicator computation utilities.

Every function reads the trailing window of the bars it is given; the latest
bar is included. Windows are strict: a sequence shorter than the window
raises InsufficientData instead of returning a partial-window value.
Nothing is cached here; callers own caching.
"""

from __future__ import annotations

import pandas as pd

from .config import IndicatorConfig
from .errors import InsufficientData
from .types import DONCHIAN_WINDOWS, DonchianLevels, TurtleIndicators
from .validation import BarsLike, to_ohlcv_df


def _require(df: pd.DataFrame, window: int, what: str) -> None:
    if window <= 0:
        raise ValueError("window must be positive")
    if len(df) < window:
        raise InsufficientData(window, len(df), what=what)


def donchian_high(bars: BarsLike, window: int) -> float:
    """Highest high over the last `window` bars."""
    df = to_ohlcv_df(bars)
    _require(df, window, f"{window}-day Donchian high")
    return float(df["High"].iloc[-window:].max())


def donchian_low(bars: BarsLike, window: int) -> float:
    """Lowest low over the last `window` bars."""
    df = to_ohlcv_df(bars)
    _require(df, window, f"{window}-day Donchian low")
    return float(df["Low"].iloc[-window:].min())


def true_range(df: pd.DataFrame) -> pd.Series:
    """Per-bar true range.

    The first bar has no previous close, so its true range is undefined and
    it is dropped from the result.
    """
    high = df["High"].astype(float)
    low = df["Low"].astype(float)
    prev_close = df["Close"].astype(float).shift(1)
    tr = pd.concat(
        [
            (high - low).abs(),
            (high - prev_close).abs(),
            (low - prev_close).abs(),
        ],
        axis=1,
    ).max(axis=1)
    return tr.iloc[1:]


def atr(bars: BarsLike, window: int = 14) -> float:
    """Average True Range: arithmetic mean of the last `window` true ranges.

    Needs `window` true ranges, i.e. window + 1 bars.
    """
    if window <= 0:
        raise ValueError("window must be positive")
    df = to_ohlcv_df(bars)
    _require(df, window + 1, f"ATR-{window}")
    tr = true_range(df)
    return float(tr.iloc[-window:].mean())


def sma_close(bars: BarsLike, window: int = 200) -> float:
    """Simple moving average of the close over the last `window` bars."""
    df = to_ohlcv_df(bars)
    _require(df, window, f"{window}-day moving average")
    return float(df["Close"].iloc[-window:].mean())


def donchian_levels(bars: BarsLike) -> DonchianLevels:
    """The three Donchian channels ending at the latest bar."""
    df = to_ohlcv_df(bars)
    _require(df, max(DONCHIAN_WINDOWS), "Donchian channels")
    return DonchianLevels(
        donchian20_high=donchian_high(df, 20),
        donchian20_low=donchian_low(df, 20),
        donchian10_high=donchian_high(df, 10),
        donchian10_low=donchian_low(df, 10),
        donchian55_high=donchian_high(df, 55),
        donchian55_low=donchian_low(df, 55),
    )


def calculate_turtle_indicators(
    bars: BarsLike, ind_cfg: IndicatorConfig = IndicatorConfig()
) -> TurtleIndicators:
    """All eight Turtle indicators at once, or InsufficientData.

    The length check runs first against the strictest window, so a partial
    indicator set is never produced.
    """
    df = to_ohlcv_df(bars)
    _require(df, ind_cfg.min_history, "Turtle indicators")
    levels = donchian_levels(df)
    return TurtleIndicators(
        donchian20_high=levels.donchian20_high,
        donchian20_low=levels.donchian20_low,
        donchian10_high=levels.donchian10_high,
        donchian10_low=levels.donchian10_low,
        donchian55_high=levels.donchian55_high,
        donchian55_low=levels.donchian55_low,
        atr14=atr(df, ind_cfg.atr_window),
        ma200=sma_close(df, ind_cfg.ma_window),
    )
