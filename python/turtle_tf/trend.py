"""Primary-trend context from the long moving average."""

from __future__ import annotations

from .config import IndicatorConfig
from .errors import InsufficientData
from .indicators import sma_close
from .types import TrendAnalysis, TrendContext
from .validation import BarsLike, to_ohlcv_df


def analyze_trend(bars: BarsLike, ind_cfg: IndicatorConfig = IndicatorConfig()) -> TrendAnalysis:
    """Classify the latest close against the long moving average.

    With fewer bars than the MA window the trend is undefined and a neutral
    result (ma200=0, strength=0) is returned instead of raising. A close equal
    to the MA counts as a downtrend.
    """
    df = to_ohlcv_df(bars)
    if len(df) == 0:
        raise InsufficientData(1, 0, what="trend analysis")

    price = float(df["Close"].iloc[-1])
    if len(df) < ind_cfg.ma_window:
        return TrendAnalysis(
            context=TrendContext.NEUTRAL,
            ma200=0.0,
            price=price,
            is_above_ma200=False,
            strength=0.0,
        )

    ma = sma_close(df, ind_cfg.ma_window)
    is_above = price > ma
    # distance from the MA as a fraction of it, clamped to [0, 1]
    strength = min(abs(price - ma) / ma, 1.0)
    return TrendAnalysis(
        context=TrendContext.UPTREND if is_above else TrendContext.DOWNTREND,
        ma200=ma,
        price=price,
        is_above_ma200=is_above,
        strength=strength,
    )
