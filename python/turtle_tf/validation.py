"""Bar-sequence normalization and the data quality gate.

Engine entry points accept either a sequence of :class:`Bar` or a standardized
OHLCV frame (columns Open, High, Low, Close, Volume; index: date). Both are
normalized to the frame form by :func:`to_ohlcv_df` before anything else runs.
"""

from __future__ import annotations

from typing import Optional, Sequence, Union

import numpy as np
import pandas as pd

from .errors import InsufficientData, InvalidData
from .types import Bar

OHLCV_COLUMNS = ["Open", "High", "Low", "Close", "Volume"]

# Long enough for the 200-bar moving average, the strictest window.
MIN_HISTORY_BARS = 200

BarsLike = Union[pd.DataFrame, Sequence[Bar]]


def to_ohlcv_df(bars: BarsLike) -> pd.DataFrame:
    """Normalize a bar sequence to the standard OHLCV frame.

    Raises InvalidData when dates are duplicated, out of order or unparseable,
    when a price is not numeric, or when a frame lacks one of the OHLCV
    columns. The input is never modified.
    """
    if isinstance(bars, pd.DataFrame):
        missing = [c for c in OHLCV_COLUMNS if c not in bars.columns]
        if missing:
            raise InvalidData(f"missing OHLCV columns {missing}")
        try:
            df = bars[OHLCV_COLUMNS].astype(float)
        except (ValueError, TypeError) as exc:
            raise InvalidData(f"non-numeric bar field: {exc}") from exc
        if not isinstance(df.index, pd.DatetimeIndex):
            try:
                df = df.set_axis(pd.to_datetime(df.index), axis=0)
            except (ValueError, TypeError) as exc:
                raise InvalidData(f"unparseable bar date: {exc}") from exc
    else:
        rows = list(bars)
        try:
            index = pd.to_datetime([b.date for b in rows]) if rows else pd.DatetimeIndex([])
        except (ValueError, TypeError) as exc:
            raise InvalidData(f"unparseable bar date: {exc}") from exc
        try:
            columns = {
                "Open": [float(b.open) for b in rows],
                "High": [float(b.high) for b in rows],
                "Low": [float(b.low) for b in rows],
                "Close": [float(b.close) for b in rows],
                "Volume": [float(b.volume) for b in rows],
            }
        except (ValueError, TypeError) as exc:
            raise InvalidData(f"non-numeric bar field: {exc}") from exc
        df = pd.DataFrame(columns, index=index)
        df.index.name = "Date"

    if len(df) > 1 and not (df.index.is_monotonic_increasing and df.index.is_unique):
        raise InvalidData("bar dates must be strictly ascending with no duplicates")
    return df


def find_data_issue(df: pd.DataFrame) -> Optional[str]:
    """Return the first OHLC consistency violation, or None when the bars are clean.

    Checks every bar: all four prices strictly positive, high >= low,
    low <= close <= high.
    """
    o = df["Open"].to_numpy(dtype=float)
    h = df["High"].to_numpy(dtype=float)
    l = df["Low"].to_numpy(dtype=float)
    c = df["Close"].to_numpy(dtype=float)

    checks = [
        (~((o > 0) & (h > 0) & (l > 0) & (c > 0)), "non-positive or missing price"),
        (h < l, "high below low"),
        ((c > h) | (c < l), "close outside [low, high]"),
    ]
    first: Optional[tuple[int, str]] = None
    for mask, label in checks:
        bad = np.flatnonzero(mask)
        if len(bad) and (first is None or bad[0] < first[0]):
            first = (int(bad[0]), label)
    if first is None:
        return None

    i, label = first
    day = df.index[i]
    day_str = day.date().isoformat() if hasattr(day, "date") else str(day)
    return f"{label} at bar {i} ({day_str})"


def validate_historical_data(bars: BarsLike, min_bars: int = MIN_HISTORY_BARS) -> bool:
    """All-or-nothing quality gate: True only if every bar passes.

    Never raises for bad bars; malformed sequences (unsorted dates, missing
    columns) are reported as False as well.
    """
    try:
        df = to_ohlcv_df(bars)
    except InvalidData:
        return False
    if len(df) < int(min_bars):
        return False
    return find_data_issue(df) is None


def require_valid_history(bars: BarsLike, min_bars: int = MIN_HISTORY_BARS) -> pd.DataFrame:
    """Raising counterpart of :func:`validate_historical_data`.

    Returns the normalized frame so callers do not convert twice.
    """
    df = to_ohlcv_df(bars)
    if len(df) < int(min_bars):
        raise InsufficientData(min_bars, len(df), what="signal generation")
    issue = find_data_issue(df)
    if issue is not None:
        raise InvalidData(issue)
    return df
