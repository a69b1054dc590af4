"""Price-history sources (yfinance / CSV) and the standardized OHLCV schema.

Every provider exposes ``fetch(symbol, start, end) -> OhlcvFrame`` and returns
daily bars with columns Open, High, Low, Close, Volume, indexed by date,
sorted, without duplicate days. Vendor quirks stay in this module; the signal
engine only ever sees the standardized frame.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from pathlib import Path
from typing import Optional, Protocol, Sequence

import pandas as pd

from .types import Bar
from .validation import OHLCV_COLUMNS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OhlcvFrame:
    """Standard OHLCV dataframe wrapper."""

    df: pd.DataFrame  # columns: Open, High, Low, Close, Volume; index: Date (tz-naive)
    symbol: str

    def __len__(self) -> int:
        return int(len(self.df))


class PriceHistoryProvider(Protocol):
    def fetch(self, symbol: str, start: str, end: str) -> OhlcvFrame:
        ...


def _standardize_ohlcv_columns(df: pd.DataFrame) -> pd.DataFrame:
    # yfinance can return MultiIndex columns (field, ticker) depending on version.
    if isinstance(df.columns, pd.MultiIndex):
        tickers = list(dict.fromkeys(df.columns.get_level_values(-1)))
        if len(tickers) == 1:
            df = df.copy()
            df.columns = df.columns.get_level_values(0)
        else:
            df = df.xs(tickers[0], axis=1, level=-1, drop_level=True)

    rename_map = {}
    for col in df.columns:
        c = str(col).strip().lower()
        if c in {"open", "o"}:
            rename_map[col] = "Open"
        elif c in {"high", "h"}:
            rename_map[col] = "High"
        elif c in {"low", "l"}:
            rename_map[col] = "Low"
        elif c in {"close", "c"}:
            rename_map[col] = "Close"
        elif c in {"adj close", "adjclose"}:
            # Keep adjusted close separate to avoid duplicate "Close" columns.
            rename_map[col] = "AdjClose"
        elif c in {"volume", "v"}:
            rename_map[col] = "Volume"
    df = df.rename(columns=rename_map).copy()

    if "Close" not in df.columns and "AdjClose" in df.columns:
        df = df.rename(columns={"AdjClose": "Close"})
    if "Volume" not in df.columns:
        df["Volume"] = 0.0

    missing = [c for c in OHLCV_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Missing required OHLCV columns: {missing}")

    df = df[OHLCV_COLUMNS].astype(float)
    # rows with an unparseable price are dropped, not zero-filled
    df = df.dropna(subset=["Open", "High", "Low", "Close"])
    df = df.assign(Volume=df["Volume"].fillna(0.0))

    # daily bars: calendar day only, no timezone
    index = pd.to_datetime(df.index)
    if index.tz is not None:
        index = index.tz_localize(None)
    df.index = index.normalize()
    df.index.name = "Date"

    df = df[~df.index.duplicated(keep="last")].sort_index()
    return df


def _slice_dates(df: pd.DataFrame, start: Optional[str], end: Optional[str]) -> pd.DataFrame:
    if start:
        df = df[df.index >= pd.to_datetime(start)]
    if end:
        df = df[df.index <= pd.to_datetime(end)]
    return df


def lookback_start(as_of: date, bars: int) -> date:
    """Calendar start date that should cover `bars` daily bars up to `as_of`.

    Two calendar days per trading bar leave room for weekends and holidays.
    """
    return as_of - timedelta(days=int(bars) * 2)


def bars_from_frame(frame: OhlcvFrame | pd.DataFrame) -> list[Bar]:
    df = frame.df if isinstance(frame, OhlcvFrame) else frame
    return [
        Bar(
            date=ts.date(),
            open=float(row.Open),
            high=float(row.High),
            low=float(row.Low),
            close=float(row.Close),
            volume=int(row.Volume),
        )
        for ts, row in zip(df.index, df.itertuples(index=False))
    ]


class YfinanceProvider:
    """Fetch daily bars from yfinance."""

    def __init__(self, auto_adjust: bool = False):
        self.auto_adjust = auto_adjust

    def fetch(self, symbol: str, start: str, end: str) -> OhlcvFrame:
        import yfinance as yf  # local import to keep dependency optional in some environments

        df = yf.download(
            tickers=symbol,
            start=start,
            end=end,
            interval="1d",
            auto_adjust=self.auto_adjust,
            progress=False,
        )
        if df is None or len(df) == 0:
            raise RuntimeError(f"yfinance returned empty data for symbol={symbol}")

        return OhlcvFrame(df=_standardize_ohlcv_columns(df), symbol=symbol)


class CsvProvider:
    """Load OHLCV data from ``<root>/<SYMBOL>.csv`` files.

    Each file holds Date,Open,High,Low,Close[,Volume] rows for one ticker.
    """

    def __init__(self, root: str | Path, datetime_col: str = "Date"):
        self.root = Path(root)
        self.datetime_col = datetime_col

    def path_for(self, symbol: str) -> Path:
        return self.root / f"{symbol.upper().replace('/', '_')}.csv"

    def fetch(self, symbol: str, start: str | None = None, end: str | None = None) -> OhlcvFrame:
        path = self.path_for(symbol)
        if not path.exists():
            raise FileNotFoundError(str(path))

        df = pd.read_csv(path)
        datetime_col = self.datetime_col
        if datetime_col not in df.columns:
            # try common alternatives
            for cand in ["date", "Datetime", "datetime", "timestamp", "Time", "time"]:
                if cand in df.columns:
                    datetime_col = cand
                    break

        if datetime_col not in df.columns:
            raise ValueError(f"CSV must contain a date column. Tried '{self.datetime_col}' and common aliases.")

        df[datetime_col] = pd.to_datetime(df[datetime_col])
        df = df.set_index(datetime_col)
        df = _slice_dates(_standardize_ohlcv_columns(df), start, end)
        if len(df) == 0:
            raise RuntimeError(f"{path} has no bars between {start} and {end}")
        return OhlcvFrame(df=df, symbol=symbol)


class PanelCsvProvider:
    """Load one ticker out of a panel CSV: Date,Ticker,...,Open,High,Low,Close,(Volume optional)."""

    def __init__(self, panel_csv_path: str | Path):
        self.path = Path(panel_csv_path)
        self._panel: Optional[pd.DataFrame] = None

    def _load(self) -> pd.DataFrame:
        if self._panel is None:
            if not self.path.exists():
                raise FileNotFoundError(str(self.path))
            self._panel = pd.read_csv(self.path)
        return self._panel

    def fetch(self, symbol: str, start: str | None = None, end: str | None = None) -> OhlcvFrame:
        panel = self._load()
        cols = {c.lower(): c for c in panel.columns}
        date_col = cols.get("date") or cols.get("time")
        ticker_col = cols.get("ticker") or cols.get("symbol")
        if date_col is None or ticker_col is None:
            raise ValueError("Panel CSV must have Date and Ticker columns.")

        rows = panel[panel[ticker_col].astype(str).str.strip().str.upper() == symbol.strip().upper()]
        if len(rows) == 0:
            raise RuntimeError(f"{self.path.name} has no rows for symbol={symbol}")

        df = rows.drop(columns=[ticker_col]).copy()
        df[date_col] = pd.to_datetime(df[date_col])
        df = df.set_index(date_col)
        df = _slice_dates(_standardize_ohlcv_columns(df), start, end)
        return OhlcvFrame(df=df, symbol=symbol)


class FallbackProvider:
    """Try providers in order; the first non-empty history wins."""

    def __init__(self, providers: Sequence[PriceHistoryProvider]):
        if not providers:
            raise ValueError("FallbackProvider needs at least one provider")
        self.providers = list(providers)

    def fetch(self, symbol: str, start: str, end: str) -> OhlcvFrame:
        failures = []
        for provider in self.providers:
            name = type(provider).__name__
            try:
                frame = provider.fetch(symbol, start, end)
            except (RuntimeError, ValueError, OSError) as exc:
                logger.warning("%s failed for %s: %s", name, symbol, exc)
                failures.append(f"{name}: {exc}")
                continue
            if len(frame) == 0:
                logger.warning("%s returned no bars for %s", name, symbol)
                failures.append(f"{name}: empty")
                continue
            return frame
        raise RuntimeError(f"All providers failed for {symbol}: " + "; ".join(failures))
