"""Scan runner: fetch -> signals -> CSV outputs for a ticker universe."""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Iterable, Optional

import pandas as pd

from .config import IndicatorConfig, ScanConfig
from .data_provider import OhlcvFrame, PriceHistoryProvider, lookback_start
from .errors import TurtleEngineError
from .price_cache import PriceCache
from .signals import generate_signal
from .types import SignalCalculation, TurtleSystem

logger = logging.getLogger(__name__)

SIGNAL_COLUMNS = [
    "ticker",
    "system",
    "signal_type",
    "entry_price",
    "stop_loss",
    "entry_date",
    "atr14",
    "ma200",
    "trend",
    "reason",
]


@dataclass
class ScanResult:
    scan_id: str
    trigger: str
    as_of: date
    started_at: datetime
    config: ScanConfig
    status: str = "in_progress"
    execution_time_ms: int = 0
    calculations: list[SignalCalculation] = field(default_factory=list)
    skipped: dict[str, str] = field(default_factory=dict)

    @property
    def tickers_scanned(self) -> int:
        return len(self.calculations) + len(self.skipped)

    @property
    def buy_signals(self) -> int:
        return sum(1 for c in self.calculations if c.primary.buy_signal)

    @property
    def sell_signals(self) -> int:
        return sum(1 for c in self.calculations if c.primary.sell_signal)

    @property
    def signals_generated(self) -> int:
        return self.buy_signals + self.sell_signals

    def summary(self) -> dict:
        return {
            "scan_id": self.scan_id,
            "scan_trigger": self.trigger,
            "scan_timestamp": self.started_at.isoformat(),
            "as_of": self.as_of.isoformat(),
            "scan_status": self.status,
            "execution_time_ms": self.execution_time_ms,
            "tickers_scanned": self.tickers_scanned,
            "signals_generated": self.signals_generated,
            "buy_signals": self.buy_signals,
            "sell_signals": self.sell_signals,
            "skipped": len(self.skipped),
            **{f"config_{k}": v for k, v in self.config.to_params_dict().items()},
        }


def _load_history(
    ticker: str,
    provider: PriceHistoryProvider,
    as_of: date,
    bars: int,
    cache: Optional[PriceCache],
) -> OhlcvFrame:
    if cache is not None:
        frame = cache.get(ticker, as_of)
        if frame is not None:
            return frame

    start = lookback_start(as_of, bars)
    # end is exclusive for yfinance; trim the extra day below
    end = as_of + timedelta(days=1)
    frame = provider.fetch(ticker, start.isoformat(), end.isoformat())
    df = frame.df.loc[frame.df.index <= pd.Timestamp(as_of)]
    frame = OhlcvFrame(df=df, symbol=frame.symbol)

    if cache is not None:
        cache.set(ticker, as_of, frame)
    return frame


def run_scan(
    tickers: Iterable[str],
    provider: PriceHistoryProvider,
    config: ScanConfig = ScanConfig(),
    as_of: Optional[date] = None,
    cache: Optional[PriceCache] = None,
    ind_cfg: IndicatorConfig = IndicatorConfig(),
    trigger: str = "manual",
) -> ScanResult:
    """Scan each ticker once, in order. Failures skip the ticker; nothing is retried."""
    as_of = as_of or date.today()
    result = ScanResult(
        scan_id=str(uuid.uuid4()),
        trigger=trigger,
        as_of=as_of,
        started_at=datetime.now(timezone.utc),
        config=config,
    )
    t0 = time.perf_counter()
    logger.info("[Scan %s] started (trigger=%s, as_of=%s)", result.scan_id, trigger, as_of)

    universe = [t.strip().upper() for t in tickers if t and t.strip()]
    for ticker in universe:
        try:
            frame = _load_history(ticker, provider, as_of, ind_cfg.min_history, cache)
        except (RuntimeError, ValueError, OSError) as exc:
            logger.warning("[Scan %s] %s: fetch failed: %s", result.scan_id, ticker, exc)
            result.skipped[ticker] = f"fetch failed: {exc}"
            continue

        try:
            calc = generate_signal(ticker, frame.df, config, ind_cfg)
        except TurtleEngineError as exc:
            logger.warning("[Scan %s] %s: skipped: %s", result.scan_id, ticker, exc)
            result.skipped[ticker] = str(exc)
            continue

        result.calculations.append(calc)
        if calc.primary.fired:
            logger.info("[Scan %s] %s: %s", result.scan_id, ticker, calc.primary.reason)

    result.execution_time_ms = int((time.perf_counter() - t0) * 1000)
    result.status = "failed" if universe and not result.calculations else "completed"
    logger.info(
        "[Scan %s] %s in %dms: %d tickers, %d buy, %d sell, %d skipped",
        result.scan_id,
        result.status,
        result.execution_time_ms,
        result.tickers_scanned,
        result.buy_signals,
        result.sell_signals,
        len(result.skipped),
    )
    return result


def signal_rows(
    calc: SignalCalculation,
    systems: Optional[Iterable[TurtleSystem | str]] = None,
) -> list[dict]:
    """One persistence row per fired signal. Defaults to the configured system only."""
    selected = [TurtleSystem(s) for s in systems] if systems is not None else [calc.system]
    rows = []
    for system in selected:
        sig = calc.for_system(system)
        if not sig.fired:
            continue
        rows.append(
            {
                "ticker": calc.ticker,
                "system": system.value,
                "signal_type": sig.direction.value.upper(),
                "entry_price": sig.entry_price,
                "stop_loss": sig.stop_loss,
                "entry_date": calc.date,
                "atr14": calc.indicators.atr14,
                "ma200": calc.indicators.ma200,
                "trend": calc.trend.context.value,
                "reason": sig.reason,
            }
        )
    return rows


def write_scan_outputs(
    result: ScanResult,
    output_dir: str | Path = "outputs",
    all_systems: bool = False,
) -> dict[str, Path]:
    out_dir = Path(output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    systems = list(TurtleSystem) if all_systems else None
    rows = [row for calc in result.calculations for row in signal_rows(calc, systems)]
    signals = pd.DataFrame(rows, columns=SIGNAL_COLUMNS)
    summary = pd.DataFrame([result.summary()])

    stamp = result.as_of.isoformat()
    sig_path = out_dir / f"signals_{stamp}.csv"
    scan_path = out_dir / f"scan_{stamp}.csv"
    signals.to_csv(sig_path, index=False, encoding="utf-8")
    summary.to_csv(scan_path, index=False, encoding="utf-8")

    return {"signals": sig_path, "scan": scan_path}
