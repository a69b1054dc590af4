from __future__ import annotations

import argparse
import json
import logging
from datetime import date
from pathlib import Path

from turtle_tf.config import ScanConfig
from turtle_tf.data_provider import CsvProvider, FallbackProvider, PanelCsvProvider, YfinanceProvider
from turtle_tf.price_cache import PriceCache
from turtle_tf.scan import run_scan, write_scan_outputs


def load_tickers(args) -> list[str]:
    tickers: list[str] = []
    if args.tickers:
        tickers.extend(t for t in args.tickers.split(",") if t.strip())
    if args.tickers_file:
        for line in Path(args.tickers_file).read_text(encoding="utf-8").splitlines():
            line = line.split("#", 1)[0].strip()
            if line:
                tickers.append(line)
    if not tickers:
        raise SystemExit("No tickers given. Use --tickers AAPL,MSFT or --tickers_file universe.txt")
    return tickers


def build_provider(args):
    providers = []
    if args.csv_dir:
        providers.append(CsvProvider(args.csv_dir))
    if args.panel_csv:
        providers.append(PanelCsvProvider(args.panel_csv))
    if not providers or args.yfinance_fallback:
        providers.append(YfinanceProvider(auto_adjust=args.auto_adjust))
    return providers[0] if len(providers) == 1 else FallbackProvider(providers)


def main():
    p = argparse.ArgumentParser(description="Scan a ticker universe for Turtle breakout signals.")
    p.add_argument("--tickers", type=str, default=None, help="Comma-separated tickers.")
    p.add_argument("--tickers_file", type=str, default=None, help="One ticker per line ('#' comments allowed).")
    p.add_argument("--as_of", type=str, default=None, help="Scan date YYYY-MM-DD (default: today).")
    p.add_argument("--csv_dir", type=str, default=None, help="Directory of <TICKER>.csv files (Date,Open,High,Low,Close,Volume).")
    p.add_argument("--panel_csv", type=str, default=None, help="Panel OHLC CSV (Date,Ticker,Open,High,Low,Close,...).")
    p.add_argument("--yfinance_fallback", action="store_true", help="Fall back to yfinance when a CSV source misses a ticker.")
    p.add_argument("--auto_adjust", action="store_true", help="Use yfinance auto_adjust (if using yfinance).")
    p.add_argument("--system", type=str, default="system1", choices=["system1", "system2"])
    p.add_argument("--no_trend_filter", action="store_true", help="Disable the 200-day MA trend filter.")
    p.add_argument("--risk_per_trade", type=float, default=2.0, help="Risk per trade in percent (informational).")
    p.add_argument("--stop_multiplier", type=float, default=None, help="ATR stop multiplier (default: 2.0 system1, 1.5 system2).")
    p.add_argument("--config_json", type=str, default=None, help="JSON file with scan config (camelCase keys); overrides flags.")
    p.add_argument("--all_systems", action="store_true", help="Persist signals of both systems, not only --system.")
    p.add_argument("--output_dir", type=str, default="outputs")
    p.add_argument("--log-level", dest="log_level", type=str, default="INFO")
    args = p.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.config_json:
        cfg = ScanConfig.from_params_dict(json.loads(Path(args.config_json).read_text(encoding="utf-8")))
    else:
        cfg = ScanConfig(
            system=args.system,
            use_trend_filter=not args.no_trend_filter,
            risk_per_trade=args.risk_per_trade,
            stop_loss_multiplier=args.stop_multiplier,
        )

    as_of = date.fromisoformat(args.as_of) if args.as_of else date.today()
    result = run_scan(
        load_tickers(args),
        build_provider(args),
        config=cfg,
        as_of=as_of,
        cache=PriceCache(),
        trigger="cli",
    )
    paths = write_scan_outputs(result, args.output_dir, all_systems=args.all_systems)
    print(paths["signals"])
    print(paths["scan"])
    for ticker, why in result.skipped.items():
        print(f"skipped {ticker}: {why}")


if __name__ == "__main__":
    main()
