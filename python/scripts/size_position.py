from __future__ import annotations

import argparse
import logging

from turtle_tf.data_provider import CsvProvider
from turtle_tf.exits import check_exit_signal, check_stop_loss
from turtle_tf.position_sizing import calculate_position_size, validate_position_sizing
from turtle_tf.types import PositionSizingInput

logger = logging.getLogger("size_position")


def main():
    p = argparse.ArgumentParser(description="Size a Turtle trade and check exits for an open position.")
    p.add_argument("--balance", type=float, required=True, help="Account balance.")
    p.add_argument("--entry", type=float, required=True, help="Entry price.")
    p.add_argument("--stop", type=float, required=True, help="Stop-loss price.")
    p.add_argument("--risk", type=float, default=None, help="Risk fraction in (0, 1]. Default 0.02.")
    p.add_argument("--symbol", type=str, default=None, help="Ticker for the exit checks.")
    p.add_argument("--csv_dir", type=str, default=None, help="Directory of <TICKER>.csv files for the exit checks.")
    p.add_argument("--position", type=str, default="long", choices=["long", "short"])
    p.add_argument("--system", type=str, default="system1", choices=["system1", "system2"])
    p.add_argument("--log-level", dest="log_level", type=str, default="WARNING")
    args = p.parse_args()

    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.WARNING))

    inp = PositionSizingInput(
        account_balance=args.balance,
        entry_price=args.entry,
        stop_loss_price=args.stop,
        risk_percent=args.risk,
    )
    check = validate_position_sizing(inp)
    if not check.valid:
        raise SystemExit(f"invalid input: {check.error}")

    out = calculate_position_size(inp)
    print(f"units={out.units} position_size={out.position_size:.2f} "
          f"risk_amount={out.risk_amount:.2f} stop_distance={out.stop_distance:.4f}")

    if args.symbol and args.csv_dir:
        frame = CsvProvider(args.csv_dir).fetch(args.symbol)
        close = float(frame.df["Close"].iloc[-1])
        logger.info("Loaded %d bars for %s", len(frame), args.symbol)
        print(f"last_close={close:.2f} "
              f"turtle_exit={check_exit_signal(frame.df, args.position, args.system)} "
              f"stop_hit={check_stop_loss(close, args.stop, args.position)}")


if __name__ == "__main__":
    main()
