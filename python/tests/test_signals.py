"""Tests for the two-system breakout classifier."""

from dataclasses import replace

import pytest

from turtle_tf.config import ScanConfig
from turtle_tf.errors import AmbiguousSignal, InsufficientData, InvalidData
from turtle_tf.signals import classify_system, generate_signal
from turtle_tf.types import (
    DonchianLevels,
    SignalDirection,
    TrendAnalysis,
    TrendContext,
    TurtleSystem,
)
from turtle_tf.validation import to_ohlcv_df

NO_FILTER = ScanConfig(use_trend_filter=False)


@pytest.fixture
def filtered_breakout_bars(make_bars, flat_rows):
    """Breakout above the 20/55-day highs while far below the 200-day MA."""
    rows = flat_rows(200, price=150.0) + flat_rows(60, price=100.0) + [(100.0, 101.0, 100.0, 101.0)]
    return make_bars(rows)


@pytest.fixture
def filtered_breakdown_bars(make_bars, flat_rows):
    """Close below the 10/20-day lows while still above the 200-day MA."""
    rows = flat_rows(150, price=50.0) + flat_rows(60, price=100.0) + [(100.0, 100.0, 99.0, 99.0)]
    return make_bars(rows)


class TestSystem1:
    """System 1: 20-day entry, 10-day exit, 2.0 ATR stop."""

    def test_breakout_buy(self, breakout_bars):
        calc = generate_signal("TEST", breakout_bars, NO_FILTER)
        sig = calc.system1

        assert sig.buy_signal is True
        assert sig.sell_signal is False
        assert sig.direction is SignalDirection.BUY
        assert sig.entry_price == 104.0
        assert sig.stop_loss == pytest.approx(104.0 - 2.0 * calc.indicators.atr14)
        assert sig.stop_loss == pytest.approx(102.0)
        assert sig.trend_filtered is False
        assert sig.reason == "Close (104.00) > 20-day high (103.50)"

    def test_breakdown_sell(self, breakdown_bars):
        calc = generate_signal("TEST", breakdown_bars, ScanConfig())
        sig = calc.system1

        assert calc.trend.context is TrendContext.DOWNTREND
        assert sig.sell_signal is True
        assert sig.buy_signal is False
        assert sig.entry_price == 98.0
        assert sig.stop_loss == pytest.approx(98.0 + 2.0 * (2.0 / 14))
        assert sig.reason == "Close (98.00) < 10-day low (100.00)"

    def test_no_signal_inside_channel(self, make_bars, flat_rows):
        calc = generate_signal("FLAT", make_bars(flat_rows(220, spread=1.0)), NO_FILTER)
        sig = calc.system1

        assert sig.direction is SignalDirection.NONE
        assert sig.entry_price is None
        assert sig.stop_loss is None
        assert sig.reason == ""
        assert sig.trend_filtered is False


class TestSystem2:
    """System 2: 55-day entry, 20-day exit, 1.5 ATR stop."""

    def test_breakout_buy_uses_smaller_stop(self, breakout_bars):
        calc = generate_signal("TEST", breakout_bars, NO_FILTER)
        sig = calc.system2

        assert sig.buy_signal is True
        assert sig.entry_price == 104.0
        assert sig.stop_loss == pytest.approx(104.0 - 1.5 * calc.indicators.atr14)
        assert sig.reason == "Close (104.00) > 55-day high (103.50)"

    def test_breakdown_sell_uses_20_day_low(self, breakdown_bars):
        sig = generate_signal("TEST", breakdown_bars, NO_FILTER).system2

        assert sig.sell_signal is True
        assert sig.stop_loss == pytest.approx(98.0 + 1.5 * (2.0 / 14))
        assert "20-day low (100.00)" in sig.reason

    def test_20_day_breakout_alone_does_not_trigger(self, make_bars, flat_rows):
        # 55-day high at 110 from 40 bars ago; today's close only beats the last 20 bars
        rows = (
            flat_rows(200)
            + [(105.0, 110.0, 100.0, 105.0)]
            + flat_rows(39)
            + [(100.0, 101.0, 100.0, 101.0)]
        )
        calc = generate_signal("TEST", make_bars(rows), NO_FILTER)

        assert calc.system1.buy_signal is True
        assert calc.system2.direction is SignalDirection.NONE


class TestTrendFilter:
    def test_buy_suppressed_below_ma(self, filtered_breakout_bars):
        calc = generate_signal("TEST", filtered_breakout_bars, ScanConfig(use_trend_filter=True))

        for sig in (calc.system1, calc.system2):
            assert sig.buy_signal is False
            assert sig.sell_signal is False
            assert sig.trend_filtered is True
            assert sig.entry_price is None
            assert sig.stop_loss is None
            assert "FILTERED: price below 200-day MA" in sig.reason
        assert calc.system1.reason.startswith("Breakout above 20-day high (100.00)")
        assert calc.system2.reason.startswith("Breakout above 55-day high (100.00)")

    def test_buy_fires_when_filter_disabled(self, filtered_breakout_bars):
        calc = generate_signal("TEST", filtered_breakout_bars, NO_FILTER)

        assert calc.trend.context is TrendContext.DOWNTREND
        assert calc.system1.buy_signal is True
        assert calc.system1.trend_filtered is False

    def test_sell_suppressed_above_ma(self, filtered_breakdown_bars):
        calc = generate_signal("TEST", filtered_breakdown_bars, ScanConfig(use_trend_filter=True))
        sig = calc.system1

        assert calc.trend.is_above_ma200 is True
        assert sig.sell_signal is False
        assert sig.trend_filtered is True
        assert sig.reason.startswith("Breakout below 10-day low (100.00) but FILTERED: price above 200-day MA")

    def test_buy_passes_in_uptrend(self, breakout_bars):
        calc = generate_signal("TEST", breakout_bars, ScanConfig(use_trend_filter=True))

        assert calc.trend.context is TrendContext.UPTREND
        assert calc.system1.buy_signal is True
        assert calc.system1.trend_filtered is False


class TestStopMultiplier:
    def test_explicit_multiplier_applies_to_both_systems(self, breakout_bars):
        calc = generate_signal("TEST", breakout_bars, ScanConfig(use_trend_filter=False, stop_loss_multiplier=3.0))

        assert calc.system1.stop_loss == pytest.approx(104.0 - 3.0)
        assert calc.system2.stop_loss == pytest.approx(104.0 - 3.0)


class TestClassifySystem:
    @pytest.fixture
    def trend(self):
        return TrendAnalysis(context=TrendContext.UPTREND, ma200=90.0, price=102.0, is_above_ma200=True, strength=0.1)

    def test_both_breakouts_raise_ambiguous(self, trend):
        # degenerate channels: entry high below exit low
        levels = DonchianLevels(
            donchian20_high=100.0,
            donchian20_low=95.0,
            donchian10_high=100.0,
            donchian10_low=105.0,
            donchian55_high=100.0,
            donchian55_low=95.0,
        )
        with pytest.raises(AmbiguousSignal):
            classify_system(TurtleSystem.SYSTEM1, 102.0, levels, 1.0, trend, NO_FILTER)

        # System 2 exits on the 20-day low, which the close does not break
        sig = classify_system(TurtleSystem.SYSTEM2, 102.0, levels, 1.0, trend, NO_FILTER)
        assert sig.buy_signal is True

    def test_accepts_system_name(self, trend):
        levels = DonchianLevels(110.0, 90.0, 110.0, 95.0, 120.0, 80.0)
        sig = classify_system("system2", 102.0, levels, 1.0, trend, NO_FILTER)
        assert sig.system is TurtleSystem.SYSTEM2
        assert sig.fired is False


class TestGenerateSignal:
    def test_result_fields(self, breakout_bars):
        calc = generate_signal("AAPL", breakout_bars, ScanConfig(system="system2"))

        assert calc.ticker == "AAPL"
        assert calc.date == breakout_bars[-1].date.isoformat()
        assert calc.close == 104.0
        assert calc.current_price == 104.0
        assert calc.indicators.donchian20_high == 104.0
        assert calc.breakout_levels.donchian20_high == 103.5
        assert calc.primary is calc.system2

        d = calc.to_dict()
        assert d["system1"]["buy_signal"] is True
        assert d["trend"]["context"] == "uptrend"
        assert d["indicators"]["atr14"] == 1.0

    def test_insufficient_history(self, breakout_bars):
        with pytest.raises(InsufficientData):
            generate_signal("AAPL", breakout_bars[-199:])

    def test_invalid_bar_raises(self, breakout_bars):
        breakout_bars[150] = replace(breakout_bars[150], high=90.0)
        with pytest.raises(InvalidData):
            generate_signal("AAPL", breakout_bars)

    def test_dataframe_input(self, breakout_bars):
        from_bars = generate_signal("AAPL", breakout_bars, NO_FILTER)
        from_df = generate_signal("AAPL", to_ohlcv_df(breakout_bars), NO_FILTER)
        assert from_df == from_bars

    def test_input_not_mutated(self, breakout_bars):
        before = list(breakout_bars)
        generate_signal("AAPL", breakout_bars)
        assert breakout_bars == before

    def test_reason_labels_match_channel_windows(self, make_bars, flat_rows):
        # a 110 high 26 bars back sits inside the 55-day channel only
        rows = flat_rows(200) + [(105.0, 110.0, 100.0, 105.0)] + flat_rows(25) + [(111.0, 111.0, 110.0, 111.0)]
        calc = generate_signal("AAPL", make_bars(rows), NO_FILTER)

        assert calc.breakout_levels.donchian20_high == 100.0
        assert calc.breakout_levels.donchian55_high == 110.0
        assert calc.system1.reason == "Close (111.00) > 20-day high (100.00)"
        assert calc.system2.reason == "Close (111.00) > 55-day high (110.00)"


class TestTrendFilterAtMovingAverage:
    """A close exactly on the MA counts as below it, matching the downtrend tie rule."""

    @pytest.fixture
    def on_ma(self):
        return TrendAnalysis(context=TrendContext.DOWNTREND, ma200=100.0, price=100.0, is_above_ma200=False, strength=0.0)

    def test_sell_passes_filter(self, on_ma):
        levels = DonchianLevels(110.0, 90.0, 110.0, 101.0, 120.0, 80.0)
        sig = classify_system(TurtleSystem.SYSTEM1, 100.0, levels, 1.0, on_ma, ScanConfig())

        assert sig.sell_signal is True
        assert sig.trend_filtered is False

    def test_buy_is_filtered(self, on_ma):
        levels = DonchianLevels(99.0, 90.0, 110.0, 95.0, 120.0, 80.0)
        sig = classify_system(TurtleSystem.SYSTEM1, 100.0, levels, 1.0, on_ma, ScanConfig())

        assert sig.fired is False
        assert sig.trend_filtered is True
        assert "price below 200-day MA (100.00)" in sig.reason
