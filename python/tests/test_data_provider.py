"""Tests for CSV providers, the fallback chain and frame helpers."""

from datetime import date

import pandas as pd
import pytest

from turtle_tf.data_provider import (
    CsvProvider,
    FallbackProvider,
    OhlcvFrame,
    PanelCsvProvider,
    bars_from_frame,
    lookback_start,
)
from turtle_tf.validation import to_ohlcv_df


@pytest.fixture
def csv_dir(tmp_path):
    # lower-case headers, unsorted, one duplicated day (last wins), no volume column
    (tmp_path / "AAPL.csv").write_text(
        "date,open,high,low,close\n"
        "2024-01-03,11,12,10,11\n"
        "2024-01-02,10,11,9,10\n"
        "2024-01-04,12,13,11,12\n"
        "2024-01-03,11,12.5,10,12\n",
        encoding="utf-8",
    )
    return tmp_path


class TestCsvProvider:
    def test_standardizes_frame(self, csv_dir):
        frame = CsvProvider(csv_dir).fetch("aapl")
        df = frame.df

        assert frame.symbol == "aapl"
        assert list(df.columns) == ["Open", "High", "Low", "Close", "Volume"]
        assert list(df.index) == [pd.Timestamp("2024-01-02"), pd.Timestamp("2024-01-03"), pd.Timestamp("2024-01-04")]
        assert df.loc[pd.Timestamp("2024-01-03"), "High"] == 12.5
        assert (df["Volume"] == 0.0).all()

    def test_date_slicing(self, csv_dir):
        frame = CsvProvider(csv_dir).fetch("AAPL", start="2024-01-03", end="2024-01-03")
        assert len(frame) == 1

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            CsvProvider(tmp_path).fetch("NOPE", "2024-01-01", "2024-02-01")

    def test_empty_window_raises(self, csv_dir):
        with pytest.raises(RuntimeError):
            CsvProvider(csv_dir).fetch("AAPL", start="2025-01-01", end="2025-02-01")


class TestPanelCsvProvider:
    def test_selects_one_ticker(self, tmp_path):
        path = tmp_path / "panel.csv"
        path.write_text(
            "Date,Ticker,Name,Open,High,Low,Close,Volume\n"
            "2024-01-02,AAPL,Apple,10,11,9,10,100\n"
            "2024-01-02,MSFT,Microsoft,20,21,19,20,200\n"
            "2024-01-03,AAPL,Apple,11,12,10,11,150\n",
            encoding="utf-8",
        )
        frame = PanelCsvProvider(path).fetch("aapl")

        assert len(frame) == 2
        assert list(frame.df["Volume"]) == [100.0, 150.0]

    def test_unknown_ticker(self, tmp_path):
        path = tmp_path / "panel.csv"
        path.write_text("Date,Ticker,Open,High,Low,Close\n2024-01-02,AAPL,10,11,9,10\n", encoding="utf-8")
        with pytest.raises(RuntimeError):
            PanelCsvProvider(path).fetch("MSFT")


class _Failing:
    def fetch(self, symbol, start, end):
        raise RuntimeError("vendor down")


class _Static:
    def __init__(self, frame):
        self.frame = frame
        self.calls = 0

    def fetch(self, symbol, start, end):
        self.calls += 1
        return self.frame


class TestFallbackProvider:
    def test_first_success_wins(self, make_bars, flat_rows):
        frame = OhlcvFrame(df=to_ohlcv_df(make_bars(flat_rows(5))), symbol="AAPL")
        second, third = _Static(frame), _Static(frame)

        out = FallbackProvider([_Failing(), second, third]).fetch("AAPL", "2024-01-01", "2024-02-01")

        assert out is frame
        assert second.calls == 1
        assert third.calls == 0

    def test_empty_result_falls_through(self, make_bars, flat_rows):
        empty = OhlcvFrame(df=to_ohlcv_df([]), symbol="AAPL")
        full = OhlcvFrame(df=to_ohlcv_df(make_bars(flat_rows(5))), symbol="AAPL")

        out = FallbackProvider([_Static(empty), _Static(full)]).fetch("AAPL", "2024-01-01", "2024-02-01")
        assert out is full

    def test_all_failing_raises(self):
        with pytest.raises(RuntimeError, match="vendor down"):
            FallbackProvider([_Failing(), _Failing()]).fetch("AAPL", "2024-01-01", "2024-02-01")

    def test_needs_a_provider(self):
        with pytest.raises(ValueError):
            FallbackProvider([])


class TestHelpers:
    def test_lookback_start(self):
        assert lookback_start(date(2024, 12, 31), 200) == date(2023, 11, 27)

    def test_bars_from_frame(self, make_bars, flat_rows):
        bars = make_bars(flat_rows(3, spread=1.0))
        assert bars_from_frame(OhlcvFrame(df=to_ohlcv_df(bars), symbol="X")) == bars
