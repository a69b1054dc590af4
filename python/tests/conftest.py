"""Shared bar builders for the test suite."""

from datetime import date, timedelta

import pytest

from turtle_tf.types import Bar

START = date(2024, 1, 1)


def _bars(ohlc_rows, start=START):
    """Build consecutive daily bars from (open, high, low, close) tuples."""
    return [
        Bar(date=start + timedelta(days=i), open=o, high=h, low=l, close=c, volume=1_000_000)
        for i, (o, h, l, c) in enumerate(ohlc_rows)
    ]


def _flat(n, price=100.0, spread=0.0):
    return [(price, price + spread, price - spread, price)] * n


@pytest.fixture
def make_bars():
    """Factory: list of (open, high, low, close) -> list[Bar]."""
    return _bars


@pytest.fixture
def flat_rows():
    """Factory: n identical (o, h, l, c) rows around `price`."""
    return _flat


@pytest.fixture
def breakout_bars():
    """200 flat bars at 100, 20 bars topping at 103.5, then a close at 104."""
    rows = _flat(200) + [(103.0, 103.5, 102.5, 103.0)] * 20 + [(103.5, 104.0, 103.5, 104.0)]
    return _bars(rows)


@pytest.fixture
def breakdown_bars():
    """230 flat bars at 100, then a close at 98 below every prior low."""
    rows = _flat(230) + [(100.0, 100.0, 98.0, 98.0)]
    return _bars(rows)
