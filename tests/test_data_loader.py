import math
import sys
from pathlib import Path

# Ensure project root on sys.path before importing project packages
sys.path.append(str(Path(__file__).resolve().parents[1]))

import pandas as pd
import pytest

from operator_bot.data_loader import (
    frame_to_bars, has_enough_history, load_csv, normalize_bars, recent_window
)
from operator_bot.models import Bar
from conftest import flat_bars


def test_incomplete_bars_are_dropped():
    bars = [
        Bar(1.1, 1.2, 1.0, 1.15),
        Bar(None, 1.2, 1.0, 1.15),
        Bar(1.1, math.nan, 1.0, 1.15),
        Bar(1.1, 1.2, 0.0, 1.15),
        {"open": 1.1, "high": 1.2, "low": 1.0, "close": 1.12, "timestamp": 1704067200},
        {"open": "x", "high": 1.2, "low": 1.0, "close": 1.12},
    ]
    df = normalize_bars(bars)

    assert len(df) == 2
    assert list(df.columns) == ["open", "high", "low", "close", "volume", "timestamp"]
    assert df["timestamp"].iloc[1].year == 2024


def test_history_threshold():
    assert not has_enough_history(flat_bars(49))
    assert has_enough_history(flat_bars(50))
    assert recent_window(flat_bars(49)) is None
    assert len(recent_window(flat_bars(80))) == 50


def test_frame_round_trip_keeps_prices():
    df = flat_bars(3)
    bars = frame_to_bars(df)
    assert [bar.close for bar in bars] == [1.1, 1.1, 1.1]
    assert normalize_bars(bars)["high"].tolist() == df["high"].tolist()


def test_load_csv_cleans_input(tmp_path):
    path = tmp_path / "EURUSD_1h.csv"
    pd.DataFrame({
        "Timestamp": [1704070800000, 1704067200000, 1704074400000],
        "Open": [1.10, 1.10, 1.10],
        "High": [1.11, 1.11, 1.09],
        "Low": [1.09, 1.09, 1.08],
        "Close": [1.105, 1.10, 1.10],
    }).to_csv(path, index=False)

    df = load_csv(str(path))

    # Third row has high below open and is dropped
    assert len(df) == 2
    assert df["timestamp"].is_monotonic_increasing
    assert (df["volume"] == 0).all()


def test_load_csv_requires_price_columns(tmp_path):
    path = tmp_path / "bad.csv"
    pd.DataFrame({"timestamp": [1], "close": [1.0]}).to_csv(path, index=False)
    with pytest.raises(ValueError):
        load_csv(str(path))


def test_rows_that_are_not_bars_are_dropped():
    df = normalize_bars([[1, 2, 3, 4], None, "bar", Bar(1.1, 1.2, 1.0, 1.15)])
    assert len(df) == 1
    assert df["close"].iloc[0] == 1.15


def test_load_csv_with_iso_timestamps(tmp_path):
    path = tmp_path / "EURUSD_4h.csv"
    flat_bars(3).to_csv(path, index=False)

    df = load_csv(str(path))

    assert len(df) == 3
    assert str(df["timestamp"].dt.tz) == "UTC"
