import sys
from pathlib import Path

# Ensure project root on sys.path before importing project packages
sys.path.append(str(Path(__file__).resolve().parents[1]))

import pandas as pd
import pytest

from operator_bot.models import SignalCandidate
from operator_bot.timeframes import trade_type_for


def flat_bars(count: int, price: float = 1.1000, spread: float = 0.0050) -> pd.DataFrame:
    """Identical doji bars around `price`"""
    return pd.DataFrame({
        "timestamp": pd.date_range("2024-01-01", periods=count, freq="h", tz="UTC"),
        "open": [price] * count,
        "high": [price + spread] * count,
        "low": [price - spread] * count,
        "close": [price] * count,
        "volume": [100.0] * count,
    })


def with_last_bar(df: pd.DataFrame, open_, high, low, close) -> pd.DataFrame:
    last = pd.DataFrame({
        "timestamp": [df["timestamp"].iloc[-1] + pd.Timedelta(hours=1)],
        "open": [open_], "high": [high], "low": [low], "close": [close], "volume": [100.0],
    })
    return pd.concat([df, last], ignore_index=True)


@pytest.fixture
def bull_trap_bars():
    # Prior highest high 1.1050; final bar sweeps to 1.1080 and closes at 1.1055
    return with_last_bar(flat_bars(49), 1.1070, 1.1080, 1.1045, 1.1055)


@pytest.fixture
def bear_trap_bars():
    # Prior lowest low 1.0950; final bar sweeps to 1.0920 and closes at 1.0945
    return with_last_bar(flat_bars(49), 1.0930, 1.0955, 1.0920, 1.0945)


@pytest.fixture
def make_candidate():
    def _make(symbol="EURUSD", timeframe="H1", confidence=70, direction="BUY"):
        return SignalCandidate(
            symbol=symbol,
            direction=direction,
            entry_price=1.1000,
            stop_loss=1.0950 if direction == "BUY" else 1.1050,
            take_profit=1.1150 if direction == "BUY" else 1.0850,
            reward_risk_ratio=3.0,
            confidence=confidence,
            timeframe=timeframe,
            trade_type=trade_type_for(timeframe),
            analysis={"trap_direction": "none", "institutional_bias": "bullish"},
            reasoning="Bullish structure (HH/HL).",
        )
    return _make
