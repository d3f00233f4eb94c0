import sys
from pathlib import Path

# Ensure project root on sys.path before importing project packages
sys.path.append(str(Path(__file__).resolve().parents[1]))

import pandas as pd
import pytest

from operator_bot.structure_detector import (
    analyze_structure, calculate_ema, calculate_rsi, detect_trap_setup,
    determine_institutional_bias, find_demand_zones, find_liquidity_pools,
    find_stop_hunt_zone, find_supply_zones, is_near_key_level
)
from conftest import flat_bars, with_last_bar


def _frame(opens, highs, lows, closes):
    return pd.DataFrame({"open": opens, "high": highs, "low": lows, "close": closes})


def test_supply_zone_at_rejected_swing_high():
    highs = [1.0, 1.0, 1.0, 1.0, 1.5, 1.0, 1.0, 1.0]
    df = _frame([1.0] * 8, highs, [0.9] * 8, [1.0] * 8)
    assert find_supply_zones(df) == [1.5]


def test_demand_zone_at_rejected_swing_low():
    lows = [0.9, 0.9, 0.9, 0.9, 0.5, 0.9, 0.9, 0.9]
    df = _frame([1.0] * 8, [1.1] * 8, lows, [1.0] * 8)
    assert find_demand_zones(df) == [0.5]


def test_zones_keep_last_three_unique_levels():
    highs = [1.0, 1.0, 1.0, 1.0, 1.2, 1.0, 1.0, 1.3, 1.0, 1.0, 1.4, 1.0, 1.0, 1.5, 1.0, 1.0, 1.2, 1.0]
    n = len(highs)
    df = _frame([1.0] * n, highs, [0.9] * n, [1.0] * n)
    # 1.2 appears twice; first occurrence is kept before taking the tail
    assert find_supply_zones(df) == [1.3, 1.4, 1.5]


def test_liquidity_pools_list_lows_before_highs():
    df = flat_bars(20)
    assert find_liquidity_pools(df) == [pytest.approx(1.095), pytest.approx(1.105)]


def test_bull_trap_detected(bull_trap_bars):
    trap = detect_trap_setup(bull_trap_bars)
    assert trap.is_trap
    assert trap.direction == "bull_trap"
    assert trap.strength == pytest.approx(0.0025 / 0.0035)


def test_bear_trap_detected(bear_trap_bars):
    trap = detect_trap_setup(bear_trap_bars)
    assert trap.is_trap
    assert trap.direction == "bear_trap"


def test_pin_bar_below_prior_extreme():
    df = flat_bars(49)
    # Earlier spike keeps the final bar below the 20-bar high
    df.loc[40, "high"] = 1.2000
    df = with_last_bar(df, 1.1000, 1.1100, 1.0990, 1.1005)

    trap = detect_trap_setup(df)
    assert trap.direction == "bull_trap"
    assert trap.strength == 0.6


def test_no_trap_on_flat_series():
    trap = detect_trap_setup(flat_bars(50))
    assert not trap.is_trap
    assert trap.direction == "none"


def test_stop_hunt_zone_uses_nearest_extreme():
    df = flat_bars(20)
    assert find_stop_hunt_zone(df, 1.0960) == pytest.approx(1.095 * 0.998)
    assert find_stop_hunt_zone(df, 1.1040) == pytest.approx(1.105 * 1.002)


def test_ema_falls_back_to_last_price_when_short():
    assert calculate_ema([1.0, 2.0, 3.0], 10) == 3.0
    assert calculate_ema([2.0] * 20, 10) == pytest.approx(2.0)


def test_rsi_without_losses_is_bounded():
    assert calculate_rsi([1.0, 1.1, 1.2]) == pytest.approx(100 - 100 / (1 + 0.2 / 0.001))
    assert calculate_rsi([1.2, 1.1, 1.0]) == 0


def test_bias_bullish_on_rising_structure():
    closes = [1.0 + i * 0.002 for i in range(50)]
    df = _frame(closes, [c + 0.001 for c in closes], [c - 0.001 for c in closes], closes)
    assert determine_institutional_bias(df) == "bullish"


def test_bias_bearish_on_falling_structure():
    closes = [1.2 - i * 0.002 for i in range(50)]
    df = _frame(closes, [c + 0.001 for c in closes], [c - 0.001 for c in closes], closes)
    assert determine_institutional_bias(df) == "bearish"


def test_bias_neutral_on_flat_series():
    assert determine_institutional_bias(flat_bars(50)) == "neutral"


def test_key_level_tolerance():
    assert is_near_key_level(1.1000, [1.1030])
    assert not is_near_key_level(1.1000, [1.1040])
    assert not is_near_key_level(1.1000, [])


def test_analyze_structure_snapshot(bull_trap_bars):
    analysis = analyze_structure(bull_trap_bars)
    snapshot = analysis.snapshot()

    assert analysis.current_price == 1.1055
    assert analysis.has_divergence
    assert snapshot["trap_direction"] == "bull_trap"
    assert set(snapshot) == {
        "supply_zones", "demand_zones", "liquidity_pools", "stop_loss_hunt_zone",
        "trap_direction", "institutional_bias", "trend_strength", "volatility",
    }
