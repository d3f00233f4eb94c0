"""
Market structure detection functions
"""
import logging
from typing import Iterable, List, Sequence

import numpy as np
import pandas as pd

from .models import StructuralAnalysis, TrapVerdict
from .thresholds import (
    STRUCTURE_LOOKBACK, TREND_AVG_PERIOD, TREND_CHANGE_WEIGHT, TREND_DIRECTION_WEIGHT,
    ZONE_WICK_RATIO, MAX_ZONES, POOL_TOLERANCE, MAX_POOLS,
    TRAP_EXCLUDED_BARS, TRAP_REJECTION_MIN, PIN_BAR_WICK_RATIO, PIN_BAR_STRENGTH,
    STOP_HUNT_OFFSET, BIAS_HALF, STRUCTURE_TOLERANCE,
    FAST_EMA_PERIOD, FAST_EMA_SPAN, SLOW_EMA_PERIOD, SLOW_EMA_SPAN,
    DIVERGENCE_RECENT_BARS, DIVERGENCE_TOLERANCE, RSI_BEARISH_MAX, RSI_BULLISH_MIN,
    RSI_ZERO_LOSS_GUARD, KEY_LEVEL_TOLERANCE
)

logger = logging.getLogger(__name__)


def _unique_tail(levels: Iterable[float], keep: int) -> List[float]:
    """De-duplicate preserving first occurrence, then keep the last `keep`"""
    unique = list(dict.fromkeys(float(level) for level in levels))
    return unique[-keep:]


def calculate_volatility(df: pd.DataFrame) -> float:
    """Mean bar range relative to close"""
    return float(((df['high'] - df['low']) / df['close']).mean())


def calculate_trend_strength(df: pd.DataFrame, period: int = TREND_AVG_PERIOD) -> float:
    """ADX-like score from average drift plus directional move imbalance"""
    closes = df['close'].to_numpy(dtype=float)
    first_avg = closes[:period].mean()
    last_avg = closes[-period:].mean()
    price_change = (last_avg - first_avg) / first_avg

    # A flat close counts as a down move
    diffs = np.diff(closes)
    up_moves = int((diffs > 0).sum())
    down_moves = len(diffs) - up_moves

    directional_ratio = abs(up_moves - down_moves) / len(closes)
    return float(abs(price_change) * TREND_CHANGE_WEIGHT + directional_ratio * TREND_DIRECTION_WEIGHT)


def find_supply_zones(df: pd.DataFrame, wick_ratio: float = ZONE_WICK_RATIO,
                      max_zones: int = MAX_ZONES) -> List[float]:
    """Swing highs rejected by an upper wick or a bearish close"""
    opens = df['open'].to_numpy(dtype=float)
    highs = df['high'].to_numpy(dtype=float)
    closes = df['close'].to_numpy(dtype=float)
    zones = []

    for i in range(3, len(df) - 1):
        high = highs[i]
        if high > highs[i - 1] and high > highs[i - 2] and high > highs[i + 1]:
            body = abs(closes[i] - opens[i])
            upper_wick = high - max(opens[i], closes[i])
            if upper_wick > body * wick_ratio or closes[i] < opens[i]:
                zones.append(high)

    return _unique_tail(zones, max_zones)


def find_demand_zones(df: pd.DataFrame, wick_ratio: float = ZONE_WICK_RATIO,
                      max_zones: int = MAX_ZONES) -> List[float]:
    """Swing lows rejected by a lower wick or a bullish close"""
    opens = df['open'].to_numpy(dtype=float)
    lows = df['low'].to_numpy(dtype=float)
    closes = df['close'].to_numpy(dtype=float)
    zones = []

    for i in range(3, len(df) - 1):
        low = lows[i]
        if low < lows[i - 1] and low < lows[i - 2] and low < lows[i + 1]:
            body = abs(closes[i] - opens[i])
            lower_wick = min(opens[i], closes[i]) - low
            if lower_wick > body * wick_ratio or closes[i] > opens[i]:
                zones.append(low)

    return _unique_tail(zones, max_zones)


def _equal_levels(values: Sequence[float], tolerance: float, pick) -> List[float]:
    levels = []
    for i in range(len(values) - 1):
        for j in range(i + 1, len(values)):
            if abs(values[i] - values[j]) / values[i] < tolerance:
                levels.append(pick(values[i], values[j]))
    return levels


def find_liquidity_pools(df: pd.DataFrame, lookback: int = STRUCTURE_LOOKBACK,
                         tolerance: float = POOL_TOLERANCE,
                         max_pools: int = MAX_POOLS) -> List[float]:
    """Equal lows (liquidity below) followed by equal highs (liquidity above)"""
    recent = df.iloc[-lookback:]
    lows = recent['low'].to_numpy(dtype=float)
    highs = recent['high'].to_numpy(dtype=float)

    pools = _equal_levels(lows, tolerance, min)
    pools += _equal_levels(highs, tolerance, max)

    return _unique_tail(pools, max_pools)


def detect_trap_setup(df: pd.DataFrame, lookback: int = STRUCTURE_LOOKBACK) -> TrapVerdict:
    """Detect a sweep of the recent extreme that closed back inside"""
    last = df.iloc[-1]
    prev = df.iloc[-2]
    prev2 = df.iloc[-3]

    prior = df.iloc[-lookback:-TRAP_EXCLUDED_BARS]
    highest_high = float(prior['high'].max())
    lowest_low = float(prior['low'].min())

    bar_range = last['high'] - last['low']
    body = abs(last['close'] - last['open'])

    # Bull trap: broke above recent high but closed bearish
    if last['high'] > highest_high and last['close'] < last['open'] and bar_range > 0:
        rejection = (last['high'] - last['close']) / bar_range
        if rejection > TRAP_REJECTION_MIN:
            return TrapVerdict(True, 'bull_trap', float(rejection))

    # Bear trap: broke below recent low but closed bullish
    if last['low'] < lowest_low and last['close'] > last['open'] and bar_range > 0:
        rejection = (last['close'] - last['low']) / bar_range
        if rejection > TRAP_REJECTION_MIN:
            return TrapVerdict(True, 'bear_trap', float(rejection))

    # Pin bars at local extremes
    if last['high'] > prev['high'] and last['high'] > prev2['high']:
        upper_wick = last['high'] - max(last['open'], last['close'])
        if upper_wick > body * PIN_BAR_WICK_RATIO:
            return TrapVerdict(True, 'bull_trap', PIN_BAR_STRENGTH)

    if last['low'] < prev['low'] and last['low'] < prev2['low']:
        lower_wick = min(last['open'], last['close']) - last['low']
        if lower_wick > body * PIN_BAR_WICK_RATIO:
            return TrapVerdict(True, 'bear_trap', PIN_BAR_STRENGTH)

    return TrapVerdict()


def find_stop_hunt_zone(df: pd.DataFrame, current_price: float,
                        lookback: int = STRUCTURE_LOOKBACK) -> float:
    """Nearest recent extreme, pushed slightly beyond price"""
    recent = df.iloc[-lookback:]
    lowest_low = float(recent['low'].min())
    highest_high = float(recent['high'].max())

    if current_price - lowest_low < highest_high - current_price:
        return lowest_low * (1 - STOP_HUNT_OFFSET)
    return highest_high * (1 + STOP_HUNT_OFFSET)


def calculate_ema(prices: Sequence[float], period: int) -> float:
    """EMA seeded with the simple average of the first `period` prices"""
    prices = [float(p) for p in prices]
    if len(prices) < period:
        return prices[-1]
    multiplier = 2 / (period + 1)
    ema = sum(prices[:period]) / period
    for price in prices[period:]:
        ema = (price - ema) * multiplier + ema
    return ema


def determine_institutional_bias(df: pd.DataFrame, half: int = BIAS_HALF) -> str:
    """Swing structure between window halves combined with a fast/slow EMA cross"""
    first_half = df.iloc[:half]
    second_half = df.iloc[-half:]

    first_high = first_half['high'].max()
    second_high = second_half['high'].max()
    first_low = first_half['low'].min()
    second_low = second_half['low'].min()

    higher_highs = second_high > first_high * (1 + STRUCTURE_TOLERANCE)
    higher_lows = second_low > first_low * (1 + STRUCTURE_TOLERANCE)
    lower_highs = second_high < first_high * (1 - STRUCTURE_TOLERANCE)
    lower_lows = second_low < first_low * (1 - STRUCTURE_TOLERANCE)

    closes = df['close'].tolist()
    fast_ema = calculate_ema(closes[-FAST_EMA_SPAN:], FAST_EMA_PERIOD)
    slow_ema = calculate_ema(closes[-SLOW_EMA_SPAN:], SLOW_EMA_PERIOD)
    ema_bullish = fast_ema > slow_ema

    if (higher_highs and higher_lows) or (higher_lows and ema_bullish):
        return 'bullish'
    if (lower_highs and lower_lows) or (lower_highs and not ema_bullish):
        return 'bearish'
    return 'neutral'


def calculate_rsi(closes: Sequence[float]) -> float:
    """Single-pass RSI over the whole sequence"""
    gains = 0.0
    losses = 0.0
    for prev, curr in zip(closes[:-1], closes[1:]):
        change = curr - prev
        if change > 0:
            gains += change
        else:
            losses -= change
    return 100 - (100 / (1 + gains / (losses or RSI_ZERO_LOSS_GUARD)))


def check_momentum_divergence(df: pd.DataFrame, lookback: int = STRUCTURE_LOOKBACK) -> bool:
    """Price pressing an extreme while momentum does not confirm it"""
    recent = df.iloc[-lookback:]
    rsi = calculate_rsi(recent['close'].tolist())

    tail = recent.iloc[-DIVERGENCE_RECENT_BARS:]
    price_high = tail['high'].max()
    price_low = tail['low'].min()
    overall_high = recent['high'].max()
    overall_low = recent['low'].min()

    # Bearish: new high without overbought momentum
    if price_high >= overall_high * (1 - DIVERGENCE_TOLERANCE) and rsi < RSI_BEARISH_MAX:
        return True
    # Bullish: new low without oversold momentum
    if price_low <= overall_low * (1 + DIVERGENCE_TOLERANCE) and rsi > RSI_BULLISH_MIN:
        return True
    return False


def is_near_key_level(price: float, levels: Iterable[float],
                      tolerance: float = KEY_LEVEL_TOLERANCE) -> bool:
    return any(abs(price - level) / price < tolerance for level in levels)


def analyze_structure(window: pd.DataFrame) -> StructuralAnalysis:
    """
    Run every structural detector over one window

    Args:
        window: Most recent bars, oldest first (see data_loader.recent_window)

    Returns:
        StructuralAnalysis for the window's last close
    """
    current_price = float(window['close'].iloc[-1])
    supply_zones = find_supply_zones(window)
    demand_zones = find_demand_zones(window)

    return StructuralAnalysis(
        current_price=current_price,
        volatility=calculate_volatility(window),
        trend_strength=calculate_trend_strength(window),
        supply_zones=supply_zones,
        demand_zones=demand_zones,
        liquidity_pools=find_liquidity_pools(window),
        trap=detect_trap_setup(window),
        stop_hunt_zone=find_stop_hunt_zone(window, current_price),
        institutional_bias=determine_institutional_bias(window),
        has_divergence=check_momentum_divergence(window),
        near_key_level=is_near_key_level(current_price, supply_zones + demand_zones)
    )
