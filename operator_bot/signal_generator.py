"""
Signal generation logic for the operator strategy
"""
import logging
import math
from typing import List, Optional

import pandas as pd

from .data_loader import recent_window
from .models import SignalCandidate, StructuralAnalysis
from .structure_detector import analyze_structure
from .thresholds import (
    BASE_CONFIDENCE, TRAP_BONUS, TRAP_STRENGTH_WEIGHT, BIAS_BONUS,
    DIVERGENCE_BONUS, KEY_LEVEL_BONUS, STRONG_TREND_BONUS, STRONG_TREND_MIN,
    HIGH_VOLATILITY_PENALTY, HIGH_VOLATILITY_MIN, MIN_CONFIDENCE, MAX_CONFIDENCE,
    BUY_STOP_FALLBACK, BUY_TARGET_FALLBACK, SELL_STOP_FALLBACK, SELL_TARGET_FALLBACK,
    PIP_BUFFER_MULTIPLIER, RISK_GUARD
)
from .timeframes import min_risk_reward_for, trade_type_for

logger = logging.getLogger(__name__)


def get_pip_value(symbol: str) -> float:
    """Instrument-class pip size"""
    if 'JPY' in symbol:
        return 0.01
    if 'XAU' in symbol or 'GC' in symbol:
        return 0.1
    if 'BTC' in symbol:
        return 10
    if 'ETH' in symbol or 'SOL' in symbol or 'BNB' in symbol:
        return 0.1
    if symbol in ('NQ', 'ES', 'YM'):
        return 0.25
    if symbol == 'CL':
        return 0.01
    return 0.0001


def nearest_below(levels: List[float], price: float) -> Optional[float]:
    below = [level for level in levels if level < price]
    return max(below) if below else None


def nearest_above(levels: List[float], price: float) -> Optional[float]:
    above = [level for level in levels if level > price]
    return min(above) if above else None


def clamp_confidence(confidence: int) -> int:
    return min(MAX_CONFIDENCE, max(MIN_CONFIDENCE, confidence))


def generate_operator_signal(analysis: StructuralAnalysis, symbol: str,
                             timeframe: str) -> Optional[SignalCandidate]:
    """
    Turn a structural analysis into a gated trade candidate

    Args:
        analysis: Output of analyze_structure
        symbol: Internal symbol, e.g. 'EURUSD'
        timeframe: Timeframe label, e.g. 'H1'

    Returns:
        SignalCandidate, or None when there is no setup or the
        reward:risk ratio is below the timeframe minimum
    """
    price = analysis.current_price
    trap = analysis.trap
    bias = analysis.institutional_bias
    confidence = BASE_CONFIDENCE
    factors = []

    # Trap setups take priority over structural bias
    if trap.is_trap:
        confidence += TRAP_BONUS + math.floor(trap.strength * TRAP_STRENGTH_WEIGHT)
        if trap.direction == 'bull_trap':
            direction = 'SELL'
            reasoning = 'BULL TRAP: Price swept highs and rejected. '
        else:
            direction = 'BUY'
            reasoning = 'BEAR TRAP: Price swept lows and rejected. '
        factors.append('trap_detected')
    elif bias != 'neutral':
        confidence += BIAS_BONUS
        if bias == 'bullish':
            direction = 'BUY'
            reasoning = 'Bullish structure (HH/HL). '
        else:
            direction = 'SELL'
            reasoning = 'Bearish structure (LH/LL). '
        factors.append('bias_aligned')
    else:
        logger.info(f"{symbol} {timeframe}: Skipping - no trap and neutral bias")
        return None

    if analysis.has_divergence:
        confidence += DIVERGENCE_BONUS
        reasoning += 'Momentum divergence detected. '
        factors.append('divergence')

    if analysis.near_key_level:
        confidence += KEY_LEVEL_BONUS
        reasoning += 'Near key S/D zone. '
        factors.append('key_level')

    if analysis.trend_strength > STRONG_TREND_MIN:
        confidence += STRONG_TREND_BONUS
        factors.append('strong_trend')

    if analysis.volatility > HIGH_VOLATILITY_MIN:
        confidence -= HIGH_VOLATILITY_PENALTY

    confidence = clamp_confidence(confidence)

    pip_buffer = get_pip_value(symbol) * PIP_BUFFER_MULTIPLIER

    if direction == 'BUY':
        demand = nearest_below(analysis.demand_zones, price) or price * BUY_STOP_FALLBACK
        stop_loss = demand - pip_buffer
        take_profit = nearest_above(analysis.supply_zones, price) or price * BUY_TARGET_FALLBACK
        reasoning += (f"Entry: {price:.5f}, SL below demand at {stop_loss:.5f}, "
                      f"TP at supply {take_profit:.5f}. ")
    else:
        supply = nearest_above(analysis.supply_zones, price) or price * SELL_STOP_FALLBACK
        stop_loss = supply + pip_buffer
        take_profit = nearest_below(analysis.demand_zones, price) or price * SELL_TARGET_FALLBACK
        reasoning += (f"Entry: {price:.5f}, SL above supply at {stop_loss:.5f}, "
                      f"TP at demand {take_profit:.5f}. ")

    risk = abs(price - stop_loss)
    reward = abs(take_profit - price)
    risk_reward = reward / (risk or RISK_GUARD)

    min_rr = min_risk_reward_for(timeframe)
    if risk_reward < min_rr:
        logger.info(f"{symbol} {timeframe}: Skipping - R:R {risk_reward:.2f} < {min_rr}")
        return None

    reasoning += f"R:R {risk_reward:.2f}. Factors: {', '.join(factors)}."

    return SignalCandidate(
        symbol=symbol,
        direction=direction,
        entry_price=price,
        stop_loss=float(stop_loss),
        take_profit=float(take_profit),
        reward_risk_ratio=round(float(risk_reward), 2),
        confidence=int(confidence),
        timeframe=timeframe,
        trade_type=trade_type_for(timeframe),
        analysis=analysis.snapshot(),
        reasoning=reasoning
    )


def analyze_operator_strategy(bars: pd.DataFrame, symbol: str,
                              timeframe: str) -> Optional[SignalCandidate]:
    """Analyze the most recent window of normalized bars"""
    window = recent_window(bars)
    if window is None:
        logger.info(f"{symbol} {timeframe}: Not enough candles ({len(bars)})")
        return None

    analysis = analyze_structure(window)

    logger.info(
        f"{symbol} {timeframe}: bias={analysis.institutional_bias}, "
        f"trap={analysis.trap.direction}, trend={analysis.trend_strength:.2f}, "
        f"nearKey={analysis.near_key_level}, divergence={analysis.has_divergence}"
    )

    return generate_operator_signal(analysis, symbol, timeframe)
