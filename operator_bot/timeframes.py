"""
Timeframe label helpers
"""
from .thresholds import MIN_RISK_REWARD, DEFAULT_MIN_RISK_REWARD

SCALP_TIMEFRAME = 'M15'
INTRADAY_TIMEFRAME = 'H1'

VALID_TIMEFRAMES = ('M15', 'H1', 'H4', 'D1')

TIMEFRAME_INTERVALS = {
    'M15': '15m',
    'H1': '1h',
    'H4': '4h',
}

# How much history the provider is asked for per interval
INTERVAL_RANGES = {
    '15m': '5d',
    '1h': '1mo',
}


def interval_for(timeframe: str) -> str:
    """Provider sampling interval for a timeframe label (daily fallback)"""
    return TIMEFRAME_INTERVALS.get(timeframe, '1d')


def history_range_for(interval: str) -> str:
    return INTERVAL_RANGES.get(interval, '3mo')


def min_risk_reward_for(timeframe: str) -> float:
    return MIN_RISK_REWARD.get(timeframe, DEFAULT_MIN_RISK_REWARD)


def trade_type_for(timeframe: str) -> str:
    if timeframe == SCALP_TIMEFRAME:
        return 'scalp'
    if timeframe == INTRADAY_TIMEFRAME:
        return 'intraday'
    return 'swing'


def milestone_for(timeframe: str) -> str:
    """Coarse tier label stored with persisted signals"""
    if timeframe == SCALP_TIMEFRAME:
        return 'M1'
    if timeframe == INTRADAY_TIMEFRAME:
        return 'M2'
    return 'M3'
