"""
Named thresholds for the operator strategy
"""

# History / window
WINDOW_SIZE = 50  # Bars used for every structural computation
MIN_BARS = 50  # Valid bars required before a symbol/timeframe is analysed
STRUCTURE_LOOKBACK = 20  # Bars for pools, traps, stop-hunt and momentum

# Trend strength
TREND_AVG_PERIOD = 10
TREND_CHANGE_WEIGHT = 100.0
TREND_DIRECTION_WEIGHT = 50.0

# Supply / demand zones
ZONE_WICK_RATIO = 0.3  # Wick must exceed this share of the body
MAX_ZONES = 3

# Liquidity pools
POOL_TOLERANCE = 0.002  # 0.2% relative distance
MAX_POOLS = 5

# Trap setups
TRAP_EXCLUDED_BARS = 2  # Final bars left out of the prior extreme
TRAP_REJECTION_MIN = 0.5
PIN_BAR_WICK_RATIO = 2.0
PIN_BAR_STRENGTH = 0.6

# Stop-hunt zone
STOP_HUNT_OFFSET = 0.002

# Institutional bias
BIAS_HALF = 25
STRUCTURE_TOLERANCE = 0.001  # Required shift between halves
FAST_EMA_PERIOD = 10
FAST_EMA_SPAN = 15  # Closes fed to the fast EMA
SLOW_EMA_PERIOD = 20
SLOW_EMA_SPAN = 25  # Closes fed to the slow EMA

# Momentum divergence
DIVERGENCE_RECENT_BARS = 5
DIVERGENCE_TOLERANCE = 0.002
RSI_BEARISH_MAX = 65.0
RSI_BULLISH_MIN = 35.0
RSI_ZERO_LOSS_GUARD = 0.001

# Key levels
KEY_LEVEL_TOLERANCE = 0.003  # 0.3%

# Confidence scoring
BASE_CONFIDENCE = 50
TRAP_BONUS = 20
TRAP_STRENGTH_WEIGHT = 10
BIAS_BONUS = 10
DIVERGENCE_BONUS = 8
KEY_LEVEL_BONUS = 7
STRONG_TREND_BONUS = 5
STRONG_TREND_MIN = 1.5
HIGH_VOLATILITY_PENALTY = 5
HIGH_VOLATILITY_MIN = 0.02
MIN_CONFIDENCE = 55
MAX_CONFIDENCE = 95

# Price construction
BUY_STOP_FALLBACK = 0.995
BUY_TARGET_FALLBACK = 1.015
SELL_STOP_FALLBACK = 1.005
SELL_TARGET_FALLBACK = 0.985
PIP_BUFFER_MULTIPLIER = 5
RISK_GUARD = 0.0001  # Used when entry and stop coincide

# Reward:risk gate per timeframe label
MIN_RISK_REWARD = {
    'M15': 1.5,
    'H1': 2.0,
}
DEFAULT_MIN_RISK_REWARD = 2.5

# Multi-timeframe selection
EARLY_EXIT_CONFIDENCE = 85
REQUEST_DELAY_SECONDS = 0.1

# Duplicate guard
PENDING_LOOKBACK_HOURS = 24

# Audience matching
STYLE_SCORE = 3
PAIR_SCORE = 2
TIMEFRAME_SCORE = 1
MIN_AUDIENCE_SCORE = 3
