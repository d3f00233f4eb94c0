"""
Data models for the operator signal bot
"""
import math
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .timeframes import milestone_for


@dataclass
class Bar:
    """One OHLCV sample"""
    open: Optional[float]
    high: Optional[float]
    low: Optional[float]
    close: Optional[float]
    volume: float = 0.0
    timestamp: Optional[datetime] = None

    @property
    def is_valid(self) -> bool:
        """Complete bar: every price present, finite and positive"""
        for value in (self.open, self.high, self.low, self.close):
            if value is None:
                return False
            try:
                number = float(value)
            except (TypeError, ValueError):
                return False
            if not math.isfinite(number) or number <= 0:
                return False
        return True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Bar':
        timestamp = data.get('timestamp')
        if isinstance(timestamp, (int, float)):
            timestamp = datetime.fromtimestamp(timestamp, tz=timezone.utc)
        return cls(
            open=data.get('open'),
            high=data.get('high'),
            low=data.get('low'),
            close=data.get('close'),
            volume=data.get('volume') or 0.0,
            timestamp=timestamp
        )


@dataclass
class TrapVerdict:
    """Breakout-and-reject verdict for the last bar"""
    is_trap: bool = False
    direction: str = 'none'  # 'bull_trap', 'bear_trap' or 'none'
    strength: float = 0.0


@dataclass
class StructuralAnalysis:
    """Everything the analyzer extracts from one window"""
    current_price: float
    volatility: float
    trend_strength: float
    supply_zones: List[float]
    demand_zones: List[float]
    liquidity_pools: List[float]
    trap: TrapVerdict
    stop_hunt_zone: float
    institutional_bias: str  # 'bullish', 'bearish' or 'neutral'
    has_divergence: bool
    near_key_level: bool

    def snapshot(self) -> Dict[str, Any]:
        """Analysis fields persisted alongside a signal"""
        return {
            'supply_zones': list(self.supply_zones),
            'demand_zones': list(self.demand_zones),
            'liquidity_pools': list(self.liquidity_pools),
            'stop_loss_hunt_zone': self.stop_hunt_zone,
            'trap_direction': self.trap.direction,
            'institutional_bias': self.institutional_bias,
            'trend_strength': self.trend_strength,
            'volatility': self.volatility
        }


@dataclass
class SignalCandidate:
    """Directional trade setup produced for one symbol/timeframe"""
    symbol: str
    direction: str  # 'BUY' / 'SELL'
    entry_price: float
    stop_loss: float
    take_profit: float
    reward_risk_ratio: float
    confidence: int
    timeframe: str
    trade_type: str  # 'scalp', 'intraday' or 'swing'
    analysis: Dict[str, Any] = field(default_factory=dict)
    reasoning: str = ''

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API responses"""
        return asdict(self)

    def to_record(self, actor_id: str, auto_broadcast: bool,
                  matched_user_ids: List[str]) -> Dict[str, Any]:
        """Build the row handed to the signal store"""
        return {
            'symbol': self.symbol,
            'signal_type': self.direction,
            'entry_price': self.entry_price,
            'stop_loss': self.stop_loss,
            'take_profit': self.take_profit,
            'confidence_score': self.confidence,
            'ai_reasoning': self.reasoning,
            'milestone': milestone_for(self.timeframe),
            'is_public': auto_broadcast,
            'user_id': actor_id,
            'trade_type': self.trade_type,
            'timeframe': self.timeframe,
            'risk_reward_ratio': self.reward_risk_ratio,
            'operator_analysis': dict(self.analysis),
            'generated_by': 'bot',
            'sent_to_users': auto_broadcast,
            'matched_user_ids': list(matched_user_ids),
            'outcome': 'pending'
        }


def _as_string_set(value: Any) -> Optional[frozenset]:
    """Normalize a preference list; anything unusable means no preference"""
    if value is None:
        return None
    if isinstance(value, str):
        value = [part.strip() for part in value.split(',')]
    try:
        items = frozenset(str(v) for v in value if v not in (None, ''))
    except TypeError:
        return None
    return items or None


@dataclass(frozen=True)
class UserPreference:
    """Trading preferences of one user; None means 'matches anything'"""
    user_id: str
    trading_style: Optional[str] = None
    preferred_pairs: Optional[frozenset] = None
    preferred_timeframes: Optional[frozenset] = None

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> 'UserPreference':
        style = record.get('trading_style')
        if not isinstance(style, str) or not style.strip():
            style = None
        return cls(
            user_id=str(record.get('user_id')),
            trading_style=style.strip() if style else None,
            preferred_pairs=_as_string_set(record.get('preferred_pairs')),
            preferred_timeframes=_as_string_set(record.get('preferred_timeframes'))
        )


@dataclass
class PendingSignalRecord:
    """Unresolved bot signal read back from the store"""
    symbol: str
    direction: str
    created_at: datetime
