"""
Match user trading preferences against a signal
"""
import logging
from typing import Iterable, List

from .models import SignalCandidate, UserPreference
from .thresholds import STYLE_SCORE, PAIR_SCORE, TIMEFRAME_SCORE, MIN_AUDIENCE_SCORE

logger = logging.getLogger(__name__)


def score_preference(preference: UserPreference, candidate: SignalCandidate) -> int:
    """Unset preferences count as a match on their dimension"""
    score = 0
    if not preference.trading_style or preference.trading_style == candidate.trade_type:
        score += STYLE_SCORE
    if not preference.preferred_pairs or candidate.symbol in preference.preferred_pairs:
        score += PAIR_SCORE
    if not preference.preferred_timeframes or candidate.timeframe in preference.preferred_timeframes:
        score += TIMEFRAME_SCORE
    return score


def match_users_to_signal(candidate: SignalCandidate,
                          preferences: Iterable[UserPreference]) -> List[str]:
    """User ids whose preferences score at least MIN_AUDIENCE_SCORE"""
    matched = [
        preference.user_id for preference in preferences
        if score_preference(preference, candidate) >= MIN_AUDIENCE_SCORE
    ]
    logger.debug(f"{candidate.symbol}: matched {len(matched)} users")
    return matched
