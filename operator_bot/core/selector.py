"""
Multi-timeframe selection of the best candidate for one symbol
"""
import asyncio
import logging
from typing import AsyncIterator, List, Optional, Sequence, Tuple

from ..data_loader import normalize_bars, has_enough_history
from ..models import SignalCandidate
from ..signal_generator import analyze_operator_strategy
from ..thresholds import EARLY_EXIT_CONFIDENCE, REQUEST_DELAY_SECONDS
from ..timeframes import interval_for
from .market_data import MarketDataProvider

logger = logging.getLogger(__name__)

Selection = Tuple[Optional[SignalCandidate], Optional[str]]


def is_better(candidate: Optional[SignalCandidate], best: Optional[SignalCandidate]) -> bool:
    """Strictly higher confidence replaces the incumbent"""
    if candidate is None:
        return False
    return best is None or candidate.confidence > best.confidence


async def select_best(evaluations: AsyncIterator[Tuple[str, Optional[SignalCandidate]]],
                      early_exit: int = EARLY_EXIT_CONFIDENCE) -> Selection:
    """
    Reduce lazily produced (timeframe, candidate) pairs to the best one

    Consumption stops as soon as the best confidence reaches `early_exit`,
    so later timeframes are never evaluated.
    """
    best: Optional[SignalCandidate] = None
    best_timeframe: Optional[str] = None

    try:
        async for timeframe, candidate in evaluations:
            if is_better(candidate, best):
                best, best_timeframe = candidate, timeframe
            if best is not None and best.confidence >= early_exit:
                break
    finally:
        if hasattr(evaluations, 'aclose'):
            await evaluations.aclose()

    return best, best_timeframe


class TimeframeSelector:
    """Runs the operator strategy across timeframes for a symbol"""

    def __init__(self, provider: MarketDataProvider,
                 request_delay: float = REQUEST_DELAY_SECONDS,
                 early_exit: int = EARLY_EXIT_CONFIDENCE):
        self.provider = provider
        self.request_delay = request_delay
        self.early_exit = early_exit

    async def evaluate_timeframe(self, symbol: str, timeframe: str) -> Optional[SignalCandidate]:
        """Fetch bars for one timeframe and analyze them"""
        interval = interval_for(timeframe)
        try:
            raw_bars = await self.provider.fetch_bars(symbol, interval)
        except Exception as e:
            logger.error(f"Error fetching {symbol} on {timeframe}: {e}")
            return None
        finally:
            # Pause between provider calls to stay under upstream rate limits
            if self.request_delay > 0:
                await asyncio.sleep(self.request_delay)

        try:
            bars = normalize_bars(raw_bars)
            if not has_enough_history(bars):
                logger.debug(f"{symbol} {timeframe}: insufficient history ({len(bars)} bars)")
                return None
            return analyze_operator_strategy(bars, symbol, timeframe)
        except Exception as e:
            logger.error(f"Error analyzing {symbol} on {timeframe}: {e}")
            return None

    async def _evaluations(self, symbol: str,
                           timeframes: Sequence[str]) -> AsyncIterator[Tuple[str, Optional[SignalCandidate]]]:
        for timeframe in timeframes:
            yield timeframe, await self.evaluate_timeframe(symbol, timeframe)

    async def select(self, symbol: str, timeframes: List[str]) -> Selection:
        """Best qualifying candidate across `timeframes`, in order"""
        best, best_timeframe = await select_best(self._evaluations(symbol, timeframes), self.early_exit)
        if best is None:
            logger.info(f"{symbol}: no qualifying setup on {', '.join(timeframes)}")
        return best, best_timeframe
