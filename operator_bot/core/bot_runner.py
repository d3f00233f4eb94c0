"""
Batch runner: guard, select, match, persist and notify for every configured pair
"""
import asyncio
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Set

from config.models import BotConfig
from ..audience import match_users_to_signal
from ..errors import ActorResolutionError
from ..models import SignalCandidate
from ..notifications import NotificationDispatcher
from ..thresholds import REQUEST_DELAY_SECONDS
from .directory import UserDirectory
from .guard import PendingSignalGuard
from .market_data import MarketDataProvider
from .selector import TimeframeSelector
from .signal_store import SignalStore

logger = logging.getLogger(__name__)

UUID_PATTERN = re.compile(
    r'^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$',
    re.IGNORECASE
)


def is_uuid(value: Any) -> bool:
    return isinstance(value, str) and bool(UUID_PATTERN.match(value))


def resolve_actor_id(bot_config: BotConfig, directory: UserDirectory) -> Optional[str]:
    """The operator who last updated the bot, else the first admin"""
    if is_uuid(bot_config.updated_by):
        return bot_config.updated_by

    admins = directory.fetch_admin_user_ids()
    return admins[0] if admins else None


@dataclass
class RunResult:
    """Outcome of one batch run"""
    bot_type: str
    signals: List[Dict[str, Any]] = field(default_factory=list)
    skipped_pending: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    @property
    def signals_generated(self) -> int:
        return len(self.signals)


class SignalBot:
    """Sequential multi-pair signal batch"""

    def __init__(self, provider: MarketDataProvider, store: SignalStore,
                 directory: UserDirectory, dispatcher: Optional[NotificationDispatcher] = None,
                 request_delay: float = REQUEST_DELAY_SECONDS):
        self.provider = provider
        self.store = store
        self.directory = directory
        self.dispatcher = dispatcher
        self.selector = TimeframeSelector(provider, request_delay=request_delay)

    async def run(self, bot_config: BotConfig, now: Optional[datetime] = None) -> RunResult:
        """
        Run one batch for a bot configuration

        Raises:
            ActorResolutionError: no actor can be attributed; raised before
                any market data is requested
        """
        actor_id = resolve_actor_id(bot_config, self.directory)
        if not actor_id:
            raise ActorResolutionError()

        logger.info(
            f"Bot {bot_config.bot_type} analyzing {len(bot_config.pairs)} pairs "
            f"across {len(bot_config.timeframes)} timeframes"
        )

        result = RunResult(bot_type=bot_config.bot_type)
        guard = PendingSignalGuard.from_store(self.store, now=now)
        processed: Set[str] = set()

        for pair in bot_config.pairs:
            existing = guard.existing(pair)
            if existing:
                logger.info(
                    f"{pair}: Skipping - already has pending {existing.direction} "
                    f"signal from {existing.created_at.isoformat()}"
                )
                result.skipped_pending.append(pair)
                continue

            if pair in processed:
                continue

            candidate, timeframe = await self.selector.select(pair, bot_config.timeframes)
            if candidate is None:
                continue

            logger.info(f"{pair}: best setup on {timeframe} (confidence {candidate.confidence})")
            processed.add(pair)
            saved = await self._publish(candidate, bot_config, actor_id)
            if saved is None:
                result.failed.append(pair)
            else:
                result.signals.append(saved)

        logger.info(f"Bot {bot_config.bot_type} complete: {result.signals_generated} signals generated")
        return result

    async def _publish(self, candidate: SignalCandidate, bot_config: BotConfig,
                       actor_id: str) -> Optional[Dict[str, Any]]:
        """Match the audience, persist, and optionally broadcast"""
        matched_user_ids = self.match_audience(candidate)

        logger.info(
            f"Saving signal: {candidate.symbol} {candidate.direction} "
            f"{candidate.timeframe} conf={candidate.confidence}"
        )

        record = candidate.to_record(actor_id, bot_config.auto_broadcast, matched_user_ids)
        try:
            saved = self.store.insert_signal(record)
        except Exception as e:
            logger.error(f"Error saving signal for {candidate.symbol}: {e}")
            return None

        if bot_config.auto_broadcast and matched_user_ids:
            await self.notify(saved, matched_user_ids)

        return saved

    def match_audience(self, candidate: SignalCandidate) -> List[str]:
        """Matched user ids; an unreadable directory means no audience"""
        try:
            preferences = self.directory.fetch_preferences()
        except Exception as e:
            logger.error(f"Error matching users for {candidate.symbol}: {e}")
            return []
        return match_users_to_signal(candidate, preferences)

    async def notify(self, signal: Dict[str, Any], user_ids: List[str]) -> bool:
        """Dispatch without letting delivery failures escape"""
        if self.dispatcher is None:
            return False
        try:
            return await asyncio.to_thread(self.dispatcher.dispatch, signal, user_ids)
        except Exception as e:
            logger.error(f"Failed to send notifications for {signal.get('symbol')}: {e}")
            return False
