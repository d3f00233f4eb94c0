"""
Action dispatch for the signal bot: analyze_single, run_bot, send_signal_to_users
"""
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from config.loader import ConfigLoader
from config.models import AppConfig
from .core.bot_runner import SignalBot
from .core.directory import UserDirectory, YamlUserDirectory
from .core.market_data import FrameMarketDataProvider, MarketDataProvider, YahooMarketDataProvider
from .core.signal_store import CsvSignalStore, SignalStore
from .data_loader import load_csv, normalize_bars
from .errors import (
    BotNotFoundError, BotNotRunningError, SignalBotError, SignalNotFoundError,
    UnknownActionError
)
from .notifications import (
    LoggingNotificationDispatcher, NotificationDispatcher, TelegramNotificationDispatcher,
    WebhookNotificationDispatcher
)
from .signal_generator import analyze_operator_strategy

logger = logging.getLogger(__name__)

SINGLE_INTERVAL = '1h'
SINGLE_TIMEFRAME = 'H1'


class SignalBotService:
    """Owns the adapters and maps request bodies onto bot operations"""

    def __init__(self, config: AppConfig, provider: MarketDataProvider, store: SignalStore,
                 directory: UserDirectory, dispatcher: Optional[NotificationDispatcher] = None,
                 config_loader: Optional[ConfigLoader] = None):
        self.config = config
        self.provider = provider
        self.store = store
        self.directory = directory
        self.dispatcher = dispatcher or LoggingNotificationDispatcher()
        self.config_loader = config_loader
        self.bot = SignalBot(provider, store, directory, self.dispatcher,
                             request_delay=config.request_delay)

    async def analyze_single(self, symbol: str) -> Dict[str, Any]:
        """Analyze one symbol on H1 without guard or persistence"""
        symbol = (symbol or '').upper()
        raw_bars = await self.provider.fetch_bars(symbol, SINGLE_INTERVAL)
        candidate = analyze_operator_strategy(normalize_bars(raw_bars), symbol, SINGLE_TIMEFRAME)
        return {'signal': candidate.to_dict() if candidate else None}

    async def run_bot(self, bot_type: str) -> Dict[str, Any]:
        bot_config = self.config.get_bot_config(bot_type)
        if bot_config is None:
            raise BotNotFoundError(bot_type)
        if not bot_config.is_running:
            raise BotNotRunningError(bot_type)

        result = await self.bot.run(bot_config)

        bot_config.record_run(result.signals_generated, datetime.now(timezone.utc))
        if self.config_loader is not None:
            self.config_loader.save(self.config)

        return {
            'success': True,
            'signalsGenerated': result.signals_generated,
            'signals': result.signals
        }

    async def send_signal_to_users(self, signal_id: str) -> Dict[str, Any]:
        """Broadcast a stored signal to its matched users, or all active members"""
        signal = self.store.get_signal(signal_id) if signal_id else None
        if signal is None:
            raise SignalNotFoundError(signal_id)

        user_ids = list(signal.get('matched_user_ids') or [])
        if not user_ids:
            user_ids = self.directory.fetch_active_member_ids()

        self.store.mark_broadcast(signal_id)
        await self.bot.notify(signal, user_ids)

        logger.info(f"Signal {signal_id} sent to {len(user_ids)} users")
        return {'success': True, 'sentToUsers': len(user_ids)}

    async def handle(self, body: Dict[str, Any]) -> Tuple[int, Dict[str, Any]]:
        """Run the requested action and return (status, payload)"""
        body = body or {}
        action = body.get('action')

        try:
            if action == 'analyze_single':
                return 200, await self.analyze_single(body.get('symbol'))
            if action == 'run_bot':
                return 200, await self.run_bot(body.get('botType'))
            if action == 'send_signal_to_users':
                return 200, await self.send_signal_to_users(body.get('signalId'))
            raise UnknownActionError(action)

        except SignalBotError as e:
            logger.warning(f"Action {action} rejected: {e.message}")
            return e.status_code, e.to_dict()
        except Exception as e:
            logger.exception(f"Error in operator signal bot: {e}")
            return 500, {'error': str(e)}


def build_provider(config: AppConfig) -> MarketDataProvider:
    """Yahoo chart API, or CSV files named SYMBOL_interval.csv under data_dir"""
    if config.provider == 'csv':
        historical_data = {}
        for path in sorted(Path(config.data_dir).glob('*_*.csv')):
            try:
                historical_data[path.stem] = load_csv(str(path))
            except (OSError, ValueError) as e:
                logger.warning(f"Skipping {path}: {e}")
        logger.info(f"Loaded {len(historical_data)} CSV series from {config.data_dir}")
        return FrameMarketDataProvider(historical_data)

    return YahooMarketDataProvider(
        base_url=config.provider_base_url,
        requests_per_minute=config.provider_requests_per_minute
    )


def build_dispatcher(config: AppConfig) -> NotificationDispatcher:
    if config.notification_webhook_url:
        return WebhookNotificationDispatcher(config.notification_webhook_url)
    if config.telegram_token and config.telegram_chat_id:
        return TelegramNotificationDispatcher(config.telegram_token, config.telegram_chat_id)
    return LoggingNotificationDispatcher()


def build_service(config: AppConfig, config_loader: Optional[ConfigLoader] = None) -> SignalBotService:
    """Wire the configured adapters into a service"""
    return SignalBotService(
        config=config,
        provider=build_provider(config),
        store=CsvSignalStore(config.signal_store_path),
        directory=YamlUserDirectory(config.users_path),
        dispatcher=build_dispatcher(config),
        config_loader=config_loader
    )
