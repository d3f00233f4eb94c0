"""
Configuration models for the operator signal bot
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from operator_bot.timeframes import VALID_TIMEFRAMES


@dataclass
class BotConfig:
    """Configuration and run status of one signal bot"""
    bot_type: str
    pairs: List[str] = field(default_factory=list)
    timeframes: List[str] = field(default_factory=lambda: ['H1'])
    auto_broadcast: bool = False
    is_running: bool = False
    updated_by: Optional[str] = None
    signals_sent_today: int = 0
    last_signal_at: Optional[datetime] = None

    def __post_init__(self):
        self.pairs = [pair.upper() for pair in self.pairs or []]
        self.timeframes = [tf.upper() for tf in self.timeframes or []] or ['H1']

    def record_run(self, signals_generated: int, finished_at: datetime):
        """Update run status after a batch"""
        self.last_signal_at = finished_at
        self.signals_sent_today = (self.signals_sent_today or 0) + signals_generated

    def validate(self) -> List[str]:
        """Validate configuration and return list of errors"""
        errors = []

        if not self.pairs:
            errors.append(f"No pairs configured for bot {self.bot_type}")

        if len(self.pairs) != len(set(self.pairs)):
            errors.append(f"Duplicate symbols found in bot {self.bot_type}")

        for timeframe in self.timeframes:
            if timeframe not in VALID_TIMEFRAMES:
                errors.append(f"Unknown timeframe for bot {self.bot_type}: {timeframe}")

        return errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            'pairs': list(self.pairs),
            'timeframes': list(self.timeframes),
            'auto_broadcast': self.auto_broadcast,
            'is_running': self.is_running,
            'updated_by': self.updated_by,
            'signals_sent_today': self.signals_sent_today,
            'last_signal_at': self.last_signal_at.isoformat() if self.last_signal_at else None
        }


@dataclass
class AppConfig:
    """Main application configuration"""
    bots: Dict[str, BotConfig] = field(default_factory=dict)

    # Logging
    log_level: str = "INFO"
    logs_dir: str = "logs"

    # Market data
    provider: str = "yahoo"  # 'yahoo' or 'csv'
    provider_base_url: str = "https://query1.finance.yahoo.com"
    provider_requests_per_minute: int = 120
    request_delay: float = 0.1
    data_dir: str = "data"

    # Storage
    signal_store_path: str = "data/signals.csv"
    users_path: str = "config/users.yaml"

    # Notifications
    notification_webhook_url: Optional[str] = None
    telegram_token: Optional[str] = None
    telegram_chat_id: Optional[str] = None

    # File values replaced by environment variables; never written back
    env_overrides: Dict[str, Any] = field(default_factory=dict, repr=False)

    def get_bot_config(self, bot_type: str) -> Optional[BotConfig]:
        return self.bots.get(bot_type)

    def validate(self) -> List[str]:
        """Validate configuration and return list of errors"""
        errors = []

        if self.provider not in ('yahoo', 'csv'):
            errors.append(f"Unknown provider: {self.provider}")

        if self.request_delay < 0:
            errors.append(f"Request delay must not be negative: {self.request_delay}")

        for bot in self.bots.values():
            errors.extend(bot.validate())

        return errors
