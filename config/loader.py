"""
Configuration loader for YAML files
"""
import logging
import os
from dataclasses import fields
from pathlib import Path
from typing import Any, Dict

import pandas as pd
import yaml

from .models import AppConfig, BotConfig

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config/bot.yaml"

ENV_OVERRIDES = {
    'TELEGRAM_BOT_TOKEN': 'telegram_token',
    'TELEGRAM_CHAT_ID': 'telegram_chat_id',
    'SIGNAL_WEBHOOK_URL': 'notification_webhook_url',
    'OPERATOR_BOT_LOG_LEVEL': 'log_level',
}


def _parse_bot(bot_type: str, data: Dict[str, Any]) -> BotConfig:
    last_signal_at = data.get('last_signal_at')
    if last_signal_at:
        last_signal_at = pd.to_datetime(last_signal_at, utc=True).to_pydatetime()
    return BotConfig(
        bot_type=bot_type,
        pairs=data.get('pairs') or [],
        timeframes=data.get('timeframes') or ['H1'],
        auto_broadcast=bool(data.get('auto_broadcast', False)),
        is_running=bool(data.get('is_running', False)),
        updated_by=data.get('updated_by'),
        signals_sent_today=int(data.get('signals_sent_today') or 0),
        last_signal_at=last_signal_at
    )


def apply_env_overrides(config: AppConfig) -> AppConfig:
    """Apply environment values, remembering what the file held"""
    for env_name, attr in ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value:
            config.env_overrides.setdefault(attr, getattr(config, attr))
            setattr(config, attr, value)
    return config


class ConfigLoader:
    """Loads and saves configuration from YAML files"""

    def __init__(self, config_path: str = DEFAULT_CONFIG_PATH):
        self.config_path = Path(config_path)
        self.config_path.parent.mkdir(parents=True, exist_ok=True)

    def load(self) -> AppConfig:
        """Load configuration from YAML file"""
        if not self.config_path.exists():
            logger.info(f"Config file not found at {self.config_path}, creating default")
            return apply_env_overrides(self._create_default_config())

        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)

            if not data:
                logger.warning("Empty config file, using defaults")
                return apply_env_overrides(self._create_default_config())

            bots = {
                bot_type: _parse_bot(bot_type, bot_data or {})
                for bot_type, bot_data in (data.get('bots') or {}).items()
            }

            known = {f.name for f in fields(AppConfig)} - {'bots', 'env_overrides'}
            settings = {key: value for key, value in data.items() if key in known}
            config = AppConfig(bots=bots, **settings)

            errors = config.validate()
            if errors:
                raise ValueError(f"Configuration validation failed: {errors}")

            logger.info(f"Loaded configuration with {len(config.bots)} bots")
            return apply_env_overrides(config)

        except (OSError, yaml.YAMLError, ValueError, TypeError) as e:
            logger.error(f"Failed to load config from {self.config_path}: {e}")
            logger.info("Using default configuration")
            return apply_env_overrides(AppConfig(bots=self._default_bots()))

    def save(self, config: AppConfig) -> bool:
        """Save configuration to YAML file"""
        errors = config.validate()
        if errors:
            logger.error(f"Cannot save invalid configuration: {errors}")
            return False

        data = {
            f.name: config.env_overrides.get(f.name, getattr(config, f.name))
            for f in fields(AppConfig) if f.name not in ('bots', 'env_overrides')
        }
        data['bots'] = {bot_type: bot.to_dict() for bot_type, bot in config.bots.items()}

        try:
            with open(self.config_path, 'w', encoding='utf-8') as f:
                yaml.dump(data, f, default_flow_style=False, sort_keys=False, indent=2)
        except OSError as e:
            logger.error(f"Failed to save config to {self.config_path}: {e}")
            return False

        logger.info(f"Configuration saved to {self.config_path}")
        return True

    @staticmethod
    def _default_bots() -> Dict[str, BotConfig]:
        return {
            'operator': BotConfig(
                bot_type='operator',
                pairs=['EURUSD', 'GBPUSD', 'USDJPY', 'XAUUSD', 'BTCUSD'],
                timeframes=['M15', 'H1', 'H4'],
                auto_broadcast=False,
                is_running=False
            )
        }

    def _create_default_config(self) -> AppConfig:
        """Create default configuration"""
        config = AppConfig(bots=self._default_bots())
        self.save(config)
        return config


def load_config(config_path: str = DEFAULT_CONFIG_PATH) -> AppConfig:
    """Convenience function to load configuration"""
    return ConfigLoader(config_path).load()


def save_config(config: AppConfig, config_path: str = DEFAULT_CONFIG_PATH) -> bool:
    """Convenience function to save configuration"""
    return ConfigLoader(config_path).save(config)
