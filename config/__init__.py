"""
Configuration package for the operator signal bot
"""

from .models import AppConfig, BotConfig
from .loader import ConfigLoader, load_config, save_config

__all__ = [
    'AppConfig', 'BotConfig', 'ConfigLoader', 'load_config', 'save_config'
]
