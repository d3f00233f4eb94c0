"""
Core modules for the operator signal bot
"""

from .market_data import MarketDataProvider, YahooMarketDataProvider, FrameMarketDataProvider
from .signal_store import SignalStore, InMemorySignalStore, CsvSignalStore
from .directory import UserDirectory, InMemoryUserDirectory, YamlUserDirectory
from .guard import PendingSignalGuard
from .selector import TimeframeSelector, select_best
from .bot_runner import SignalBot, RunResult

__all__ = [
    'MarketDataProvider', 'YahooMarketDataProvider', 'FrameMarketDataProvider',
    'SignalStore', 'InMemorySignalStore', 'CsvSignalStore',
    'UserDirectory', 'InMemoryUserDirectory', 'YamlUserDirectory',
    'PendingSignalGuard', 'TimeframeSelector', 'select_best',
    'SignalBot', 'RunResult'
]
