"""
Market data providers for live analysis and offline runs
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import aiohttp
import pandas as pd
from aiolimiter import AsyncLimiter

from ..data_loader import frame_to_bars
from ..models import Bar
from ..timeframes import history_range_for

logger = logging.getLogger(__name__)

FOREX_SYMBOLS = {
    'EURUSD': 'EURUSD=X', 'GBPUSD': 'GBPUSD=X', 'USDJPY': 'USDJPY=X',
    'GBPJPY': 'GBPJPY=X', 'EURJPY': 'EURJPY=X', 'AUDUSD': 'AUDUSD=X',
    'USDCHF': 'USDCHF=X', 'USDCAD': 'USDCAD=X',
}

METAL_SYMBOLS = {
    'XAUUSD': 'GC=F',
}

CRYPTO_SYMBOLS = {
    'BTCUSD': 'BTC-USD', 'ETHUSD': 'ETH-USD', 'SOLUSD': 'SOL-USD', 'BNBUSD': 'BNB-USD',
}

FUTURES_SYMBOLS = {
    'NQ': 'NQ=F', 'ES': 'ES=F', 'YM': 'YM=F', 'GC': 'GC=F', 'CL': 'CL=F',
}

PROVIDER_SYMBOLS = {**FOREX_SYMBOLS, **METAL_SYMBOLS, **CRYPTO_SYMBOLS, **FUTURES_SYMBOLS}


def convert_to_provider_symbol(symbol: str) -> str:
    """Translate an internal symbol to the chart ticker; unmapped pass through"""
    return PROVIDER_SYMBOLS.get(symbol, symbol)


def parse_chart_response(payload: Dict[str, Any]) -> List[Bar]:
    """
    Extract bars from a chart API payload

    Bars with any missing or zero price are skipped.
    """
    results = (payload.get('chart') or {}).get('result') or []
    if not results:
        return []

    result = results[0] or {}
    quotes = (result.get('indicators') or {}).get('quote') or []
    if not quotes or not quotes[0]:
        return []

    quote = quotes[0]
    timestamps = result.get('timestamp') or []
    opens = quote.get('open') or []
    highs = quote.get('high') or []
    lows = quote.get('low') or []
    closes = quote.get('close') or []
    volumes = quote.get('volume') or []

    bars = []
    for i in range(len(opens)):
        values = [series[i] if i < len(series) else None for series in (opens, highs, lows, closes)]
        if not all(values):
            continue
        volume = volumes[i] if i < len(volumes) and volumes[i] else 0.0
        timestamp = None
        if i < len(timestamps) and timestamps[i] is not None:
            timestamp = datetime.fromtimestamp(timestamps[i], tz=timezone.utc)
        bars.append(Bar(
            open=float(values[0]),
            high=float(values[1]),
            low=float(values[2]),
            close=float(values[3]),
            volume=float(volume),
            timestamp=timestamp
        ))
    return bars


class MarketDataProvider(ABC):
    """Abstract source of price bars"""

    @abstractmethod
    async def fetch_bars(self, symbol: str, interval: str) -> List[Bar]:
        """Fetch time-ordered bars for symbol at the sampling interval"""
        pass

    async def close(self):
        """Release any held resources"""
        pass


class YahooMarketDataProvider(MarketDataProvider):
    """Chart-API provider using aiohttp"""

    def __init__(self, base_url: str = "https://query1.finance.yahoo.com",
                 requests_per_minute: int = 120, timeout: float = 10.0):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.limiter = AsyncLimiter(max_rate=requests_per_minute, time_period=60)
        self.session: Optional[aiohttp.ClientSession] = None
        self.headers = {
            'User-Agent': 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36'
        }

    async def __aenter__(self):
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _ensure_session(self):
        if not self.session:
            self.session = aiohttp.ClientSession(headers=self.headers)

    async def close(self):
        if self.session:
            await self.session.close()
            self.session = None

    async def _make_request(self, url: str, params: Dict[str, str],
                            retries: int = 3) -> Optional[Dict[str, Any]]:
        """Rate-limited GET; None on a non-success response"""
        await self._ensure_session()
        timeout = aiohttp.ClientTimeout(total=self.timeout)

        async with self.limiter:
            for attempt in range(retries):
                try:
                    async with self.session.get(url, params=params, timeout=timeout) as response:
                        if response.status == 200:
                            return await response.json()
                        if response.status == 429:
                            logger.warning(f"Rate limit hit, retrying in {2 ** attempt} seconds")
                            await asyncio.sleep(2 ** attempt)
                            continue
                        logger.warning(f"Chart API error: {response.status} for {url}")
                        return None
                except asyncio.TimeoutError:
                    logger.warning(f"Request timeout, attempt {attempt + 1}/{retries}")
                    if attempt == retries - 1:
                        raise
                    await asyncio.sleep(1)
        return None

    async def fetch_bars(self, symbol: str, interval: str) -> List[Bar]:
        provider_symbol = convert_to_provider_symbol(symbol)
        history_range = history_range_for(interval)
        url = f"{self.base_url}/v8/finance/chart/{provider_symbol}"
        params = {'interval': interval, 'range': history_range}

        logger.info(f"Fetching {symbol} ({provider_symbol}) - interval: {interval}, range: {history_range}")

        try:
            payload = await self._make_request(url, params)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Failed to fetch bars for {symbol}: {e}")
            return []

        if payload is None:
            return []

        bars = parse_chart_response(payload)
        if not bars:
            logger.warning(f"No data returned for {provider_symbol}")
        else:
            logger.info(f"Got {len(bars)} candles for {symbol}")
        return bars


class FrameMarketDataProvider(MarketDataProvider):
    """Provider backed by preloaded DataFrames keyed 'SYMBOL_interval'"""

    def __init__(self, historical_data: Dict[str, pd.DataFrame]):
        self.historical_data = historical_data
        self.requests: List[str] = []

    async def fetch_bars(self, symbol: str, interval: str) -> List[Bar]:
        key = f"{symbol}_{interval}"
        self.requests.append(key)

        if key not in self.historical_data:
            logger.warning(f"No historical data for {key}")
            return []

        return frame_to_bars(self.historical_data[key])
