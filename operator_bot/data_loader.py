"""
Bar loading and normalization utilities
"""
import logging
from pathlib import Path
from typing import Iterable, List, Optional, Union

import pandas as pd

from .models import Bar
from .thresholds import MIN_BARS, WINDOW_SIZE

logger = logging.getLogger(__name__)

PRICE_COLUMNS = ['open', 'high', 'low', 'close']
BAR_COLUMNS = PRICE_COLUMNS + ['volume', 'timestamp']


def normalize_bars(bars: Iterable[Union[Bar, dict]]) -> pd.DataFrame:
    """
    Drop incomplete bars and return the rest as a DataFrame

    Args:
        bars: Provider bars, as Bar objects or plain dicts

    Returns:
        DataFrame with open/high/low/close/volume/timestamp columns, in the
        order the bars were supplied
    """
    rows = []
    dropped = 0
    for raw in bars:
        if isinstance(raw, Bar):
            bar = raw
        elif isinstance(raw, dict):
            bar = Bar.from_dict(raw)
        else:
            dropped += 1
            continue
        if not bar.is_valid:
            dropped += 1
            continue
        rows.append({
            'open': float(bar.open),
            'high': float(bar.high),
            'low': float(bar.low),
            'close': float(bar.close),
            'volume': float(bar.volume or 0.0),
            'timestamp': bar.timestamp
        })

    if dropped:
        logger.debug(f"Dropped {dropped} incomplete bars")

    return pd.DataFrame(rows, columns=BAR_COLUMNS)


def has_enough_history(df: pd.DataFrame, min_bars: int = MIN_BARS) -> bool:
    return len(df) >= min_bars


def recent_window(df: pd.DataFrame, size: int = WINDOW_SIZE) -> Optional[pd.DataFrame]:
    """Most recent `size` bars re-indexed from 0, or None if history is short"""
    if not has_enough_history(df, size):
        return None
    return df.iloc[-size:].reset_index(drop=True)


def frame_to_bars(df: pd.DataFrame) -> List[Bar]:
    """Convert a DataFrame back into Bar objects"""
    has_timestamp = 'timestamp' in df.columns
    bars = []
    for row in df.itertuples(index=False):
        timestamp = getattr(row, 'timestamp') if has_timestamp else None
        if timestamp is not None and pd.isna(timestamp):
            timestamp = None
        bars.append(Bar(
            open=float(row.open),
            high=float(row.high),
            low=float(row.low),
            close=float(row.close),
            volume=float(getattr(row, 'volume', 0.0) or 0.0),
            timestamp=timestamp.to_pydatetime() if isinstance(timestamp, pd.Timestamp) else timestamp
        ))
    return bars


def load_csv(path: str) -> pd.DataFrame:
    """
    Load CSV file and validate required columns

    Args:
        path: Path to CSV file

    Returns:
        Cleaned DataFrame sorted by timestamp

    Raises:
        ValueError: If required columns are missing
        FileNotFoundError: If file doesn't exist
    """
    if not Path(path).exists():
        raise FileNotFoundError(f"CSV file not found: {path}")

    df = pd.read_csv(path)

    # Normalize column names to lowercase
    df.columns = [c.lower() for c in df.columns]

    required_columns = {'timestamp', 'open', 'high', 'low', 'close'}
    missing_columns = required_columns - set(df.columns)
    if missing_columns:
        raise ValueError(f'CSV must contain columns: {required_columns}. Missing: {missing_columns}')

    if 'volume' not in df.columns:
        df['volume'] = 0.0

    if pd.api.types.is_numeric_dtype(df['timestamp']):
        df['timestamp'] = pd.to_datetime(df['timestamp'], unit='ms', utc=True)
    else:
        df['timestamp'] = pd.to_datetime(df['timestamp'], utc=True, errors='coerce')

    df = df.dropna(subset=['timestamp'])
    df = df.sort_values('timestamp').reset_index(drop=True)

    # Non-finite prices are handled by normalize_bars
    for col in PRICE_COLUMNS + ['volume']:
        df[col] = pd.to_numeric(df[col], errors='coerce')

    invalid_ohlc = (
        (df['high'] < df['low']) |
        (df['high'] < df['open']) |
        (df['high'] < df['close']) |
        (df['low'] > df['open']) |
        (df['low'] > df['close'])
    )
    if invalid_ohlc.any():
        logger.warning(f"Found {invalid_ohlc.sum()} rows with invalid OHLC data in {path}")
        df = df[~invalid_ohlc].reset_index(drop=True)

    return df[BAR_COLUMNS]
