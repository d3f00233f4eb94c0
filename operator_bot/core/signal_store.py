"""
Signal persistence backends
"""
import copy
import json
import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd

from ..models import PendingSignalRecord

logger = logging.getLogger(__name__)

SIGNAL_COLUMNS = [
    'id', 'created_at', 'symbol', 'signal_type', 'entry_price', 'stop_loss',
    'take_profit', 'confidence_score', 'ai_reasoning', 'milestone', 'is_public',
    'user_id', 'trade_type', 'timeframe', 'risk_reward_ratio', 'operator_analysis',
    'generated_by', 'sent_to_users', 'matched_user_ids', 'outcome'
]
JSON_COLUMNS = ('operator_analysis', 'matched_user_ids')


def _parse_time(value) -> datetime:
    timestamp = pd.to_datetime(value, utc=True)
    return timestamp.to_pydatetime()


def _is_pending_bot_signal(record: Dict[str, Any], since: datetime) -> bool:
    return (
        record.get('outcome') == 'pending'
        and record.get('generated_by') == 'bot'
        and _parse_time(record['created_at']) >= since
    )


def _to_pending(record: Dict[str, Any]) -> PendingSignalRecord:
    return PendingSignalRecord(
        symbol=record['symbol'],
        direction=record['signal_type'],
        created_at=_parse_time(record['created_at'])
    )


class SignalStore(ABC):
    """Abstract signal store"""

    @abstractmethod
    def fetch_pending_signals(self, since: datetime) -> List[PendingSignalRecord]:
        """Pending bot-generated signals created at or after `since`"""
        pass

    @abstractmethod
    def insert_signal(self, record: Dict[str, Any]) -> Dict[str, Any]:
        """Persist a signal and return it with its id and created_at"""
        pass

    @abstractmethod
    def get_signal(self, signal_id: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    def mark_broadcast(self, signal_id: str) -> None:
        """Flag a signal as sent to users and public"""
        pass

    @staticmethod
    def _stamp(record: Dict[str, Any]) -> Dict[str, Any]:
        saved = copy.deepcopy(record)
        saved['id'] = saved.get('id') or str(uuid.uuid4())
        created_at = saved.get('created_at') or datetime.now(timezone.utc)
        if isinstance(created_at, datetime):
            created_at = created_at.isoformat()
        saved['created_at'] = created_at
        return saved


class InMemorySignalStore(SignalStore):
    """Signal store kept in a list, used for tests and dry runs"""

    def __init__(self):
        self.signals: List[Dict[str, Any]] = []

    def fetch_pending_signals(self, since: datetime) -> List[PendingSignalRecord]:
        return [_to_pending(r) for r in self.signals if _is_pending_bot_signal(r, since)]

    def insert_signal(self, record: Dict[str, Any]) -> Dict[str, Any]:
        saved = self._stamp(record)
        self.signals.append(saved)
        return copy.deepcopy(saved)

    def get_signal(self, signal_id: str) -> Optional[Dict[str, Any]]:
        for record in self.signals:
            if record['id'] == signal_id:
                return copy.deepcopy(record)
        return None

    def mark_broadcast(self, signal_id: str) -> None:
        for record in self.signals:
            if record['id'] == signal_id:
                record['sent_to_users'] = True
                record['is_public'] = True


def _python_value(value):
    """Unwrap numpy scalars and NaN read back from CSV"""
    if hasattr(value, 'item'):
        value = value.item()
    if isinstance(value, float) and pd.isna(value):
        return None
    return value


class CsvSignalStore(SignalStore):
    """Signal store persisted to a CSV file with pandas"""

    def __init__(self, path: str = "data/signals.csv"):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def _read(self) -> pd.DataFrame:
        if not self.path.exists():
            return pd.DataFrame(columns=SIGNAL_COLUMNS)
        return pd.read_csv(self.path, dtype={'id': str, 'user_id': str, 'symbol': str})

    def _write(self, df: pd.DataFrame) -> None:
        df.to_csv(self.path, index=False)

    def _decode(self, row: pd.Series) -> Dict[str, Any]:
        record = {key: _python_value(value) for key, value in row.to_dict().items()}
        for column in JSON_COLUMNS:
            raw = record.get(column)
            record[column] = json.loads(raw) if raw else None
        for column in ('is_public', 'sent_to_users'):
            if isinstance(record.get(column), str):
                record[column] = record[column].lower() == 'true'
        return record

    def fetch_pending_signals(self, since: datetime) -> List[PendingSignalRecord]:
        df = self._read()
        if df.empty:
            return []

        created = pd.to_datetime(df['created_at'], utc=True, format='ISO8601')
        mask = (
            (df['outcome'] == 'pending') &
            (df['generated_by'] == 'bot') &
            (created >= pd.Timestamp(since))
        )
        return [_to_pending(self._decode(row)) for _, row in df[mask].iterrows()]

    def insert_signal(self, record: Dict[str, Any]) -> Dict[str, Any]:
        saved = self._stamp(record)
        row = dict(saved)
        for column in JSON_COLUMNS:
            row[column] = json.dumps(row.get(column))

        df = self._read()
        new_row = pd.DataFrame([row], columns=SIGNAL_COLUMNS)
        df = new_row if df.empty else pd.concat([df, new_row], ignore_index=True)
        self._write(df)

        logger.debug(f"Saved signal {saved['id']} to {self.path}")
        return saved

    def get_signal(self, signal_id: str) -> Optional[Dict[str, Any]]:
        df = self._read()
        matches = df[df['id'] == signal_id]
        if matches.empty:
            return None
        return self._decode(matches.iloc[0])

    def mark_broadcast(self, signal_id: str) -> None:
        df = self._read()
        mask = df['id'] == signal_id
        if not mask.any():
            return
        df['sent_to_users'] = df['sent_to_users'].astype(object)
        df['is_public'] = df['is_public'].astype(object)
        df.loc[mask, 'sent_to_users'] = True
        df.loc[mask, 'is_public'] = True
        self._write(df)
