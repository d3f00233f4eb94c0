"""
Duplicate/conflict guard against symbols with unresolved bot signals
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from ..models import PendingSignalRecord
from ..thresholds import PENDING_LOOKBACK_HOURS
from .signal_store import SignalStore

logger = logging.getLogger(__name__)


class PendingSignalGuard:
    """
    Snapshot of pending bot signals taken once at the start of a run.

    The snapshot is not refreshed while the batch inserts new signals, so
    two overlapping runs can both pass the check for the same symbol.
    """

    def __init__(self, pending: Dict[str, PendingSignalRecord]):
        self.pending = pending

    @classmethod
    def from_store(cls, store: SignalStore, now: Optional[datetime] = None,
                   lookback_hours: int = PENDING_LOOKBACK_HOURS) -> 'PendingSignalGuard':
        now = now or datetime.now(timezone.utc)
        since = now - timedelta(hours=lookback_hours)

        pending = {}
        for record in store.fetch_pending_signals(since):
            pending[record.symbol] = record

        logger.info(f"Found {len(pending)} pairs with existing pending signals")
        return cls(pending)

    def existing(self, symbol: str) -> Optional[PendingSignalRecord]:
        return self.pending.get(symbol)

    def is_blocked(self, symbol: str) -> bool:
        return symbol in self.pending
