import asyncio
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Ensure project root on sys.path before importing project packages
sys.path.append(str(Path(__file__).resolve().parents[1]))

import pytest

from config.models import BotConfig
from operator_bot.core.bot_runner import SignalBot, is_uuid, resolve_actor_id
from operator_bot.core.directory import InMemoryUserDirectory
from operator_bot.core.guard import PendingSignalGuard
from operator_bot.core.market_data import FrameMarketDataProvider
from operator_bot.core.signal_store import InMemorySignalStore
from operator_bot.errors import ActorResolutionError
from operator_bot.models import UserPreference
from operator_bot.notifications import LoggingNotificationDispatcher
from conftest import flat_bars

ADMIN_ID = "3c2b1a09-8f7e-4d6c-8b5a-493827160504"
OPERATOR_ID = "9a8b7c6d-5e4f-4a3b-8c2d-1e0f9a8b7c6d"
NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def qualifying(monkeypatch, make_candidate):
    """Every analyzed symbol yields an 85-confidence candidate"""
    def fake_analyze(bars, symbol, timeframe):
        return make_candidate(symbol=symbol, timeframe=timeframe, confidence=85)

    monkeypatch.setattr('operator_bot.core.selector.analyze_operator_strategy', fake_analyze)


def _provider(*symbols):
    return FrameMarketDataProvider({f"{symbol}_1h": flat_bars(50) for symbol in symbols})


def _pending(store, symbol, age_hours, generated_by="bot", outcome="pending"):
    store.insert_signal({
        "symbol": symbol,
        "signal_type": "SELL",
        "generated_by": generated_by,
        "outcome": outcome,
        "created_at": NOW - timedelta(hours=age_hours),
    })


def _bot(provider, store=None, directory=None, dispatcher=None):
    return SignalBot(
        provider,
        store or InMemorySignalStore(),
        directory or InMemoryUserDirectory(admin_user_ids=[ADMIN_ID]),
        dispatcher,
        request_delay=0,
    )


def test_recent_pending_signal_blocks_symbol(qualifying):
    store = InMemorySignalStore()
    _pending(store, "EURUSD", age_hours=2)
    provider = _provider("EURUSD")

    result = asyncio.run(_bot(provider, store).run(BotConfig("operator", ["EURUSD"]), now=NOW))

    assert result.signals_generated == 0
    assert result.skipped_pending == ["EURUSD"]
    assert provider.requests == []


def test_stale_pending_signal_does_not_block(qualifying):
    store = InMemorySignalStore()
    _pending(store, "EURUSD", age_hours=25)

    result = asyncio.run(_bot(_provider("EURUSD"), store).run(BotConfig("operator", ["EURUSD"]), now=NOW))

    assert result.signals_generated == 1
    assert len(store.signals) == 2


def test_guard_ignores_manual_and_resolved_signals():
    store = InMemorySignalStore()
    _pending(store, "EURUSD", age_hours=1, generated_by="admin")
    _pending(store, "GBPUSD", age_hours=1, outcome="win")
    _pending(store, "USDJPY", age_hours=1)

    guard = PendingSignalGuard.from_store(store, now=NOW)

    assert not guard.is_blocked("EURUSD")
    assert not guard.is_blocked("GBPUSD")
    assert guard.is_blocked("USDJPY")
    assert guard.existing("USDJPY").direction == "SELL"


def test_persisted_record_fields(qualifying):
    store = InMemorySignalStore()
    bot_config = BotConfig("operator", ["EURUSD"], updated_by=OPERATOR_ID)

    result = asyncio.run(_bot(_provider("EURUSD"), store).run(bot_config, now=NOW))

    saved = result.signals[0]
    assert saved["id"]
    assert saved["created_at"]
    assert saved["user_id"] == OPERATOR_ID
    assert saved["generated_by"] == "bot"
    assert saved["outcome"] == "pending"
    assert saved["milestone"] == "M2"
    assert saved["trade_type"] == "intraday"
    assert saved["is_public"] is False
    assert saved["sent_to_users"] is False
    assert saved["confidence_score"] == 85


def test_symbol_listed_twice_is_emitted_once(qualifying):
    store = InMemorySignalStore()
    bot_config = BotConfig("operator", ["EURUSD", "EURUSD"])

    result = asyncio.run(_bot(_provider("EURUSD"), store).run(bot_config, now=NOW))

    assert result.signals_generated == 1
    assert len(store.signals) == 1


def test_missing_actor_fails_before_fetching(qualifying):
    provider = _provider("EURUSD")
    bot = _bot(provider, directory=InMemoryUserDirectory())

    with pytest.raises(ActorResolutionError) as excinfo:
        asyncio.run(bot.run(BotConfig("operator", ["EURUSD"], updated_by="not-a-uuid"), now=NOW))

    assert excinfo.value.to_dict() == {"error": "No valid admin user found.", "signalsGenerated": 0}
    assert provider.requests == []


def test_actor_resolution_order():
    directory = InMemoryUserDirectory(admin_user_ids=[ADMIN_ID, OPERATOR_ID])

    assert resolve_actor_id(BotConfig("operator", ["EURUSD"], updated_by=OPERATOR_ID), directory) == OPERATOR_ID
    assert resolve_actor_id(BotConfig("operator", ["EURUSD"], updated_by="system"), directory) == ADMIN_ID
    assert is_uuid(ADMIN_ID)
    assert not is_uuid(None)


def test_auto_broadcast_dispatches_to_matched_users(qualifying):
    dispatcher = LoggingNotificationDispatcher()
    directory = InMemoryUserDirectory(
        preferences=[UserPreference("u1", "intraday"), UserPreference("u2", "scalp", frozenset({"GBPUSD"}))],
        admin_user_ids=[ADMIN_ID],
    )
    bot_config = BotConfig("operator", ["EURUSD"], auto_broadcast=True)

    result = asyncio.run(_bot(_provider("EURUSD"), directory=directory, dispatcher=dispatcher).run(bot_config, now=NOW))

    assert result.signals[0]["matched_user_ids"] == ["u1"]
    assert result.signals[0]["sent_to_users"] is True
    assert len(dispatcher.sent) == 1
    assert dispatcher.sent[0]["userIds"] == ["u1"]


def test_no_dispatch_without_auto_broadcast(qualifying):
    dispatcher = LoggingNotificationDispatcher()
    directory = InMemoryUserDirectory(preferences=[UserPreference("u1")], admin_user_ids=[ADMIN_ID])

    asyncio.run(_bot(_provider("EURUSD"), directory=directory, dispatcher=dispatcher)
                .run(BotConfig("operator", ["EURUSD"]), now=NOW))

    assert dispatcher.sent == []


def test_store_and_dispatch_failures_do_not_stop_batch(qualifying):
    class FailingStore(InMemorySignalStore):
        def insert_signal(self, record):
            if record["symbol"] == "EURUSD":
                raise IOError("disk full")
            return super().insert_signal(record)

    class FailingDispatcher(LoggingNotificationDispatcher):
        def dispatch(self, signal, user_ids):
            raise RuntimeError("webhook down")

    directory = InMemoryUserDirectory(preferences=[UserPreference("u1")], admin_user_ids=[ADMIN_ID])
    bot = _bot(_provider("EURUSD", "GBPUSD"), FailingStore(), directory, FailingDispatcher())
    bot_config = BotConfig("operator", ["EURUSD", "GBPUSD"], auto_broadcast=True)

    result = asyncio.run(bot.run(bot_config, now=NOW))

    assert result.failed == ["EURUSD"]
    assert [s["symbol"] for s in result.signals] == ["GBPUSD"]


def test_malformed_provider_payload_does_not_stop_batch(qualifying):
    class MixedProvider(FrameMarketDataProvider):
        async def fetch_bars(self, symbol, interval):
            if symbol == "EURUSD":
                return [[1, 2, 3, 4]] * 60
            return await super().fetch_bars(symbol, interval)

    provider = MixedProvider({"GBPUSD_1h": flat_bars(50)})
    result = asyncio.run(_bot(provider).run(BotConfig("operator", ["EURUSD", "GBPUSD"]), now=NOW))

    assert [s["symbol"] for s in result.signals] == ["GBPUSD"]


def test_unreadable_directory_means_empty_audience(qualifying):
    class BrokenDirectory(InMemoryUserDirectory):
        def fetch_preferences(self):
            raise OSError("users.yaml unreadable")

    dispatcher = LoggingNotificationDispatcher()
    bot = _bot(_provider("EURUSD", "GBPUSD"), directory=BrokenDirectory(admin_user_ids=[ADMIN_ID]),
               dispatcher=dispatcher)
    bot_config = BotConfig("operator", ["EURUSD", "GBPUSD"], auto_broadcast=True)

    result = asyncio.run(bot.run(bot_config, now=NOW))

    assert result.signals_generated == 2
    assert all(s["matched_user_ids"] == [] for s in result.signals)
    assert dispatcher.sent == []
