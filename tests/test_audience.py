import sys
from pathlib import Path

# Ensure project root on sys.path before importing project packages
sys.path.append(str(Path(__file__).resolve().parents[1]))

from operator_bot.audience import match_users_to_signal, score_preference
from operator_bot.core.directory import preferences_from_records
from operator_bot.models import UserPreference


def test_unset_preferences_always_match(make_candidate):
    user = UserPreference("u1", trading_style="swing")
    for symbol, timeframe in [("EURUSD", "H4"), ("BTCUSD", "D1")]:
        candidate = make_candidate(symbol=symbol, timeframe=timeframe)
        assert score_preference(user, candidate) == 6
        assert match_users_to_signal(candidate, [user]) == ["u1"]


def test_style_mismatch_with_open_pairs_still_matches(make_candidate):
    user = UserPreference("u1", trading_style="scalp")
    candidate = make_candidate(timeframe="H1")
    assert score_preference(user, candidate) == 3
    assert match_users_to_signal(candidate, [user]) == ["u1"]


def test_style_and_pair_mismatch_is_not_matched(make_candidate):
    user = UserPreference("u1", trading_style="scalp", preferred_pairs=frozenset({"GBPUSD"}))
    candidate = make_candidate(symbol="EURUSD", timeframe="H1")
    assert score_preference(user, candidate) == 1
    assert match_users_to_signal(candidate, [user]) == []


def test_matches_keep_directory_order(make_candidate):
    users = [UserPreference("b"), UserPreference("a", preferred_timeframes=frozenset({"M15"})), UserPreference("c")]
    assert match_users_to_signal(make_candidate(timeframe="H1"), users) == ["b", "a", "c"]


def test_malformed_preference_rows_are_normalized(make_candidate):
    preferences = preferences_from_records([
        {"user_id": "u1", "trading_style": "", "preferred_pairs": "EURUSD, GBPUSD", "preferred_timeframes": 5},
        {"trading_style": "swing"},
        "garbage",
    ])

    assert len(preferences) == 1
    user = preferences[0]
    assert user.trading_style is None
    assert user.preferred_pairs == frozenset({"EURUSD", "GBPUSD"})
    assert user.preferred_timeframes is None
    assert score_preference(user, make_candidate(symbol="EURUSD")) == 6
