"""
Scan Orchestration Test Suite

get_series is monkeypatched with synthetic markets, so no network is used.

Tests:
1. A healthy symbol produces a signal and a message
2. Fetch / data errors are recorded, not raised
3. A symbol already in flight is skipped
4. Category scans
"""

import sys

import pytest
import requests

import strategy
from candles import DataError
from strategy_core import Decision, EvaluatorConfig
from test_strategy_core import impulse_execution, trending_htf


def _fake_series(symbol, timeframe, count):
    if timeframe == strategy.HTF_TIMEFRAME:
        return trending_htf()
    return impulse_execution()


def test_scan_single_asset(monkeypatch):
    """Test 1: Healthy symbol"""
    print("\n" + "="*70)
    print("TEST 1: SINGLE ASSET SCAN")
    print("="*70)

    monkeypatch.setattr(strategy, "get_series", _fake_series)
    result = strategy.scan_single_asset("BTCUSDT", EvaluatorConfig())

    assert result.error is None, f"Unexpected error: {result.error}"
    assert result.signal.decision == Decision.TRADE
    assert result.is_trade
    assert "**BTCUSDT**" in result.message
    assert result.timestamp is not None
    print("  PASS: single asset scan")


def test_scan_errors_are_recorded(monkeypatch):
    """Test 2: Network and data errors end up on the result"""
    def down(symbol, timeframe, count):
        raise requests.ConnectionError("exchange unreachable")

    monkeypatch.setattr(strategy, "get_series", down)
    result = strategy.scan_single_asset("ETHUSDT")
    assert result.signal is None
    assert "unreachable" in result.error

    def garbage(symbol, timeframe, count):
        raise DataError("open times not strictly increasing")

    monkeypatch.setattr(strategy, "get_series", garbage)
    result = strategy.scan_single_asset("ETHUSDT")
    assert result.signal is None and "strictly" in result.error

    # the lock is released after a failure
    monkeypatch.setattr(strategy, "get_series", _fake_series)
    assert strategy.scan_single_asset("ETHUSDT", EvaluatorConfig()).error is None


def test_scan_skips_symbol_in_flight(monkeypatch):
    """Test 3: Second concurrent evaluation of the same symbol is skipped"""
    monkeypatch.setattr(strategy, "get_series", _fake_series)

    lock = strategy._symbol_lock("SOLUSDT")
    assert lock.acquire(blocking=False)
    try:
        skipped = strategy.scan_single_asset("SOLUSDT")
        assert skipped.skipped and skipped.signal is None
        other = strategy.scan_single_asset("BTCUSDT", EvaluatorConfig())
        assert not other.skipped, "Other symbols are not blocked"
    finally:
        lock.release()

    assert not strategy.scan_single_asset("SOLUSDT").skipped


def test_scan_all_markets(monkeypatch):
    """Test 4: Results grouped by category, one per symbol"""
    monkeypatch.setattr(strategy, "get_series", _fake_series)
    markets = strategy.scan_all_markets()
    assert set(markets) == {"Crypto", "Metals"}
    assert [r.symbol for r in markets["Crypto"]] == strategy.CRYPTO_ASSETS
    assert len(markets["Metals"]) == len(strategy.METALS)
    assert all(r.error is None for results in markets.values() for r in results)


if __name__ == '__main__':
    sys.exit(pytest.main([__file__, "-v"]))
