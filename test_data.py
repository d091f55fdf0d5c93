"""
Data Layer Test Suite

No network: requests.get, time.sleep and time.time are monkeypatched.

Tests:
1. Bounded retry with linear backoff
2. Kline parsing and forming-candle drop
3. CSV loading
"""

import sys
from datetime import datetime, timezone

import pytest
import requests

import data
from candles import CandleSeries, DataError
from data import FetchError, fetch_with_retry, get_ohlcv, get_series, load_candles_csv


HOUR_MS = 3600 * 1000
T0 = 1704067200000  # 2024-01-01T00:00:00Z


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self._payload = payload
        self.status_code = status_code
        self.text = str(payload)

    def json(self):
        return self._payload


def _kline(open_ms, o, h, l, c, v, span_ms=4 * HOUR_MS):
    return [open_ms, str(o), str(h), str(l), str(c), str(v), open_ms + span_ms - 1,
            "0", 10, "0", "0", "0"]


@pytest.fixture
def no_sleep(monkeypatch):
    sleeps = []
    monkeypatch.setattr(data.time, "sleep", lambda s: sleeps.append(s))
    return sleeps


def test_fetch_with_retry_recovers(no_sleep):
    """Test 1: Transient errors are retried with growing delay"""
    print("\n" + "="*70)
    print("TEST 1: BOUNDED RETRY")
    print("="*70)

    calls = []

    def flaky(x, y=0):
        calls.append((x, y))
        if len(calls) < 3:
            raise requests.ConnectionError("boom")
        return x + y

    assert fetch_with_retry(flaky, 1, y=2, max_retries=4, base_delay=1.5) == 3
    assert len(calls) == 3
    assert no_sleep == [1.5, 3.0], f"Expected linear backoff, got {no_sleep}"
    print("  PASS: retry recovers")


def test_fetch_with_retry_gives_up(no_sleep):
    """Test 2: The last error is re-raised after max_retries"""
    calls = []

    def always_down():
        calls.append(1)
        raise FetchError(f"down {len(calls)}")

    with pytest.raises(FetchError, match="down 4"):
        fetch_with_retry(always_down, max_retries=4, base_delay=1.0)
    assert len(calls) == 4
    assert no_sleep == [1.0, 2.0, 3.0], "No sleep after the final attempt"


def test_fetch_with_retry_does_not_retry_bugs(no_sleep):
    """Test 3: Non-network errors propagate immediately"""
    calls = []

    def broken():
        calls.append(1)
        raise KeyError("oops")

    with pytest.raises(KeyError):
        fetch_with_retry(broken, max_retries=4, base_delay=1.0)
    assert len(calls) == 1
    assert no_sleep == []


def test_get_ohlcv_drops_forming_candle(monkeypatch, no_sleep):
    """Test 4: Klines are parsed and the still-forming one is dropped"""
    print("\n" + "="*70)
    print("TEST 4: KLINE PARSING")
    print("="*70)

    klines = [
        _kline(T0, 100, 101, 99, 100.5, 10),
        _kline(T0 + 4 * HOUR_MS, 100.5, 102, 100, 101.5, 12),
        _kline(T0 + 8 * HOUR_MS, 101.5, 103, 101, 102.5, 14),
        _kline(T0 + 12 * HOUR_MS, 102.5, 102.8, 102.2, 102.6, 1),  # forming
    ]
    seen = {}

    def fake_get(url, headers=None, params=None, timeout=None):
        seen["url"] = url
        seen["params"] = params
        seen["timeout"] = timeout
        return FakeResponse(klines)

    monkeypatch.setattr(requests, "get", fake_get)
    monkeypatch.setattr(data.time, "time", lambda: (T0 + 13 * HOUR_MS) / 1000)

    candles = get_ohlcv("BTC/USDT", "H4", 3)
    assert len(candles) == 3, f"Forming candle should be dropped, got {len(candles)}"
    assert seen["params"]["symbol"] == "BTCUSDT"
    assert seen["params"]["interval"] == "4h"
    assert seen["params"]["limit"] == 4, "One extra kline covers the dropped forming one"
    assert seen["url"].endswith("/api/v3/klines")
    assert seen["timeout"] is not None

    first = candles[0]
    assert first["time"] == datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert first["open"] == 100.0 and first["close"] == 100.5 and first["volume"] == 10.0
    assert candles[-1]["close"] == 102.5

    series = get_series("BTCUSDT", "4h", 3)
    assert isinstance(series, CandleSeries)
    assert series.closes == [100.5, 101.5, 102.5]
    print("  PASS: kline parsing")


def test_get_ohlcv_http_error(monkeypatch, no_sleep):
    """Test 5: Persistent HTTP errors surface as FetchError"""
    attempts = []

    def fake_get(url, headers=None, params=None, timeout=None):
        attempts.append(1)
        return FakeResponse({"code": -1121, "msg": "Invalid symbol."}, status_code=400)

    monkeypatch.setattr(requests, "get", fake_get)
    with pytest.raises(FetchError):
        get_ohlcv("NOPE", "1d", 10)
    assert len(attempts) == data.FETCH_MAX_RETRIES


def test_get_ohlcv_bad_payload(monkeypatch, no_sleep):
    """Test 6: A non-list payload is a FetchError"""
    monkeypatch.setattr(requests, "get", lambda *a, **k: FakeResponse({"unexpected": True}))
    with pytest.raises(FetchError):
        get_ohlcv("BTCUSDT", "1d", 10)


def test_load_candles_csv(tmp_path):
    """Test 7: CSV with epoch-ms times, out of order"""
    print("\n" + "="*70)
    print("TEST 7: CSV LOADING")
    print("="*70)

    path = tmp_path / "btc_4h.csv"
    path.write_text(
        "Time,Open,High,Low,Close,Volume\n"
        f"{T0 + 4 * HOUR_MS},100.5,102,100,101.5,12\n"
        f"{T0},100,101,99,100.5,10\n"
    )
    series = load_candles_csv(str(path), "4h")
    assert len(series) == 2
    assert series.closes == [100.5, 101.5], "Rows should be sorted by time"
    assert series[0].open_time == datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert series.timeframe == "4h"

    iso = tmp_path / "iso.csv"
    iso.write_text(
        "date,open,high,low,close\n"
        "2024-01-01,1,2,0.5,1.5\n"
        "2024-01-02,1.5,2.5,1,2\n"
    )
    assert load_candles_csv(str(iso)).volumes == [0.0, 0.0]

    with pytest.raises(DataError):
        load_candles_csv(str(tmp_path / "missing.csv"))

    no_time = tmp_path / "no_time.csv"
    no_time.write_text("open,high,low,close\n1,2,0.5,1.5\n")
    with pytest.raises(DataError):
        load_candles_csv(str(no_time))
    print("  PASS: CSV loading")


if __name__ == '__main__':
    sys.exit(pytest.main([__file__, "-v"]))
