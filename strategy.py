"""
Scan wrapper around the signal evaluator.

Fetches the higher-timeframe and execution-timeframe candles for each
symbol, runs SignalEvaluator and renders the result for chat.

At most one evaluation per symbol runs at a time: a scan that finds the
symbol already in flight is skipped instead of queued.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from threading import Lock
from typing import Dict, List, Optional

import requests

from candles import DataError
from config import (
    CRYPTO_ASSETS,
    EXECUTION_CANDLE_COUNT,
    EXECUTION_TIMEFRAME,
    HTF_CANDLE_COUNT,
    HTF_TIMEFRAME,
    METALS,
)
from data import FetchError, get_series
from formatting import format_scan_summary, format_signal, split_message
from strategy_core import EvaluatorConfig, Signal, SignalEvaluator, get_default_config


@dataclass
class ScanResult:
    symbol: str
    signal: Optional[Signal] = None
    message: str = ""
    error: Optional[str] = None
    skipped: bool = False
    timestamp: Optional[datetime] = None

    @property
    def is_trade(self) -> bool:
        return self.signal is not None and self.signal.is_trade


_registry_lock = Lock()
_symbol_locks: Dict[str, Lock] = {}


def _symbol_lock(symbol: str) -> Lock:
    with _registry_lock:
        lock = _symbol_locks.get(symbol)
        if lock is None:
            lock = Lock()
            _symbol_locks[symbol] = lock
        return lock


def scan_single_asset(symbol: str, config: Optional[EvaluatorConfig] = None) -> ScanResult:
    """
    Scan a single instrument.

    Network and data problems are reported on the result's `error` and
    never raised, so one bad symbol cannot break a market scan.
    """
    lock = _symbol_lock(symbol)
    if not lock.acquire(blocking=False):
        print(f"[strategy.scan_single_asset] {symbol} already being evaluated, skipping")
        return ScanResult(symbol=symbol, skipped=True, error="evaluation already in flight",
                          timestamp=datetime.now(timezone.utc))

    try:
        htf = get_series(symbol, HTF_TIMEFRAME, HTF_CANDLE_COUNT)
        execution = get_series(symbol, EXECUTION_TIMEFRAME, EXECUTION_CANDLE_COUNT)

        evaluator = SignalEvaluator(config or get_default_config(symbol), symbol)
        signal = evaluator.evaluate(htf, execution)

        return ScanResult(
            symbol=symbol,
            signal=signal,
            message=format_signal(signal),
            timestamp=datetime.now(timezone.utc),
        )
    except (requests.RequestException, FetchError, DataError) as e:
        print(f"[strategy.scan_single_asset] Error scanning {symbol}: {e}")
        return ScanResult(symbol=symbol, error=str(e), timestamp=datetime.now(timezone.utc))
    finally:
        lock.release()


def scan_assets(symbols: List[str], category: str = "Assets") -> List[ScanResult]:
    """Scan a list of symbols in order."""
    results = []
    print(f"[strategy.scan_assets] Scanning {category}...")
    for i, symbol in enumerate(symbols, 1):
        print(f"  [{i}/{len(symbols)}] Scanning {symbol}...")
        results.append(scan_single_asset(symbol))
    trades = sum(1 for r in results if r.is_trade)
    errors = sum(1 for r in results if r.error)
    print(f"[strategy.scan_assets] {category} done: {len(symbols)} scanned, {trades} trades, {errors} errors")
    return results


def scan_crypto() -> List[ScanResult]:
    """Scan all crypto assets."""
    return scan_assets(CRYPTO_ASSETS, "Crypto")


def scan_metals() -> List[ScanResult]:
    """Scan all metals."""
    return scan_assets(METALS, "Metals")


def scan_all_markets() -> Dict[str, List[ScanResult]]:
    """Scan all markets and return results by category."""
    return {
        "Crypto": scan_crypto(),
        "Metals": scan_metals(),
    }


if __name__ == "__main__":
    markets = scan_all_markets()
    for category, results in markets.items():
        signals = [r.signal for r in results if r.signal is not None]
        print(f"\n📊 **{category} Scan**")
        print(format_scan_summary(signals))
        for r in results:
            if r.is_trade:
                for chunk in split_message(r.message):
                    print(chunk)
