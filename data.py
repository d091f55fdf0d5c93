# data.py
"""
Data access layer for the zone signal engine.

Uses the Binance public REST API (klines) for OHLCV candles and pandas
for CSV files. Only CLOSED candles are ever returned.
"""

import datetime as dt
import time
from typing import Any, Callable, Dict, List, Optional

import pandas as pd
import requests

from candles import CandleSeries, DataError
from config import (
    DATA_API_KEY,
    DATA_API_URL,
    FETCH_BASE_DELAY,
    FETCH_MAX_RETRIES,
    FETCH_TIMEOUT,
    TIMEFRAME_MAP,
)


class FetchError(RuntimeError):
    """Upstream answered, but not with usable data (bad status, bad payload)."""


def fetch_with_retry(
    fn: Callable[..., Any],
    *args: Any,
    max_retries: int = FETCH_MAX_RETRIES,
    base_delay: float = FETCH_BASE_DELAY,
    **kwargs: Any,
) -> Any:
    """
    Call fn(*args, **kwargs) with bounded retries.

    Retries on requests.RequestException and FetchError, sleeping
    base_delay * attempt seconds between attempts. After max_retries
    failed attempts the last error is re-raised.
    """
    if max_retries < 1:
        raise ValueError("max_retries must be >= 1")

    last_error: Optional[Exception] = None
    for attempt in range(1, max_retries + 1):
        try:
            return fn(*args, **kwargs)
        except (requests.RequestException, FetchError) as e:
            last_error = e
            print(f"[data.fetch_with_retry] Attempt {attempt}/{max_retries} failed: {e}")
            if attempt < max_retries:
                time.sleep(base_delay * attempt)

    raise last_error


def _headers() -> Dict[str, str]:
    if not DATA_API_KEY:
        return {}
    return {"X-MBX-APIKEY": DATA_API_KEY}


def _request_klines(symbol: str, interval: str, count: int) -> List[List[Any]]:
    url = f"{DATA_API_URL}/api/v3/klines"
    params = {
        "symbol": symbol,
        "interval": interval,
        "limit": count,
    }
    resp = requests.get(url, headers=_headers(), params=params, timeout=FETCH_TIMEOUT)
    if resp.status_code != 200:
        raise FetchError(f"HTTP {resp.status_code} for {symbol} {interval}: {resp.text[:200]}")

    payload = resp.json()
    if not isinstance(payload, list):
        raise FetchError(f"Unexpected payload for {symbol} {interval}: {str(payload)[:200]}")
    return payload


def _normalize_symbol(symbol: str) -> str:
    return symbol.upper().replace("/", "").replace("_", "").replace("-", "")


def get_ohlcv(
    symbol: str,
    timeframe: str = "4h",
    count: int = 200,
) -> List[Dict[str, Any]]:
    """
    Fetch closed OHLCV candles for a symbol and timeframe.

    timeframe: exchange interval ("1d", "4h", ...) or the short names in
    TIMEFRAME_MAP ("D", "H4", ...).
    Returns a list of dicts, oldest first:
    {
      "time": datetime (UTC, candle open),
      "open": float,
      "high": float,
      "low": float,
      "close": float,
      "volume": float,
    }
    A kline whose close time is not yet in the past is still forming and
    is dropped.
    """
    interval = TIMEFRAME_MAP.get(timeframe, timeframe)
    # one extra so a dropped forming kline still leaves `count` closed ones
    raw = fetch_with_retry(_request_klines, _normalize_symbol(symbol), interval, count + 1)

    now_ms = int(time.time() * 1000)
    candles = []
    for k in raw:
        try:
            open_ms = int(k[0])
            close_ms = int(k[6])
            candle = {
                "time": dt.datetime.fromtimestamp(open_ms / 1000, tz=dt.timezone.utc),
                "open": float(k[1]),
                "high": float(k[2]),
                "low": float(k[3]),
                "close": float(k[4]),
                "volume": float(k[5]),
            }
        except (IndexError, TypeError, ValueError) as e:
            raise FetchError(f"Malformed kline for {symbol}: {k!r}") from e

        if close_ms >= now_ms:
            continue
        candles.append(candle)

    return candles[-count:]


def get_series(symbol: str, timeframe: str = "4h", count: int = 200) -> CandleSeries:
    """Fetch closed candles as a validated CandleSeries."""
    return CandleSeries.from_records(get_ohlcv(symbol, timeframe, count), timeframe).validate()


def load_candles_csv(path: str, timeframe: str = "") -> CandleSeries:
    """
    Load candles from a CSV file with time/open/high/low/close[/volume] columns.

    Numeric time columns are read as epoch milliseconds, anything else is
    parsed as a date string. Rows are sorted by time.
    """
    try:
        df = pd.read_csv(path)
    except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        raise DataError(f"Could not read candles from {path}: {e}") from e

    df.columns = [str(col).strip().lower() for col in df.columns]
    time_col = next(
        (col for col in ("time", "open_time", "timestamp", "date", "datetime") if col in df.columns),
        None,
    )
    if time_col is None:
        raise DataError(f"{path}: no time column")

    if pd.api.types.is_numeric_dtype(df[time_col]):
        df[time_col] = pd.to_datetime(df[time_col], unit="ms", utc=True)
    else:
        df[time_col] = pd.to_datetime(df[time_col], utc=True)

    df = df.sort_values(time_col).reset_index(drop=True)
    return CandleSeries.from_dataframe(df, timeframe).validate()
