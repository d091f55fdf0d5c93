"""
Candle data model for the zone signal engine.

A CandleSeries is an ordered, immutable run of CLOSED candles for one
timeframe. The evaluator never sees a still-forming bar unless the caller
explicitly merges one with merge_live_candle().
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import pandas as pd


TimeValue = Union[int, datetime]


class DataError(ValueError):
    """Candle input is structurally unusable (empty, unordered, malformed)."""


class InsufficientDataError(DataError):
    """Fewer candles than the longest configured indicator window."""


@dataclass(frozen=True)
class Candle:
    """One closed OHLCV period."""
    open_time: TimeValue
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0

    @property
    def body(self) -> float:
        return abs(self.close - self.open)

    @property
    def range(self) -> float:
        return self.high - self.low

    @property
    def upper_wick(self) -> float:
        return self.high - max(self.open, self.close)

    @property
    def lower_wick(self) -> float:
        return min(self.open, self.close) - self.low

    @property
    def is_bullish(self) -> bool:
        return self.close > self.open

    @property
    def is_bearish(self) -> bool:
        return self.close < self.open

    def to_dict(self) -> Dict[str, Any]:
        return {
            "time": self.open_time,
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "volume": self.volume,
        }


def _parse_time(value: Any) -> TimeValue:
    if isinstance(value, datetime):
        return value
    if isinstance(value, bool):
        raise DataError(f"Invalid candle time: {value!r}")
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError as e:
            raise DataError(f"Invalid candle time: {value!r}") from e
    raise DataError(f"Invalid candle time: {value!r}")


def _pick(record: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in record and record[key] is not None:
            return record[key]
    return None


def candle_from_record(record: Dict[str, Any]) -> Candle:
    """
    Build a Candle from a dict.

    Accepts the long keys used by the data layer (time/open/high/low/close/volume)
    as well as the short exchange form (t/o/h/l/c/v).
    """
    t = _pick(record, "time", "open_time", "timestamp", "date", "t")
    o = _pick(record, "open", "o")
    h = _pick(record, "high", "h")
    l = _pick(record, "low", "l")
    c = _pick(record, "close", "c")
    v = _pick(record, "volume", "v")

    if t is None or o is None or h is None or l is None or c is None:
        raise DataError(f"Candle record is missing fields: {record!r}")

    try:
        return Candle(
            open_time=_parse_time(t),
            open=float(o),
            high=float(h),
            low=float(l),
            close=float(c),
            volume=float(v) if v is not None else 0.0,
        )
    except (TypeError, ValueError) as e:
        if isinstance(e, DataError):
            raise
        raise DataError(f"Candle record has non-numeric prices: {record!r}") from e


@dataclass(frozen=True)
class CandleSeries:
    """Ordered, immutable sequence of closed candles for one timeframe."""
    candles: Tuple[Candle, ...]
    timeframe: str = ""
    _closes: Tuple[float, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        candles = tuple(self.candles)
        object.__setattr__(self, "candles", candles)
        object.__setattr__(self, "_closes", tuple(c.close for c in candles))

    @classmethod
    def from_records(cls, records: Iterable[Dict[str, Any]], timeframe: str = "") -> "CandleSeries":
        return cls(tuple(candle_from_record(r) for r in records), timeframe)

    @classmethod
    def from_dataframe(cls, df: pd.DataFrame, timeframe: str = "") -> "CandleSeries":
        """
        Build a series from a DataFrame with time/open/high/low/close[/volume]
        columns (case-insensitive). A DatetimeIndex is used as the time column
        when no explicit one exists.
        """
        frame = df.copy()
        frame.columns = [str(col).strip().lower() for col in frame.columns]

        time_col = next(
            (col for col in ("time", "open_time", "timestamp", "date", "datetime") if col in frame.columns),
            None,
        )
        if time_col is None:
            if not isinstance(frame.index, pd.DatetimeIndex):
                raise DataError("DataFrame has no time column or DatetimeIndex")
            frame = frame.reset_index().rename(columns={frame.index.name or "index": "time"})
            time_col = "time"

        missing = [col for col in ("open", "high", "low", "close") if col not in frame.columns]
        if missing:
            raise DataError(f"DataFrame is missing columns: {missing}")

        if "volume" not in frame.columns:
            frame["volume"] = 0.0

        candles = []
        for row in frame.itertuples(index=False):
            t = getattr(row, time_col)
            if isinstance(t, pd.Timestamp):
                t = t.to_pydatetime()
            candles.append(candle_from_record({
                "time": t,
                "open": row.open,
                "high": row.high,
                "low": row.low,
                "close": row.close,
                "volume": row.volume,
            }))
        return cls(tuple(candles), timeframe)

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame([c.to_dict() for c in self.candles])

    def __len__(self) -> int:
        return len(self.candles)

    def __getitem__(self, index):
        if isinstance(index, slice):
            return CandleSeries(self.candles[index], self.timeframe)
        return self.candles[index]

    def __iter__(self):
        return iter(self.candles)

    @property
    def last(self) -> Optional[Candle]:
        return self.candles[-1] if self.candles else None

    @property
    def opens(self) -> List[float]:
        return [c.open for c in self.candles]

    @property
    def highs(self) -> List[float]:
        return [c.high for c in self.candles]

    @property
    def lows(self) -> List[float]:
        return [c.low for c in self.candles]

    @property
    def closes(self) -> List[float]:
        return list(self._closes)

    @property
    def volumes(self) -> List[float]:
        return [c.volume for c in self.candles]

    def validate(self, min_length: int = 1) -> "CandleSeries":
        """
        Check the structural input contract and return self.

        Raises DataError for an empty series, non-increasing open times,
        non-finite values, high < low or open/close outside the high-low
        range. Raises InsufficientDataError when the series is shorter than
        min_length.
        """
        name = self.timeframe or "series"
        if not self.candles:
            raise DataError(f"{name}: empty candle series")

        prev_time = None
        for i, c in enumerate(self.candles):
            values = (c.open, c.high, c.low, c.close, c.volume)
            if not all(math.isfinite(v) for v in values):
                raise DataError(f"{name}: non-finite value in candle {i}")
            if c.high < c.low:
                raise DataError(f"{name}: high below low in candle {i}")
            if not (c.low <= c.open <= c.high and c.low <= c.close <= c.high):
                raise DataError(f"{name}: open/close outside high-low range in candle {i}")
            if c.volume < 0:
                raise DataError(f"{name}: negative volume in candle {i}")
            if prev_time is not None:
                try:
                    ordered = c.open_time > prev_time
                except TypeError as e:
                    raise DataError(f"{name}: mixed time types at candle {i}") from e
                if not ordered:
                    raise DataError(f"{name}: open times not strictly increasing at candle {i}")
            prev_time = c.open_time

        if len(self.candles) < min_length:
            raise InsufficientDataError(
                f"{name}: {len(self.candles)} candles, need at least {min_length}"
            )
        return self


def merge_live_candle(series: CandleSeries, partial: Optional[Candle]) -> CandleSeries:
    """
    Return a NEW series with a still-forming candle merged in.

    - partial is None: the series is returned unchanged
    - same open_time as the last candle: the last candle is replaced
    - later open_time: the partial candle is appended
    - earlier open_time, or a time of another type: DataError
    """
    if partial is None:
        return series
    if not series.candles:
        return CandleSeries((partial,), series.timeframe)

    last = series.candles[-1]
    try:
        later = partial.open_time > last.open_time
    except TypeError as e:
        raise DataError("Live candle time type does not match the series") from e
    if partial.open_time == last.open_time:
        return CandleSeries(series.candles[:-1] + (partial,), series.timeframe)
    if later:
        return CandleSeries(series.candles + (partial,), series.timeframe)
    raise DataError("Live candle is older than the last closed candle")


def as_series(candles: Union[CandleSeries, Sequence[Candle], Sequence[Dict[str, Any]]], timeframe: str = "") -> CandleSeries:
    """Coerce a CandleSeries, a list of Candle or a list of candle dicts."""
    if isinstance(candles, CandleSeries):
        return candles
    items = list(candles)
    if items and isinstance(items[0], dict):
        return CandleSeries.from_records(items, timeframe)
    return CandleSeries(tuple(items), timeframe)
