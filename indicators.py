# indicators.py
"""
Technical indicators used by the zone signal engine:
- EMA (latest value and full series)
- SMA
- True Range / Wilder ATR
- ATR compression (short ATR below long ATR)
"""

from typing import List, Optional, Sequence, Tuple


def ema(values: Sequence[float], period: int) -> Optional[float]:
    """
    Return the latest EMA value for the given period.
    values: oldest -> newest
    """
    series = ema_series(values, period)
    if not series:
        return None
    return series[-1]


def ema_series(values: Sequence[float], period: int) -> List[float]:
    """
    Full EMA series, seeded with the simple average of the first `period` values.
    The first element lines up with values[period - 1].
    """
    if period <= 0 or len(values) < period:
        return []

    k = 2 / (period + 1)
    ema_val = sum(values[:period]) / period  # simple MA start
    out = [ema_val]
    for price in values[period:]:
        ema_val = price * k + ema_val * (1 - k)
        out.append(ema_val)
    return out


def sma(values: Sequence[float], period: int) -> Optional[float]:
    """Simple average of the last `period` values."""
    if period <= 0 or len(values) < period:
        return None
    return sum(values[-period:]) / period


def true_ranges(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
) -> List[float]:
    """
    True range of every candle that has a previous close.
    Element j belongs to candle j + 1.
    """
    trs = []
    for i in range(1, len(closes)):
        prev_close = closes[i - 1]
        trs.append(max(
            highs[i] - lows[i],
            abs(highs[i] - prev_close),
            abs(lows[i] - prev_close),
        ))
    return trs


def atr_series(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    period: int = 14,
) -> List[float]:
    """
    Wilder-smoothed ATR series.

    The first value is the plain average of the first `period` true ranges,
    every later value is (prev * (period - 1) + tr) / period.
    Returns an empty list when there are not enough candles.
    """
    if period <= 0:
        return []

    trs = true_ranges(highs, lows, closes)
    if len(trs) < period:
        return []

    atr_val = sum(trs[:period]) / period
    out = [atr_val]
    for tr in trs[period:]:
        atr_val = (atr_val * (period - 1) + tr) / period
        out.append(atr_val)
    return out


def atr(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    period: int = 14,
) -> float:
    """Latest Wilder ATR, or 0.0 if there is not enough data."""
    series = atr_series(highs, lows, closes, period)
    return series[-1] if series else 0.0


def atr_compression(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    short_period: int = 20,
    long_period: int = 30,
) -> Tuple[bool, Optional[float], Optional[float]]:
    """
    Detect volatility compression: latest short ATR below latest long ATR.

    Returns (compressed, atr_short, atr_long). Missing data means not compressed.
    """
    short_series = atr_series(highs, lows, closes, short_period)
    long_series = atr_series(highs, lows, closes, long_period)
    if not short_series or not long_series:
        return False, None, None

    atr_short = short_series[-1]
    atr_long = long_series[-1]
    return atr_short < atr_long, atr_short, atr_long
