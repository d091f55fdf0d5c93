"""
Strategy Core Module for the zone signal engine.

Single source of truth for the decision pipeline used by live scanning
and by any replay tooling:

1. Trend classification on the higher timeframe (EMA stack + structure + slope)
2. Displacement-origin zone detection on the execution timeframe
3. Chop / regime filter
4. Retest (rejection wick) validation
5. ATR-buffered stop and 1R/2R/3R take profits
6. Weighted score and a gated TRADE / NO_TRADE decision

Every function here is pure. Per-asset behaviour comes only from the
immutable EvaluatorConfig handed in at construction.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, Dict, Optional, Sequence, Tuple, Union

from candles import (
    Candle,
    CandleSeries,
    InsufficientDataError,
    as_series,
)
from config import CHOP_MODE
from indicators import atr_compression, atr_series, ema_series


class ConfigError(ValueError):
    """Missing or invalid evaluator configuration value."""


class Direction(str, Enum):
    BULL = "BULL"
    BEAR = "BEAR"
    INVALID = "INVALID"


class Decision(str, Enum):
    TRADE = "TRADE"
    NO_TRADE = "NO_TRADE"


class ReasonCode(str, Enum):
    OK = "OK"
    INSUFFICIENT_DATA = "INSUFFICIENT_DATA"
    TREND_INVALID = "TREND_INVALID"
    NO_ZONE = "NO_ZONE"
    REGIME_CHOP = "REGIME_CHOP"
    RISK_UNAVAILABLE = "RISK_UNAVAILABLE"
    LOW_SCORE = "LOW_SCORE"


CHOP_MODES = ("gate", "penalty")
REGIME_SOURCES = ("htf", "execution")


@dataclass(frozen=True)
class EvaluatorConfig:
    """
    Evaluator parameters, fixed for the lifetime of an evaluator.

    Defaults follow the BTC/ETH engines:
    - EMA stack 20/50/100/200 on the HTF, ATR(14) on the execution TF
    - displacement body > 1 ATR with volume >= 1.5x trailing average
    - zone padded 0.25 ATR on the deep side, 0.10 ATR on the shallow side
    - retest within the last 10 candles with a >40% rejection wick
    - chop when 2 of 4 regime conditions hold over the last 8 candles
    - stop 0.10 ATR beyond the zone, TPs at 1R/2R/3R
    """
    atr_period: int = 14
    ma_stack: Tuple[int, ...] = (20, 50, 100, 200)
    trend_structure_bars: int = 6

    impulse_body_atr: float = 1.0
    volume_multiplier: float = 1.5
    zone_pad_deep: float = 0.25
    zone_pad_shallow: float = 0.10
    zone_lookback: int = 100
    min_zone_strength: float = 1.0
    breakout_entry_atr: Optional[float] = None

    retest_lookback: int = 10
    retest_wick_ratio: float = 0.40

    regime_source: str = "htf"
    chop_mode: str = "gate"
    chop_window: int = 8
    chop_min_candles: int = 30
    chop_body_atr: float = 0.40
    chop_net_move_atr: float = 0.25
    chop_overlap_atr: float = 0.15
    chop_overlap_min: int = 2
    chop_low_volume: float = 0.85
    chop_volume_baseline: int = 50

    stop_buffer_atr: float = 0.10

    compression_atr_short: int = 20
    compression_atr_long: int = 30

    weight_alignment: float = 40.0
    weight_retest: float = 30.0
    weight_compression: float = 15.0
    weight_strength: float = 15.0
    strength_full_scale: float = 3.0
    chop_penalty: float = 30.0
    min_score: float = 50.0

    def __post_init__(self):
        if isinstance(self.ma_stack, (list, tuple)):
            object.__setattr__(self, "ma_stack", tuple(self.ma_stack))
        self._validate()

    def _validate(self) -> None:
        def positive_int(name: str, minimum: int = 1) -> None:
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value < minimum:
                raise ConfigError(f"{name} must be an integer >= {minimum}, got {value!r}")

        def non_negative(name: str) -> None:
            value = getattr(self, name)
            if not isinstance(value, (int, float)) or isinstance(value, bool) or value < 0:
                raise ConfigError(f"{name} must be a number >= 0, got {value!r}")

        def positive(name: str) -> None:
            non_negative(name)
            if getattr(self, name) <= 0:
                raise ConfigError(f"{name} must be > 0, got {getattr(self, name)!r}")

        for name in ("atr_period", "zone_lookback", "retest_lookback",
                     "compression_atr_short", "compression_atr_long"):
            positive_int(name)
        positive_int("trend_structure_bars", 2)
        positive_int("chop_window", 2)
        positive_int("chop_min_candles")
        positive_int("chop_overlap_min", 0)
        positive_int("chop_volume_baseline")

        if not isinstance(self.ma_stack, tuple) or not self.ma_stack:
            raise ConfigError("ma_stack must be a non-empty sequence of periods")
        for period in self.ma_stack:
            if not isinstance(period, int) or isinstance(period, bool) or period < 2:
                raise ConfigError(f"ma_stack periods must be integers >= 2, got {period!r}")
        if any(b <= a for a, b in zip(self.ma_stack, self.ma_stack[1:])):
            raise ConfigError(f"ma_stack must be strictly ascending, got {self.ma_stack}")

        for name in ("impulse_body_atr", "volume_multiplier", "strength_full_scale",
                     "chop_body_atr", "chop_net_move_atr", "chop_low_volume"):
            positive(name)
        for name in ("zone_pad_deep", "zone_pad_shallow", "min_zone_strength",
                     "stop_buffer_atr", "chop_overlap_atr",
                     "weight_alignment", "weight_retest", "weight_compression",
                     "weight_strength", "chop_penalty"):
            non_negative(name)

        if self.breakout_entry_atr is not None:
            positive("breakout_entry_atr")

        if not 0 < self.retest_wick_ratio < 1:
            raise ConfigError(f"retest_wick_ratio must be in (0, 1), got {self.retest_wick_ratio!r}")
        non_negative("min_score")
        if self.min_score > 100:
            raise ConfigError(f"min_score must be <= 100, got {self.min_score!r}")

        if self.chop_mode not in CHOP_MODES:
            raise ConfigError(f"chop_mode must be one of {CHOP_MODES}, got {self.chop_mode!r}")
        if self.regime_source not in REGIME_SOURCES:
            raise ConfigError(f"regime_source must be one of {REGIME_SOURCES}, got {self.regime_source!r}")

    @property
    def min_htf_candles(self) -> int:
        return max(max(self.ma_stack), self.trend_structure_bars)

    @property
    def min_execution_candles(self) -> int:
        return max(self.atr_period, self.compression_atr_long) + 2

    def to_dict(self) -> Dict[str, Any]:
        """Convert parameters to dictionary."""
        d = {f.name: getattr(self, f.name) for f in fields(self)}
        d["ma_stack"] = list(self.ma_stack)
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "EvaluatorConfig":
        """Create parameters from dictionary, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in d.items() if k in known})


# Per-asset tweaks, keyed by base asset prefix.
ASSET_OVERRIDES: Dict[str, Dict[str, Any]] = {
    "BTC": {
        "volume_multiplier": 1.5,
        "chop_body_atr": 0.30,
        "chop_net_move_atr": 0.20,
    },
    "ETH": {
        "volume_multiplier": 1.5,
    },
    "SOL": {
        # SOL prints large bodies and trends fast
        "volume_multiplier": 1.2,
        "chop_body_atr": 0.45,
        "chop_net_move_atr": 0.28,
        "chop_low_volume": 0.80,
    },
    "XAU": {
        "volume_multiplier": 1.3,
        "retest_lookback": 12,
    },
}
ASSET_OVERRIDES["PAXG"] = ASSET_OVERRIDES["XAU"]  # tokenised gold


def get_default_config(symbol: str = "") -> EvaluatorConfig:
    """
    Get evaluator parameters with asset-specific overrides.

    The symbol is matched on its base asset ("SOL/USDT", "SOLUSDT" and
    "SOL_USD" all pick the SOL preset). Unknown symbols get the defaults.
    The CHOP_MODE environment setting applies to every preset.
    """
    overrides: Dict[str, Any] = {"chop_mode": CHOP_MODE}
    base = symbol.upper().replace("/", "").replace("_", "").replace("-", "")
    for prefix, values in ASSET_OVERRIDES.items():
        if base.startswith(prefix):
            overrides.update(values)
            break
    return replace(EvaluatorConfig(), **overrides)


@dataclass(frozen=True)
class TrendState:
    direction: Direction
    bullish_layers: int = 0
    bearish_layers: int = 0
    reason: Optional[str] = None
    ma_values: Tuple[float, ...] = ()

    @property
    def evidence_layers(self) -> int:
        if self.direction == Direction.BULL:
            return self.bullish_layers
        if self.direction == Direction.BEAR:
            return self.bearish_layers
        return max(self.bullish_layers, self.bearish_layers)


@dataclass(frozen=True)
class Zone:
    """Price band around a displacement candle. Invariant: min < max."""
    min: float
    max: float
    midpoint: float
    origin_index: int
    strength: float
    polarity: Direction
    atr: float
    breakout_entry: Optional[float] = None
    note: Optional[str] = None

    @property
    def width(self) -> float:
        return self.max - self.min

    def contains(self, price: float) -> bool:
        return self.min <= price <= self.max


@dataclass(frozen=True)
class RetestResult:
    confirmed: bool
    index: int
    candle: Candle


@dataclass(frozen=True)
class RegimeConditions:
    body_vs_volatility: bool = False
    weak_net_movement: bool = False
    range_overlap: bool = False
    low_volume: bool = False

    def count(self) -> int:
        return sum((self.body_vs_volatility, self.weak_net_movement,
                    self.range_overlap, self.low_volume))


@dataclass(frozen=True)
class RegimeState:
    chop: bool
    score: int
    conditions: RegimeConditions = field(default_factory=RegimeConditions)
    atr_avg: float = 0.0
    range_width: float = 0.0
    deviation: Optional[float] = None
    overlap_count: int = 0
    highest: Optional[float] = None
    lowest: Optional[float] = None
    reason: Optional[str] = None


@dataclass(frozen=True)
class RiskParameters:
    entry: float
    stop_loss: float
    take_profits: Tuple[float, float, float]
    risk_distance: float

    @property
    def tp1(self) -> float:
        return self.take_profits[0]

    @property
    def tp2(self) -> float:
        return self.take_profits[1]

    @property
    def tp3(self) -> float:
        return self.take_profits[2]


@dataclass(frozen=True)
class Signal:
    """Outcome of one evaluation: a TRADE payload or a NO_TRADE reason."""
    symbol: str
    decision: Decision
    reason_code: ReasonCode
    score: float = 0.0
    direction: Optional[Direction] = None
    zone: Optional[Zone] = None
    risk: Optional[RiskParameters] = None
    trend: Optional[TrendState] = None
    regime: Optional[RegimeState] = None
    retest: Optional[RetestResult] = None
    compressed: bool = False
    as_of: Any = None

    @property
    def is_trade(self) -> bool:
        return self.decision == Decision.TRADE

    @property
    def tier(self) -> str:
        if self.score >= 80:
            return "STRONG"
        if self.score >= 65:
            return "MEDIUM"
        return "WEAK"

    def to_dict(self) -> Dict[str, Any]:
        """Flat, JSON-friendly view of the signal."""
        d: Dict[str, Any] = {
            "symbol": self.symbol,
            "decision": self.decision.value,
            "reason_code": self.reason_code.value,
            "score": round(self.score, 2),
            "tier": self.tier,
            "direction": self.direction.value if self.direction else None,
            "as_of": str(self.as_of) if self.as_of is not None else None,
            "retest": self.retest is not None,
            "compressed": self.compressed,
        }
        if self.zone:
            d["zone"] = {
                "min": self.zone.min,
                "max": self.zone.max,
                "midpoint": self.zone.midpoint,
                "origin_index": self.zone.origin_index,
                "strength": self.zone.strength,
                "note": self.zone.note,
            }
        if self.risk:
            d["risk"] = {
                "entry": self.risk.entry,
                "stop_loss": self.risk.stop_loss,
                "tp1": self.risk.tp1,
                "tp2": self.risk.tp2,
                "tp3": self.risk.tp3,
                "risk_distance": self.risk.risk_distance,
            }
        if self.regime:
            d["regime"] = {
                "chop": self.regime.chop,
                "score": self.regime.score,
                "body_vs_volatility": self.regime.conditions.body_vs_volatility,
                "weak_net_movement": self.regime.conditions.weak_net_movement,
                "range_overlap": self.regime.conditions.range_overlap,
                "low_volume": self.regime.conditions.low_volume,
            }
        return d


# ========= Trend =========

def _strictly_monotonic(values: Sequence[float], rising: bool) -> bool:
    if len(values) < 2:
        return False
    if rising:
        return all(b > a for a, b in zip(values, values[1:]))
    return all(b < a for a, b in zip(values, values[1:]))


def classify_trend(
    closes: Sequence[float],
    ma_stack: Sequence[int] = (20, 50, 100, 200),
    structure_bars: int = 6,
) -> TrendState:
    """
    Classify the higher-timeframe trend from three independent layers.

    Layers (each counted per polarity):
    1. Stacked: last close above (below) every EMA in the stack
    2. Structure: the last `structure_bars` closes strictly rising (falling)
    3. Momentum: slope of the fastest EMA positive (negative)

    Two agreeing layers decide the direction, otherwise INVALID.

    Raises:
        InsufficientDataError: fewer closes than the slowest EMA period
    """
    needed = max(ma_stack)
    if len(closes) < needed:
        raise InsufficientDataError(f"trend needs {needed} closes, got {len(closes)}")

    emas = {period: ema_series(closes, period) for period in ma_stack}
    last_close = closes[-1]
    ma_values = tuple(emas[p][-1] for p in ma_stack)

    stacked_bull = all(last_close > v for v in ma_values)
    stacked_bear = all(last_close < v for v in ma_values)

    recent = closes[-structure_bars:]
    structure_bull = _strictly_monotonic(recent, rising=True)
    structure_bear = _strictly_monotonic(recent, rising=False)

    fast = emas[min(ma_stack)]
    slope = fast[-1] - fast[-2] if len(fast) >= 2 else 0.0
    momentum_bull = slope > 0
    momentum_bear = slope < 0

    bullish_layers = sum((stacked_bull, structure_bull, momentum_bull))
    bearish_layers = sum((stacked_bear, structure_bear, momentum_bear))

    if bullish_layers >= 2:
        return TrendState(Direction.BULL, bullish_layers, bearish_layers, None, ma_values)
    if bearish_layers >= 2:
        return TrendState(Direction.BEAR, bullish_layers, bearish_layers, None, ma_values)
    return TrendState(Direction.INVALID, bullish_layers, bearish_layers, "layers not aligned", ma_values)


# ========= Zone =========

def detect_zone(
    series: CandleSeries,
    polarity: Direction,
    config: Optional[EvaluatorConfig] = None,
) -> Optional[Zone]:
    """
    Find the most recent displacement (origin) candle and build a zone around it.

    Scans backward from the second-to-last candle; the newest candle is
    never used as an origin. A candle qualifies when its body exceeds
    impulse_body_atr * ATR, its volume is at least volume_multiplier times
    the trailing average over atr_period candles, and it closes in the
    requested direction (vs its open and vs the prior close).

    Padding is asymmetric: zone_pad_deep on the side a retest digs into
    (below a BULL origin, above a BEAR origin), zone_pad_shallow on the other.

    Returns None when nothing qualifies or ATR is unavailable.
    """
    if config is None:
        config = EvaluatorConfig()
    if polarity not in (Direction.BULL, Direction.BEAR):
        return None

    period = config.atr_period
    if len(series) < period + 2:
        return None

    opens = series.opens
    highs = series.highs
    lows = series.lows
    closes = series.closes
    volumes = series.volumes

    atr_values = atr_series(highs, lows, closes, period)
    if not atr_values:
        return None
    last_atr = atr_values[-1]
    if last_atr <= 0:
        return None

    start = len(series) - 2
    stop = max(1, period, len(series) - 1 - config.zone_lookback)

    for i in range(start, stop - 1, -1):
        body = abs(closes[i] - opens[i])
        window = volumes[i - period:i]
        vol_avg = sum(window) / len(window)
        if vol_avg <= 0:
            continue
        if volumes[i] < vol_avg * config.volume_multiplier:
            continue
        if body <= config.impulse_body_atr * last_atr:
            continue

        bullish = closes[i] > opens[i] and closes[i] > closes[i - 1]
        bearish = closes[i] < opens[i] and closes[i] < closes[i - 1]
        if polarity == Direction.BULL and not bullish:
            continue
        if polarity == Direction.BEAR and not bearish:
            continue

        strength = body / last_atr
        if strength < config.min_zone_strength:
            continue

        if polarity == Direction.BULL:
            zone_min = lows[i] - config.zone_pad_deep * last_atr
            zone_max = highs[i] + config.zone_pad_shallow * last_atr
        else:
            zone_min = lows[i] - config.zone_pad_shallow * last_atr
            zone_max = highs[i] + config.zone_pad_deep * last_atr

        if zone_max <= zone_min:
            continue

        breakout_entry = None
        if config.breakout_entry_atr is not None:
            if polarity == Direction.BULL:
                breakout_entry = opens[i] + config.breakout_entry_atr * last_atr
            else:
                breakout_entry = opens[i] - config.breakout_entry_atr * last_atr

        later_closes = closes[i + 1:]
        if polarity == Direction.BULL:
            invalidated = any(c < zone_min for c in later_closes)
        else:
            invalidated = any(c > zone_max for c in later_closes)

        return Zone(
            min=zone_min,
            max=zone_max,
            midpoint=(zone_min + zone_max) / 2,
            origin_index=i,
            strength=strength,
            polarity=polarity,
            atr=last_atr,
            breakout_entry=breakout_entry,
            note="origin may be invalidated by later close" if invalidated else None,
        )

    return None


# ========= Retest =========

def validate_retest(
    series: CandleSeries,
    zone: Zone,
    polarity: Direction,
    lookback: int = 10,
    wick_ratio: float = 0.40,
) -> Optional[RetestResult]:
    """
    Look for a rejection candle inside the zone among the last `lookback` candles.

    BULL needs a lower wick above wick_ratio of the range and close > open;
    BEAR needs an upper wick above wick_ratio and close < open.
    Only candles after the zone origin count. Most recent match wins.
    """
    if zone is None or polarity not in (Direction.BULL, Direction.BEAR):
        return None

    n = len(series)
    earliest = max(0, n - lookback, zone.origin_index + 1)

    for i in range(n - 1, earliest - 1, -1):
        candle = series[i]
        if candle.high < zone.min or candle.low > zone.max:
            continue

        candle_range = candle.range
        if candle_range <= 0:
            continue

        if polarity == Direction.BULL:
            rejected = candle.lower_wick / candle_range > wick_ratio and candle.close > candle.open
        else:
            rejected = candle.upper_wick / candle_range > wick_ratio and candle.close < candle.open

        if rejected:
            return RetestResult(confirmed=True, index=i, candle=candle)

    return None


# ========= Regime =========

def detect_regime(series: CandleSeries, config: Optional[EvaluatorConfig] = None) -> RegimeState:
    """
    Majority-vote chop detector over the last chop_window candles.

    Conditions:
    - body_vs_volatility: average body < chop_body_atr * average ATR
    - weak_net_movement: |last close - first open| < chop_net_move_atr * ATR * N
    - range_overlap: pairs overlapping by more than chop_overlap_atr * ATR >= chop_overlap_min
    - low_volume: average volume < chop_low_volume * longer volume baseline

    chop is True iff at least two conditions hold.
    """
    if config is None:
        config = EvaluatorConfig()

    n = config.chop_window
    if len(series) < max(config.chop_min_candles, n + 1):
        return RegimeState(chop=False, score=0, reason="insufficient candles")

    atr_values = atr_series(series.highs, series.lows, series.closes, config.atr_period)
    if len(atr_values) < n:
        return RegimeState(chop=False, score=0, reason="insufficient ATR")

    atr_avg = sum(atr_values[-n:]) / n
    if atr_avg <= 0:
        return RegimeState(chop=False, score=0, atr_avg=atr_avg, reason="zero ATR")

    window = series.candles[-n:]

    avg_body = sum(c.body for c in window) / n
    body_vs_volatility = avg_body < config.chop_body_atr * atr_avg

    net_move = abs(window[-1].close - window[0].open)
    weak_net_movement = net_move < config.chop_net_move_atr * atr_avg * n

    overlap_count = 0
    for c1, c2 in zip(window, window[1:]):
        overlap = min(c1.high, c2.high) - max(c1.low, c2.low)
        if overlap > config.chop_overlap_atr * atr_avg:
            overlap_count += 1
    range_overlap = overlap_count >= config.chop_overlap_min

    volumes = series.volumes
    baseline_len = min(max(config.chop_volume_baseline, n), len(volumes))
    vol_baseline = sum(volumes[-baseline_len:]) / baseline_len
    avg_vol = sum(c.volume for c in window) / n
    low_volume = avg_vol < vol_baseline * config.chop_low_volume

    conditions = RegimeConditions(
        body_vs_volatility=body_vs_volatility,
        weak_net_movement=weak_net_movement,
        range_overlap=range_overlap,
        low_volume=low_volume,
    )
    score = conditions.count()

    highest = max(c.high for c in window)
    lowest = min(c.low for c in window)
    range_width = highest - lowest

    return RegimeState(
        chop=score >= 2,
        score=score,
        conditions=conditions,
        atr_avg=atr_avg,
        range_width=range_width,
        deviation=range_width / atr_avg,
        overlap_count=overlap_count,
        highest=highest,
        lowest=lowest,
    )


# ========= Risk =========

def compute_risk(
    zone: Optional[Zone],
    direction: Direction,
    stop_buffer_atr: float = 0.10,
    entry: Optional[float] = None,
    atr: Optional[float] = None,
) -> Optional[RiskParameters]:
    """
    Stop just outside the zone, take profits at 1R, 2R and 3R.

    Entry is the explicit (breakout) entry if given, else the zone midpoint.
    Returns None when the zone or ATR is missing/zero or the resulting
    risk distance is not positive.
    """
    if zone is None or direction not in (Direction.BULL, Direction.BEAR):
        return None

    atr_val = zone.atr if atr is None else atr
    if atr_val is None or atr_val <= 0:
        return None

    entry_price = zone.midpoint if entry is None else entry

    if direction == Direction.BULL:
        stop_loss = zone.min - stop_buffer_atr * atr_val
        risk = entry_price - stop_loss
    else:
        stop_loss = zone.max + stop_buffer_atr * atr_val
        risk = stop_loss - entry_price

    if risk <= 0:
        return None

    sign = 1 if direction == Direction.BULL else -1
    take_profits = tuple(entry_price + sign * r * risk for r in (1, 2, 3))

    return RiskParameters(
        entry=entry_price,
        stop_loss=stop_loss,
        take_profits=take_profits,
        risk_distance=risk,
    )


# ========= Score =========

def score_signal(
    trend: TrendState,
    zone: Zone,
    retest: Optional[RetestResult],
    regime: RegimeState,
    compressed: bool,
    config: Optional[EvaluatorConfig] = None,
) -> float:
    """
    Weighted evidence score clamped to [0, 100].

    Not rounded: the min_score gate compares the exact value, rounding is
    left to display.
    """
    if config is None:
        config = EvaluatorConfig()

    score = 0.0
    if trend.direction == zone.polarity:
        score += config.weight_alignment
    if retest is not None and retest.confirmed:
        score += config.weight_retest
    if compressed:
        score += config.weight_compression
    score += config.weight_strength * min(zone.strength / config.strength_full_scale, 1.0)
    if regime.chop and config.chop_mode == "penalty":
        score -= config.chop_penalty

    return min(max(score, 0.0), 100.0)


# ========= Evaluator =========

SeriesLike = Union[CandleSeries, Sequence[Candle], Sequence[Dict[str, Any]]]


class SignalEvaluator:
    """
    Runs the fixed-order decision pipeline for one asset configuration.

    The evaluator holds nothing but its frozen config, so a single instance
    can serve any number of concurrent evaluate() calls.
    """

    def __init__(self, config: Optional[EvaluatorConfig] = None, symbol: str = ""):
        if config is None:
            config = get_default_config(symbol)
        if not isinstance(config, EvaluatorConfig):
            raise ConfigError(f"config must be an EvaluatorConfig, got {type(config).__name__}")
        self.config = config
        self.symbol = symbol

    def evaluate(
        self,
        htf: SeriesLike,
        execution: SeriesLike,
        regime: Optional[SeriesLike] = None,
        symbol: Optional[str] = None,
    ) -> Signal:
        """
        Evaluate one snapshot.

        Args:
            htf: higher-timeframe closed candles (trend, default regime source)
            execution: execution-timeframe closed candles (zone, retest, risk)
            regime: optional explicit series for the regime filter
            symbol: label carried on the Signal

        Raises:
            DataError: empty or non-monotonic input
        """
        cfg = self.config
        symbol = self.symbol if symbol is None else symbol

        htf_series = as_series(htf, "htf").validate()
        exec_series = as_series(execution, "execution").validate()
        if regime is not None:
            regime_series = as_series(regime, "regime").validate()
        elif cfg.regime_source == "execution":
            regime_series = exec_series
        else:
            regime_series = htf_series

        as_of = exec_series.last.open_time

        def no_trade(reason: ReasonCode, **payload) -> Signal:
            return Signal(symbol=symbol, decision=Decision.NO_TRADE, reason_code=reason,
                          as_of=as_of, **payload)

        if len(htf_series) < cfg.min_htf_candles or len(exec_series) < cfg.min_execution_candles:
            trend = TrendState(Direction.INVALID, reason="insufficient data")
            return no_trade(ReasonCode.INSUFFICIENT_DATA, trend=trend)

        # 1. trend
        trend = classify_trend(htf_series.closes, cfg.ma_stack, cfg.trend_structure_bars)
        if trend.direction == Direction.INVALID:
            return no_trade(ReasonCode.TREND_INVALID, trend=trend)
        direction = trend.direction

        # 2. zone
        zone = detect_zone(exec_series, direction, cfg)
        if zone is None:
            return no_trade(ReasonCode.NO_ZONE, direction=direction, trend=trend)

        # 3. regime
        regime_state = detect_regime(regime_series, cfg)
        if regime_state.chop and cfg.chop_mode == "gate":
            return no_trade(ReasonCode.REGIME_CHOP, direction=direction, zone=zone,
                            trend=trend, regime=regime_state)

        # 4. retest (evidence only)
        retest = validate_retest(exec_series, zone, direction,
                                 cfg.retest_lookback, cfg.retest_wick_ratio)

        # 5. risk
        risk = compute_risk(zone, direction, cfg.stop_buffer_atr, entry=zone.breakout_entry)
        if risk is None:
            return no_trade(ReasonCode.RISK_UNAVAILABLE, direction=direction, zone=zone,
                            trend=trend, regime=regime_state, retest=retest)

        # 6. score
        compressed, _, _ = atr_compression(
            exec_series.highs, exec_series.lows, exec_series.closes,
            cfg.compression_atr_short, cfg.compression_atr_long,
        )
        score = score_signal(trend, zone, retest, regime_state, compressed, cfg)

        payload = dict(direction=direction, zone=zone, risk=risk, trend=trend,
                       regime=regime_state, retest=retest, compressed=compressed)

        # 7. gate
        if score < cfg.min_score:
            return no_trade(ReasonCode.LOW_SCORE, score=score, **payload)

        return Signal(symbol=symbol, decision=Decision.TRADE, reason_code=ReasonCode.OK,
                      score=score, as_of=as_of, **payload)


def evaluate(
    htf: SeriesLike,
    execution: SeriesLike,
    config: Optional[EvaluatorConfig] = None,
    symbol: str = "",
    regime: Optional[SeriesLike] = None,
) -> Signal:
    """One-shot helper around SignalEvaluator."""
    return SignalEvaluator(config, symbol).evaluate(htf, execution, regime=regime)
