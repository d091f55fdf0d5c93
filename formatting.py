"""
Chat formatting for the zone signal engine.

Renders a Signal as Markdown for a chat channel:
- direction, tier and score
- zone bounds, midpoint and strength
- entry / stop / take profits
- chop diagnostics and the NO_TRADE reason
"""

from __future__ import annotations

from typing import List, Optional

from strategy_core import Direction, ReasonCode, Signal


REASON_TEXT = {
    ReasonCode.OK: "All filters passed",
    ReasonCode.INSUFFICIENT_DATA: "Not enough candle history",
    ReasonCode.TREND_INVALID: "HTF trend not aligned",
    ReasonCode.NO_ZONE: "No displacement zone",
    ReasonCode.REGIME_CHOP: "Market is chopping",
    ReasonCode.RISK_UNAVAILABLE: "Stop / targets unavailable",
    ReasonCode.LOW_SCORE: "Score below threshold",
}


def fmt_price(value: Optional[float]) -> str:
    """Big prices get 2 decimals, small ones up to 6."""
    if value is None:
        return "-"
    if abs(value) >= 1000:
        return f"{value:,.2f}"
    text = f"{value:.6f}".rstrip("0")
    if text.endswith("."):
        text += "00"
    elif len(text.split(".")[1]) < 2:
        text += "0"
    return text


def _direction_emoji(direction: Optional[Direction]) -> str:
    if direction == Direction.BULL:
        return "🟢"
    if direction == Direction.BEAR:
        return "🔴"
    return "⚪"


def _check(flag: bool) -> str:
    return "✅" if flag else "⚪"


def format_signal(signal: Signal) -> str:
    """Full Markdown message for one evaluation result."""
    emoji = _direction_emoji(signal.direction)
    direction = signal.direction.value if signal.direction else "NONE"

    lines: List[str] = []
    if signal.is_trade:
        lines.append(f"{emoji} **{signal.symbol}** | {direction} | 🏆 {signal.tier} ({signal.score:.0f}/100)")
    else:
        lines.append(f"{emoji} **{signal.symbol}** | NO TRADE")
        lines.append(f"Reason: {REASON_TEXT.get(signal.reason_code, signal.reason_code.value)} (`{signal.reason_code.value}`)")
    if signal.as_of is not None:
        lines.append(f"As of: {signal.as_of}")

    trend = signal.trend
    if trend is not None:
        layers = trend.evidence_layers
        lines.append(f"Trend: {trend.direction.value} ({layers}/3 layers)")

    zone = signal.zone
    if zone is not None:
        lines.append("")
        lines.append("**Zone:**")
        lines.append(f"{fmt_price(zone.min)} - {fmt_price(zone.max)} (mid {fmt_price(zone.midpoint)})")
        lines.append(f"Strength: {zone.strength:.2f}x ATR")
        if zone.note:
            lines.append(f"⚠️ {zone.note}")

    if signal.zone is not None or signal.is_trade:
        lines.append(f"{_check(signal.retest is not None)} Retest")
        lines.append(f"{_check(signal.compressed)} ATR compression")

    risk = signal.risk
    if risk is not None and signal.is_trade:
        lines.append("")
        lines.append("**Trade Levels:**")
        lines.append(f"Entry: {fmt_price(risk.entry)}")
        lines.append(f"SL: {fmt_price(risk.stop_loss)}")
        lines.append(f"TP1: {fmt_price(risk.tp1)}")
        lines.append(f"TP2: {fmt_price(risk.tp2)}")
        lines.append(f"TP3: {fmt_price(risk.tp3)}")
        lines.append(f"Risk: {fmt_price(risk.risk_distance)}")

    regime = signal.regime
    if regime is not None:
        cond = regime.conditions
        lines.append("")
        lines.append(f"**Chop:** {'YES' if regime.chop else 'NO'} (score {regime.score}/4)")
        if regime.reason:
            lines.append(f"_{regime.reason}_")
        else:
            lines.append(
                f"Range: {fmt_price(regime.range_width)} | Dev: {regime.deviation:.2f}x ATR"
            )
            lines.append(
                f"Body:{_check(cond.body_vs_volatility)} "
                f"Net:{_check(cond.weak_net_movement)} "
                f"Overlap:{_check(cond.range_overlap)} "
                f"Vol:{_check(cond.low_volume)}"
            )

    return "\n".join(lines)


def format_scan_summary(signals: List[Signal]) -> str:
    """
    One line per symbol, trades first by score.
    Shows: Symbol | Direction | Score | Tier or reason
    """
    if not signals:
        return "No symbols scanned."

    ordered = sorted(signals, key=lambda s: (not s.is_trade, -s.score, s.symbol))

    lines: List[str] = []
    for s in ordered:
        emoji = _direction_emoji(s.direction)
        direction = s.direction.value if s.direction else "-"
        if s.is_trade:
            lines.append(f"{emoji} **{s.symbol}** | {direction} | {s.score:.0f}/100 | {s.tier}")
        else:
            lines.append(f"{emoji} **{s.symbol}** | {direction} | NO TRADE | {s.reason_code.value}")
    return "\n".join(lines)


def split_message(text: str, limit: int = 1900) -> List[str]:
    """
    Split a long message into chunks under `limit` characters, breaking on
    newlines where possible.
    """
    if limit <= 0:
        raise ValueError("limit must be positive")
    if len(text) <= limit:
        return [text]

    chunks: List[str] = []
    # None means no chunk is open; "" is an open chunk holding a blank line
    current: Optional[str] = None
    for line in text.split("\n"):
        while len(line) > limit:
            if current:
                chunks.append(current)
            current = None
            chunks.append(line[:limit])
            line = line[limit:]

        if current is None:
            current = line
        elif len(current) + 1 + len(line) > limit:
            if current:
                chunks.append(current)
            current = line
        else:
            current += "\n" + line

    if current:
        chunks.append(current)
    return chunks
