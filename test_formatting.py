"""
Formatting Test Suite

Tests:
1. Price precision
2. TRADE and NO_TRADE messages
3. Scan summary ordering
4. Message splitting
"""

import sys

from formatting import fmt_price, format_scan_summary, format_signal, split_message
from strategy_core import EvaluatorConfig, evaluate
from test_strategy_core import choppy_htf, flat_htf, impulse_execution, trending_htf


def test_fmt_price():
    """Test 1: Large prices get 2 decimals, small ones up to 6"""
    assert fmt_price(65432.1234) == "65,432.12"
    assert fmt_price(1000) == "1,000.00"
    assert fmt_price(101.457704) == "101.457704"
    assert fmt_price(1.5) == "1.50"
    assert fmt_price(2.0) == "2.00"
    assert fmt_price(0.00012345) == "0.000123"
    assert fmt_price(None) == "-"


def test_format_trade_signal():
    """Test 2: TRADE message carries levels and chop diagnostics"""
    print("\n" + "="*70)
    print("TEST 2: TRADE MESSAGE")
    print("="*70)

    signal = evaluate(trending_htf(), impulse_execution(), EvaluatorConfig(), symbol="BTCUSDT")
    text = format_signal(signal)
    print(text)

    assert "**BTCUSDT**" in text
    assert "BULL" in text
    assert "STRONG" in text
    for label in ("Entry:", "SL:", "TP1:", "TP2:", "TP3:"):
        assert label in text, f"Missing {label}"
    assert "score 1/4" in text, "Chop score should be shown out of 4"
    assert "✅ Retest" in text
    print("  PASS: trade message")


def test_format_no_trade_signal():
    """Test 3: NO_TRADE message names the reason"""
    chop = format_signal(evaluate(choppy_htf(), impulse_execution(), symbol="SOLUSDT"))
    assert "NO TRADE" in chop
    assert "REGIME_CHOP" in chop
    assert "Chop:** YES" in chop
    assert "TP1:" not in chop

    flat = format_signal(evaluate(flat_htf(), impulse_execution(), symbol="XAU"))
    assert "TREND_INVALID" in flat


def test_format_scan_summary():
    """Test 4: Trades first, highest score first"""
    trade = evaluate(trending_htf(), impulse_execution(), symbol="BTCUSDT")
    no_trade = evaluate(flat_htf(), impulse_execution(), symbol="AAA")
    summary = format_scan_summary([no_trade, trade])
    lines = summary.split("\n")
    assert len(lines) == 2
    assert "BTCUSDT" in lines[0] and "STRONG" in lines[0]
    assert "AAA" in lines[1] and "TREND_INVALID" in lines[1]

    assert format_scan_summary([]) == "No symbols scanned."


def test_split_message():
    """Test 5: Chunks stay under the limit and keep every line"""
    text = "\n".join(f"line {i:03d}" for i in range(100))
    chunks = split_message(text, limit=100)
    assert all(len(c) <= 100 for c in chunks)
    assert "\n".join(chunks) == text

    assert split_message("short", limit=100) == ["short"]

    long_line = "x" * 250
    chunks = split_message(long_line, limit=100)
    assert [len(c) for c in chunks] == [100, 100, 50]

    # paragraph break that lands at the start of a chunk
    paragraphs = "a" * 60 + "\n\n" + "b" * 40
    chunks = split_message(paragraphs, limit=60)
    assert chunks == ["a" * 60, "\n" + "b" * 40], f"Blank line lost: {chunks!r}"
    assert "\n".join(chunks) == paragraphs


def run_all_tests():
    tests = [
        test_fmt_price,
        test_format_trade_signal,
        test_format_no_trade_signal,
        test_format_scan_summary,
        test_split_message,
    ]
    failed = 0
    for test in tests:
        try:
            test()
        except AssertionError as e:
            failed += 1
            print(f"  FAIL: {test.__name__}: {e}")
    print("\n" + "-"*70)
    print("ALL TESTS PASSED!" if not failed else f"{failed} TEST(S) FAILED")
    return failed == 0


if __name__ == '__main__':
    sys.exit(0 if run_all_tests() else 1)
