# config.py
"""
Runtime configuration for the zone signal engine.

Everything here comes from environment variables with sane defaults,
so the scanner runs with no setup against the public Binance REST API.
"""

import os


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return float(raw)


# ===== Market data =====
DATA_API_URL = os.environ.get("DATA_API_URL", "https://api.binance.com")
DATA_API_KEY = os.environ.get("DATA_API_KEY", "")

FETCH_MAX_RETRIES = _env_int("FETCH_MAX_RETRIES", 4)
FETCH_BASE_DELAY = _env_float("FETCH_BASE_DELAY", 1.5)  # seconds, multiplied by attempt
FETCH_TIMEOUT = _env_float("FETCH_TIMEOUT", 30.0)

# Accept the bot's short timeframe names as well as exchange intervals
TIMEFRAME_MAP = {
    "M": "1M",
    "W": "1w",
    "D": "1d",
    "H4": "4h",
    "H1": "1h",
    "M15": "15m",
}

# ===== Evaluation =====
HTF_TIMEFRAME = os.environ.get("HTF_TIMEFRAME", "1d")
EXECUTION_TIMEFRAME = os.environ.get("EXECUTION_TIMEFRAME", "4h")
HTF_CANDLE_COUNT = _env_int("HTF_CANDLE_COUNT", 400)
EXECUTION_CANDLE_COUNT = _env_int("EXECUTION_CANDLE_COUNT", 200)

# "gate": chop blocks the trade, "penalty": chop only lowers the score
CHOP_MODE = os.environ.get("CHOP_MODE", "gate").strip().lower()

# ===== Universe =====
CRYPTO_ASSETS = [
    "BTCUSDT",
    "ETHUSDT",
    "SOLUSDT",
]

METALS = [
    "PAXGUSDT",
]
