from __future__ import annotations

# 永続化ドラフトの固定キー（エントリールールは entryV2 配下）
STORAGE_KEY = "strategyDraft"
ENTRY_RULES_KEY = "entryV2"

# ルールセットの上限
MAX_SUPPORTING_CONDITIONS = 10  # setA + setB 合計
SEQUENCE_MIN = 1
SEQUENCE_MAX = 10

DEFAULT_PRICE_SOURCE = "close"

OPERATOR_LABELS = {
    ">": "is greater than",
    "<": "is less than",
    ">=": "is greater than or equal to",
    "<=": "is less than or equal to",
    "=": "equals",
    "!=": "does not equal",
    "crossesAbove": "crosses above",
    "crossesBelow": "crosses below",
}

TIMEFRAMES = {
    "1m": "1 minute",
    "3m": "3 minutes",
    "5m": "5 minutes",
    "15m": "15 minutes",
    "30m": "30 minutes",
    "1h": "1 hour",
    "2h": "2 hours",
    "4h": "4 hours",
    "1d": "1 day",
    "1w": "1 week",
}

# オフライン時の一覧（定義本体は fallback_definitions.yaml）
FALLBACK_INDICATORS = [
    {"id": "RSI", "label": "RSI", "version": "1.0.0"},
    {"id": "EMA", "label": "EMA", "version": "1.0.0"},
    {"id": "BBANDS", "label": "Bollinger Bands", "version": "1.0.0"},
    {"id": "MACD", "label": "MACD", "version": "1.0.0"},
    {"id": "ADX", "label": "ADX", "version": "1.0.0"},
    {"id": "DI", "label": "Directional Index", "version": "1.0.0"},
    {"id": "VWAP", "label": "VWAP", "version": "1.0.0"},
]
