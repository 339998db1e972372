from __future__ import annotations

import pytest

from strategy_wizard.adapters.yaml.fallback_loader_yaml import builtin_fallback_definitions


@pytest.fixture
def defs():
    """同梱の固定定義（RSI/EMA/BBANDS/MACD/ADX/DI/VWAP）"""
    return builtin_fallback_definitions()
