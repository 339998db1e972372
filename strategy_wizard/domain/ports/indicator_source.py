from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from strategy_wizard.domain.dto.indicator_def import IndicatorDefinition, IndicatorSummary


class IndicatorSourcePort(Protocol):
    """インジケータ一覧と定義を取得する抽象I/F（遅い・不安定な前提）"""

    __responsibility__ = "定義カタログの供給元（HTTP/固定データ等を差替え可能）"

    async def list_indicators(self) -> Sequence[IndicatorSummary]: ...

    async def get_definition(self, indicator_id: str) -> IndicatorDefinition: ...

    async def check_health(self) -> bool:
        """軽量な生存確認。失敗は例外ではなく False で返す"""
        ...
