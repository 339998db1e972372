from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import ClassVar

from strategy_wizard.domain.dto.indicator_def import IndicatorDefinition, IndicatorSummary
from strategy_wizard.domain.errors import ApiStatusError
from strategy_wizard.domain.ports.indicator_source import IndicatorSourcePort


class StaticIndicatorSource(IndicatorSourcePort):
    """手元の定義マップをそのまま返すソース（--offline 実行やテスト用）"""

    __responsibility__: ClassVar[str] = "ネットワーク無しで定義カタログを供給"

    def __init__(self, definitions: Mapping[str, IndicatorDefinition]) -> None:
        self._defs = dict(definitions)

    async def list_indicators(self) -> Sequence[IndicatorSummary]:
        return tuple(
            IndicatorSummary(id=d.id, label=d.label, version=d.version) for d in self._defs.values()
        )

    async def get_definition(self, indicator_id: str) -> IndicatorDefinition:
        try:
            return self._defs[indicator_id]
        except KeyError as e:
            raise ApiStatusError(f"Unknown indicator: {indicator_id}", 404) from e

    async def check_health(self) -> bool:
        return True
