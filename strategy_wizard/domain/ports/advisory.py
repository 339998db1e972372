from __future__ import annotations

from typing import Protocol

from strategy_wizard.domain.dto.advisory import ConditionPayload, SentenceResult, ValidationResult


class AdvisoryPort(Protocol):
    """リモートの構造検証・文章生成。どちらも best-effort の補助。"""

    __responsibility__ = "条件ペイロードのリモート検証／自然文生成の抽象境界"

    async def validate_condition(self, payload: ConditionPayload) -> ValidationResult: ...

    async def get_sentence(self, payload: ConditionPayload) -> SentenceResult: ...
