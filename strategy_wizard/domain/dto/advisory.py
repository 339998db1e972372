from __future__ import annotations

from typing import Any

from pydantic import Field

from strategy_wizard.domain.dto.indicator_def import Operator, PriceSource, Subject, Target, WireModel


class ConditionPayload(WireModel):
    """POST /v1/conditions/validate, /v1/conditions/sentence の共通ボディ"""

    indicator_id: str
    timeframe: str
    settings: dict[str, Any] = Field(default_factory=dict)
    subject: Subject
    target: Target
    operator: Operator
    value: float | None = None
    price_source: PriceSource | None = None

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ValidationResult(WireModel):
    ok: bool
    errors: tuple[str, ...] = ()


class SentenceResult(WireModel):
    text: str
