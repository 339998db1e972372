"""
エントリールール（UIが編集する可変エンティティ）のDTO。

IndicatorCondition は Subject/Target/Operator の3つ組が現在の定義の Pairing に
存在するときのみ有効。インジケータ切替直後などは一時的に崩れうるので、
利用前に condition_migration.migrate で修復する。
"""

from __future__ import annotations

from typing import Annotated, Any, ClassVar, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from strategy_wizard.domain.dto.indicator_def import Operator, PriceSource, Subject, Target

SettingValue = float | int | str | bool


class DraftModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class IndicatorRef(DraftModel):
    name: str = ""
    component: str | None = None
    settings: dict[str, SettingValue] = Field(default_factory=dict)


# ---- 旧形式の比較相手（right） ----
class ValueCompare(DraftModel):
    type: Literal["value"] = "value"
    value: float


class ComponentRef(DraftModel):
    name: str | None = None
    component: str | None = None
    settings: dict[str, SettingValue] = Field(default_factory=dict)


class IndicatorCompare(DraftModel):
    """同一インジケータ内の別コンポーネントとの比較"""

    type: Literal["indicator"] = "indicator"
    indicator: ComponentRef


CompareWith = Annotated[ValueCompare | IndicatorCompare, Field(discriminator="type")]


class TimingBound(DraftModel):
    amount: float
    unit: Literal["bars", "minutes"] = "bars"


class IndicatorCondition(DraftModel):
    __responsibility__: ClassVar[str] = "比較文1つ＋任意のタイミング修飾子"

    id: str
    kind: Literal["indicator"] = "indicator"
    timeframe: str | None = None
    left: IndicatorRef = Field(default_factory=IndicatorRef)
    op: Operator | None = None
    right: CompareWith | None = None

    subject: Subject | None = None
    target: Target | None = None
    price_source: PriceSource | None = None

    sequence: int | None = None
    must_occur_within: TimingBound | None = None
    stays_valid_for: TimingBound | None = None
    note: str | None = None


class WebhookMatch(DraftModel):
    key: str = ""
    equals: str | int | float | bool


class WebhookTrigger(DraftModel):
    id: str
    kind: Literal["webhook"] = "webhook"
    match: WebhookMatch
    sequence: int | None = None
    must_occur_within: TimingBound | None = None
    stays_valid_for: TimingBound | None = None


TriggerCondition = Annotated[IndicatorCondition | WebhookTrigger, Field(discriminator="kind")]


class ConditionGroup(DraftModel):
    id: str
    logic: Literal["AND", "OR"] = "AND"
    conditions: list[IndicatorCondition] = Field(default_factory=list)


class SupportingSets(DraftModel):
    # 全体の論理: (setA ? setA : true) OR (setB ? setB : false)
    set_a: ConditionGroup | None = None
    set_b: ConditionGroup | None = None

    def groups(self) -> list[tuple[str, ConditionGroup]]:
        out: list[tuple[str, ConditionGroup]] = []
        if self.set_a is not None:
            out.append(("Set A", self.set_a))
        if self.set_b is not None:
            out.append(("Set B", self.set_b))
        return out


class TimeWindow(DraftModel):
    enabled: bool = False
    start: str = ""  # "HH:MM"
    end: str = ""  # "HH:MM"
    timezone: str | None = None


class EntryRuleSet(DraftModel):
    """メイントリガー最大2（スロット2は任意）＋補助条件グループA/B（合計10まで）"""

    __responsibility__: ClassVar[str] = "戦略のエントリー条件一式"

    main_triggers: tuple[TriggerCondition | None, TriggerCondition | None] = (None, None)
    supporting: SupportingSets = Field(default_factory=SupportingSets)
    trigger_timing: Literal["onBarClose", "nextBarOpen"] = "onBarClose"
    cooldown_bars: int | None = None
    time_window: TimeWindow | None = None
    reset_if_stale: bool = False
    notes: str | None = None

    def active_triggers(self) -> list[tuple[int, IndicatorCondition | WebhookTrigger]]:
        """(スロット番号1始まり, トリガー) の一覧。空スロットは除外"""
        return [(i + 1, t) for i, t in enumerate(self.main_triggers) if t is not None]

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
