"""
インジケータ定義（カタログ）のDTO。

- Subject（比較の左辺）と Target（右辺）は `kind` で区別される閉じた直和型
- Pairing は「Subject → (Target, [Operator])」の合法表。並び順がそのまま既定の優先順
- 定義は取得後イミュータブル（frozen）。ワイヤ上のキーは camelCase
"""

from __future__ import annotations

from typing import Annotated, Any, ClassVar, Literal

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field
from pydantic.alias_generators import to_camel

Operator = Literal[">", "<", ">=", "<=", "=", "!=", "crossesAbove", "crossesBelow"]
PriceSource = Literal["close", "open", "high", "low", "hl2", "hlc3", "ohlc4"]

# ゼロライン（旧 {"kind": "zero"}）はコンポーネント名の番兵で表す
ZERO_COMPONENT = "zero"


class WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


# ---- Subject ----
class PriceSubject(WireModel):
    kind: Literal["price"] = "price"
    source: PriceSource | None = None


class IndicatorSubject(WireModel):
    """現在のインジケータのコンポーネント（"line", "macd", "histogram" など）"""

    kind: Literal["indicator"] = "indicator"
    component: str


class DerivedSubject(WireModel):
    """合成系列（例: BBANDS の %B）"""

    kind: Literal["derived"] = "derived"
    id: str
    label: str


def _normalize_subject(v: Any) -> Any:
    if isinstance(v, dict) and v.get("kind") == "indicator-component":
        return {**v, "kind": "indicator"}
    return v


Subject = Annotated[
    PriceSubject | IndicatorSubject | DerivedSubject,
    BeforeValidator(_normalize_subject),
]


# ---- Target ----
class ComponentTarget(WireModel):
    kind: Literal["component"] = "component"
    component: str

    @property
    def is_zero(self) -> bool:
        return self.component == ZERO_COMPONENT


class ValueTarget(WireModel):
    kind: Literal["value"] = "value"
    min: float | None = None
    max: float | None = None
    step: float | None = None


def _normalize_target(v: Any) -> Any:
    # 旧形式のゼロターゲットを component:"zero" へ寄せる
    if isinstance(v, dict) and v.get("kind") == "zero":
        return {"kind": "component", "component": ZERO_COMPONENT}
    return v


Target = Annotated[ComponentTarget | ValueTarget, BeforeValidator(_normalize_target)]


# ---- Pairing / Definition ----
class TargetEntry(WireModel):
    target: Target
    operators: tuple[Operator, ...] = ()


class PairingUi(WireModel):
    default_price_source: PriceSource | None = None
    hint: str | None = None


class Pairing(WireModel):
    subject: Subject
    targets: tuple[TargetEntry, ...] = ()
    ui: PairingUi | None = None


class SettingSpec(WireModel):
    type: Literal["number", "select", "boolean"]
    default: Any = None
    min: float | None = None
    max: float | None = None
    options: tuple[str, ...] | None = None


class IndicatorDefinition(WireModel):
    """GET /v1/indicators/{id} の本体。セッション中はidをキーに無期限キャッシュされる。"""

    __responsibility__: ClassVar[str] = "インジケータごとの比較文法（Pairing）と設定スキーマの保持"

    id: str
    label: str
    version: str = "1.0.0"
    settings: dict[str, SettingSpec] = Field(default_factory=dict)
    components: tuple[str, ...] = ()
    pairings: tuple[Pairing, ...] = ()


class IndicatorSummary(WireModel):
    id: str
    label: str
    version: str = "1.0.0"


def default_settings(definition: IndicatorDefinition) -> dict[str, Any]:
    """設定スキーマの既定値だけを取り出す（インジケータ切替時の初期値）"""
    return {name: spec.default for name, spec in definition.settings.items()}
