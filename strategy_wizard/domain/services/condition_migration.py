"""
既定値の解決と、旧形式／不整合な条件の意味的マイグレーション。

- defaults_for: 先頭 Pairing・先頭 Target・先頭 Operator が正準の既定
- migrate: 現定義で合法ならそのまま返す。そうでなければ既定を起点に、
  旧 right（値 or 同インジケータ内コンポーネント）の比較意図を可能な範囲で保つ
- migrate は冪等: migrate(migrate(c, d), d) == migrate(c, d)
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from strategy_wizard.config.defaults import DEFAULT_PRICE_SOURCE
from strategy_wizard.domain.dto.entry_rules import (
    ComponentRef,
    EntryRuleSet,
    IndicatorCompare,
    IndicatorCondition,
    ValueCompare,
)
from strategy_wizard.domain.dto.indicator_def import (
    ComponentTarget,
    IndicatorDefinition,
    IndicatorSubject,
    Operator,
    PriceSource,
    PriceSubject,
    Subject,
    Target,
    TargetEntry,
    ValueTarget,
    default_settings,
)
from strategy_wizard.domain.services.pairing_resolver import (
    valid_operators,
    valid_targets,
)
from strategy_wizard.shared.logging import get_logger

__all__ = [
    "ConditionDefaults",
    "change_indicator",
    "default_value_for",
    "defaults_for",
    "migrate",
    "migrate_rule_set",
]

log = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class ConditionDefaults:
    subject: Subject
    target: Target
    operator: Operator
    price_source: PriceSource | None = None


def defaults_for(definition: IndicatorDefinition) -> ConditionDefaults:
    """定義の正準既定 (subject, target, operator[, price_source])。

    Operator を1つも持たない Pairing/Target は読み飛ばす（整形済みの定義では
    先頭の組がそのまま選ばれる）。合法な組が無ければ ValueError。
    """
    for pairing in definition.pairings:
        for entry in pairing.targets:
            if not entry.operators:
                continue
            price_source: PriceSource | None = None
            if isinstance(pairing.subject, PriceSubject):
                hint = pairing.ui.default_price_source if pairing.ui else None
                price_source = hint or DEFAULT_PRICE_SOURCE
            return ConditionDefaults(
                subject=pairing.subject,
                target=entry.target,
                operator=entry.operators[0],
                price_source=price_source,
            )
    raise ValueError(f"definition {definition.id} has no usable pairing")


def default_value_for(target: ValueTarget) -> float:
    """値ターゲットに新規で入れるリテラル（範囲の中央 → 下限 → 上限 → 0）"""
    if target.min is not None and target.max is not None:
        return (target.min + target.max) / 2
    if target.min is not None:
        return target.min
    if target.max is not None:
        return target.max
    return 0.0


def _in_range(value: float, target: ValueTarget) -> bool:
    if target.min is not None and value < target.min:
        return False
    if target.max is not None and value > target.max:
        return False
    return True


def _preserve_intent(
    condition: IndicatorCondition, entries: tuple[TargetEntry, ...]
) -> TargetEntry | None:
    """旧 right の比較意図に合う Target を既定 Subject の候補から探す"""
    right = condition.right
    entries = tuple(e for e in entries if e.operators)
    match right:
        case ValueCompare(value=value):
            for e in entries:
                # 範囲外のリテラルは保持しない（クランプせず既定へフォールバック）
                if isinstance(e.target, ValueTarget) and _in_range(value, e.target):
                    return e
        case IndicatorCompare(indicator=ComponentRef(component=component)) if component:
            for e in entries:
                if isinstance(e.target, ComponentTarget) and e.target.component == component:
                    return e
        case None | IndicatorCompare():
            pass
    return None


def _right_for(condition: IndicatorCondition, target: Target) -> ValueCompare | IndicatorCompare:
    match target:
        case ValueTarget():
            if isinstance(condition.right, ValueCompare) and _in_range(condition.right.value, target):
                return condition.right
            return ValueCompare(value=default_value_for(target))
        case ComponentTarget(component=component):
            settings = {}
            right = condition.right
            if isinstance(right, IndicatorCompare) and right.indicator.component == component:
                settings = right.indicator.settings
            return IndicatorCompare(indicator=ComponentRef(component=component, settings=settings))


def migrate(condition: IndicatorCondition, definition: IndicatorDefinition) -> IndicatorCondition:
    subject, target = condition.subject, condition.target

    # 既に合法な Subject/Target: Operator だけ必要なら補正
    if subject is not None and target is not None:
        ops = valid_operators(definition, subject, target)
        if ops:
            if condition.op in ops:
                return condition
            return condition.model_copy(update={"op": ops[0]})

    try:
        defaults = defaults_for(definition)
    except ValueError as e:
        log.warning("migration_skipped", condition_id=condition.id, error=str(e))
        return condition

    entries = valid_targets(definition, defaults.subject)
    preserved = _preserve_intent(condition, entries)
    new_target = preserved.target if preserved is not None else defaults.target

    ops = valid_operators(definition, defaults.subject, new_target)
    op = condition.op if condition.op in ops else ops[0]

    price_source: PriceSource | None = None
    if isinstance(defaults.subject, PriceSubject):
        price_source = condition.price_source or defaults.price_source

    left = condition.left
    if isinstance(defaults.subject, IndicatorSubject):
        left = left.model_copy(update={"component": defaults.subject.component})

    log.debug(
        "condition_migrated",
        condition_id=condition.id,
        indicator=definition.id,
        preserved=preserved is not None,
    )
    return condition.model_copy(
        update={
            "subject": defaults.subject,
            "target": new_target,
            "op": op,
            "price_source": price_source,
            "right": _right_for(condition, new_target),
            "left": left,
        }
    )


def change_indicator(
    condition: IndicatorCondition, definition: IndicatorDefinition
) -> IndicatorCondition:
    """インジケータ切替: 名前と設定を新定義の既定へ差し替えてから migrate"""
    left = condition.left.model_copy(
        update={"name": definition.id, "settings": default_settings(definition)}
    )
    return migrate(condition.model_copy(update={"left": left}), definition)


def migrate_rule_set(
    rules: EntryRuleSet, definitions: Mapping[str, IndicatorDefinition]
) -> EntryRuleSet:
    """ルールセット内の全インジケータ条件を、定義が手元にあるものだけ migrate"""

    def _m(c: IndicatorCondition) -> IndicatorCondition:
        d = definitions.get(c.left.name)
        return migrate(c, d) if d is not None else c

    triggers = tuple(
        _m(t) if isinstance(t, IndicatorCondition) else t for t in rules.main_triggers
    )
    supporting = rules.supporting
    updates = {}
    for attr in ("set_a", "set_b"):
        group = getattr(supporting, attr)
        if group is not None:
            updates[attr] = group.model_copy(
                update={"conditions": [_m(c) for c in group.conditions]}
            )
    return rules.model_copy(
        update={"main_triggers": triggers, "supporting": supporting.model_copy(update=updates)}
    )
