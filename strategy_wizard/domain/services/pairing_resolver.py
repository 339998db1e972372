"""
Pairing 表に対する純関数群（同期・全域・例外なし）。

- 不在は空タプルで表す。呼び出し側は「この Subject に有効な構成は無い」と解釈し、再試行しない
- Subject の同一性: price は種別のみ / indicator はコンポーネント名 / derived は id
- Target の同一性: component はコンポーネント名 / value は種別のみ
"""

from __future__ import annotations

from typing import assert_never

from strategy_wizard.config.defaults import OPERATOR_LABELS
from strategy_wizard.domain.dto.indicator_def import (
    ComponentTarget,
    DerivedSubject,
    IndicatorDefinition,
    IndicatorSubject,
    Operator,
    PriceSubject,
    Subject,
    Target,
    TargetEntry,
    ValueTarget,
)

__all__ = [
    "is_legal",
    "operator_label",
    "same_subject",
    "same_target",
    "subject_label",
    "target_label",
    "valid_operators",
    "valid_subjects",
    "valid_targets",
]


def same_subject(a: Subject, b: Subject) -> bool:
    match a:
        case PriceSubject():
            return isinstance(b, PriceSubject)
        case IndicatorSubject(component=component):
            return isinstance(b, IndicatorSubject) and b.component == component
        case DerivedSubject(id=derived_id):
            return isinstance(b, DerivedSubject) and b.id == derived_id
        case _:
            assert_never(a)


def same_target(a: Target, b: Target) -> bool:
    match a:
        case ComponentTarget(component=component):
            return isinstance(b, ComponentTarget) and b.component == component
        case ValueTarget():
            # 値ターゲットは範囲に関係なく同一視
            return isinstance(b, ValueTarget)
        case _:
            assert_never(a)


def valid_subjects(definition: IndicatorDefinition) -> tuple[Subject, ...]:
    """Pairing 順で重複を除いた Subject 一覧"""
    out: list[Subject] = []
    for p in definition.pairings:
        if not any(same_subject(p.subject, s) for s in out):
            out.append(p.subject)
    return tuple(out)


def valid_targets(definition: IndicatorDefinition, subject: Subject) -> tuple[TargetEntry, ...]:
    """subject に一致する Pairing の (Target, [Operator]) 一覧。

    同じ Subject が複数の Pairing に分かれて現れる定義（RSI の line など）もあるため、
    一致する Pairing を順に連結する。同じ Target が重複したら先勝ち。
    Operator が空のエントリは合法な組を持たないので含めない。
    """
    out: list[TargetEntry] = []
    for p in definition.pairings:
        if not same_subject(p.subject, subject):
            continue
        for entry in p.targets:
            if not entry.operators:
                continue
            if not any(same_target(entry.target, e.target) for e in out):
                out.append(entry)
    return tuple(out)


def valid_operators(
    definition: IndicatorDefinition, subject: Subject, target: Target
) -> tuple[Operator, ...]:
    for entry in valid_targets(definition, subject):
        if same_target(entry.target, target):
            return entry.operators
    return ()


def is_legal(
    definition: IndicatorDefinition,
    subject: Subject,
    target: Target,
    operator: Operator | None = None,
) -> bool:
    ops = valid_operators(definition, subject, target)
    if operator is None:
        return bool(ops)
    return operator in ops


def subject_label(subject: Subject) -> str:
    match subject:
        case PriceSubject(source=source):
            return source.upper() if source else "CLOSE"
        case IndicatorSubject(component=component):
            return component.upper()
        case DerivedSubject(label=label):
            return label
        case _:
            assert_never(subject)


def target_label(target: Target) -> str:
    match target:
        case ComponentTarget() if target.is_zero:
            return "Zero line"
        case ComponentTarget(component=component):
            return component.upper()
        case ValueTarget():
            return "Value"
        case _:
            assert_never(target)


def operator_label(operator: Operator) -> str:
    return OPERATOR_LABELS.get(operator, operator)
