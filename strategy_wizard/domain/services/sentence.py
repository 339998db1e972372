from __future__ import annotations

from strategy_wizard.domain.dto.entry_rules import (
    IndicatorCompare,
    IndicatorCondition,
    IndicatorRef,
    ValueCompare,
    WebhookTrigger,
)
from strategy_wizard.domain.dto.indicator_def import (
    ComponentTarget,
    DerivedSubject,
    IndicatorSubject,
    PriceSubject,
    ValueTarget,
)
from strategy_wizard.domain.services.pairing_resolver import (
    operator_label,
    subject_label,
    target_label,
)

__all__ = ["describe_condition", "describe_trigger"]


def _num(v: float) -> str:
    return str(int(v)) if float(v).is_integer() else f"{v:g}"


def _indicator_text(left: IndicatorRef, component: str | None) -> str:
    length = left.settings.get("length")
    text = f"{left.name}({length})" if length else left.name
    if component and component != "line":
        text += f" {component}"
    return text


def _timing_text(item: IndicatorCondition | WebhookTrigger) -> str:
    parts: list[str] = []
    if item.sequence:
        parts.append(f"sequence {item.sequence}")
    if item.must_occur_within:
        parts.append(f"within {_num(item.must_occur_within.amount)} {item.must_occur_within.unit}")
    if item.stays_valid_for:
        parts.append(f"valid {_num(item.stays_valid_for.amount)} {item.stays_valid_for.unit}")
    return f" ({', '.join(parts)})" if parts else ""


def describe_condition(c: IndicatorCondition) -> str:
    """リモート文章生成が使えないときのローカル定型文"""
    match c.subject:
        case PriceSubject(source=source):
            left = f"{subject_label(PriceSubject(source=source or c.price_source))} price"
        case IndicatorSubject(component=component):
            left = _indicator_text(c.left, component)
        case DerivedSubject(label=label):
            left = label
        case None:
            left = _indicator_text(c.left, c.left.component)

    right = ""
    match c.target:
        case ValueTarget():
            right = _num(c.right.value) if isinstance(c.right, ValueCompare) else "0"
        case ComponentTarget() if c.target.is_zero:
            right = "zero line"
        case ComponentTarget():
            right = f"{c.left.name} {target_label(c.target)}"
        case None:
            if isinstance(c.right, ValueCompare):
                right = _num(c.right.value)
            elif isinstance(c.right, IndicatorCompare):
                right = f"its {c.right.indicator.component or 'line'}"

    op = operator_label(c.op) if c.op else "?"
    return f"{left} on {c.timeframe or '?'} {op} {right}{_timing_text(c)}"


def describe_trigger(t: IndicatorCondition | WebhookTrigger) -> str:
    if isinstance(t, WebhookTrigger):
        return f"Webhook arrives with {t.match.key} == {t.match.equals}{_timing_text(t)}"
    return describe_condition(t)
