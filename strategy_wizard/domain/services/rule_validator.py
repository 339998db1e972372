"""
ネットワーク非依存のローカル検証（オフライン時もこの経路だけで判定する）。

返り値は UI でそのまま並べられる人間向けメッセージのフラットな順序付きリスト。
どの入力でも例外は投げない。
"""

from __future__ import annotations

import re
from collections import Counter
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from strategy_wizard.config.defaults import MAX_SUPPORTING_CONDITIONS, SEQUENCE_MAX, SEQUENCE_MIN
from strategy_wizard.domain.dto.entry_rules import (
    EntryRuleSet,
    IndicatorCondition,
    TimeWindow,
    ValueCompare,
    WebhookTrigger,
)
from strategy_wizard.domain.dto.indicator_def import PriceSubject, ValueTarget

__all__ = ["validate_condition", "validate_rule_set", "validate_trigger"]

HHMM_RE = re.compile(r"^(?:[01]\d|2[0-3]):[0-5]\d$")


def _fmt(v: float) -> str:
    return str(int(v)) if float(v).is_integer() else str(v)


def _timing_issues(item: IndicatorCondition | WebhookTrigger) -> list[str]:
    errs: list[str] = []
    if item.sequence is not None and not (SEQUENCE_MIN <= item.sequence <= SEQUENCE_MAX):
        errs.append(f"Sequence must be between {SEQUENCE_MIN} and {SEQUENCE_MAX}")
    if item.must_occur_within is not None and item.must_occur_within.amount <= 0:
        errs.append("Must occur within amount must be positive")
    if item.stays_valid_for is not None and item.stays_valid_for.amount <= 0:
        errs.append("Stays valid for amount must be positive")
    return errs


def validate_condition(c: IndicatorCondition) -> list[str]:
    # 必須項目は最初の欠落だけ報告する
    if not c.left.name:
        return ["Indicator name is required"]
    if not c.timeframe:
        return ["Timeframe is required"]
    if not c.op:
        return ["Operator is required"]
    if c.right is None:
        return ["Comparison target is required"]

    errs: list[str] = []
    if c.subject is not None and c.target is not None:
        if isinstance(c.target, ValueTarget) and isinstance(c.right, ValueCompare):
            value = c.right.value
            if c.target.min is not None and value < c.target.min:
                errs.append(f"Value {_fmt(value)} is below minimum {_fmt(c.target.min)}")
            if c.target.max is not None and value > c.target.max:
                errs.append(f"Value {_fmt(value)} is above maximum {_fmt(c.target.max)}")
        if isinstance(c.subject, PriceSubject) and not (c.price_source or c.subject.source):
            errs.append("Price source is required for price-based conditions")

    errs.extend(_timing_issues(c))
    return errs


def validate_trigger(t: IndicatorCondition | WebhookTrigger) -> list[str]:
    if isinstance(t, WebhookTrigger):
        errs = [] if t.match.key else ["Webhook match key is required"]
        return errs + _timing_issues(t)
    return validate_condition(t)


def _time_window_issues(tw: TimeWindow) -> list[str]:
    if not tw.start or not tw.end:
        return ["Time window start and end times are required"]
    if not HHMM_RE.match(tw.start) or not HHMM_RE.match(tw.end):
        return ["Time window times must be in HH:MM format"]
    errs: list[str] = []
    # 0埋めHH:MMなので文字列比較で時刻順になる
    if tw.start >= tw.end:
        errs.append(f"Time window start must be before end time ({tw.start} >= {tw.end})")
    if tw.timezone:
        try:
            ZoneInfo(tw.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            errs.append(f"Unknown time window timezone: {tw.timezone}")
    return errs


def validate_rule_set(rules: EntryRuleSet) -> list[str]:
    errors: list[str] = []

    active = rules.active_triggers()
    if not active:
        errors.append("At least one main trigger is required")

    for slot, trigger in active:
        errors.extend(f"Main Trigger {slot}: {e}" for e in validate_trigger(trigger))

    groups = rules.supporting.groups()
    total = sum(len(g.conditions) for _, g in groups)
    if total > MAX_SUPPORTING_CONDITIONS:
        errors.append(f"Too many supporting conditions: {total}/{MAX_SUPPORTING_CONDITIONS}")

    seen = 0
    for label, group in groups:
        for i, cond in enumerate(group.conditions, start=1):
            seen += 1
            if seen > MAX_SUPPORTING_CONDITIONS:
                errors.append(
                    f"{label}, Condition {i}: exceeds the limit of "
                    f"{MAX_SUPPORTING_CONDITIONS} supporting conditions"
                )
            errors.extend(f"{label}, Condition {i}: {e}" for e in validate_condition(cond))

    if rules.time_window is not None and rules.time_window.enabled:
        errors.extend(_time_window_issues(rules.time_window))

    if rules.cooldown_bars is not None and rules.cooldown_bars < 0:
        errors.append("Cooldown must be zero or more bars")

    # 補助条件の sequence は重複判定の対象外（アクティブなメイントリガーのみ）
    counts = Counter(t.sequence for _, t in active if t.sequence is not None)
    dups = [str(seq) for seq, n in counts.items() if n > 1]
    if dups:
        errors.append(f"Duplicate trigger sequences: {', '.join(dups)}")

    return errors
