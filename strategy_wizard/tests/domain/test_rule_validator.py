from __future__ import annotations

from strategy_wizard.apps.entry.draft_service import default_entry_rules
from strategy_wizard.domain.dto.entry_rules import (
    ComponentRef,
    ConditionGroup,
    EntryRuleSet,
    IndicatorCompare,
    IndicatorCondition,
    IndicatorRef,
    SupportingSets,
    TimeWindow,
    TimingBound,
    ValueCompare,
    WebhookMatch,
    WebhookTrigger,
)
from strategy_wizard.domain.dto.indicator_def import (
    ComponentTarget,
    IndicatorSubject,
    PriceSubject,
    ValueTarget,
)
from strategy_wizard.domain.services.rule_validator import (
    validate_condition,
    validate_rule_set,
    validate_trigger,
)


def _rsi(value: float = 30, cid: str = "c1", **kw) -> IndicatorCondition:
    return IndicatorCondition(
        id=cid,
        timeframe="15m",
        left=IndicatorRef(name="RSI", component="line", settings={"length": 14}),
        op="crossesAbove",
        right=ValueCompare(value=value),
        subject=IndicatorSubject(component="line"),
        target=ValueTarget(min=0, max=100, step=0.1),
        **kw,
    )


def _rules(*triggers, set_a=None, set_b=None, **kw) -> EntryRuleSet:
    slots = (list(triggers) + [None, None])[:2]
    return EntryRuleSet(
        main_triggers=tuple(slots),
        supporting=SupportingSets(set_a=set_a, set_b=set_b),
        **kw,
    )


# ---- 単一条件 ----
def test_value_inside_range_passes():
    assert validate_condition(_rsi(30)) == []


def test_value_outside_range_is_reported():
    assert validate_condition(_rsi(150)) == ["Value 150 is above maximum 100"]
    assert validate_condition(_rsi(-1)) == ["Value -1 is below minimum 0"]


def test_only_first_missing_field_is_reported():
    c = IndicatorCondition(id="c1")
    assert validate_condition(c) == ["Indicator name is required"]
    c = c.model_copy(update={"left": IndicatorRef(name="RSI")})
    assert validate_condition(c) == ["Timeframe is required"]
    c = c.model_copy(update={"timeframe": "1h"})
    assert validate_condition(c) == ["Operator is required"]
    c = c.model_copy(update={"op": ">"})
    assert validate_condition(c) == ["Comparison target is required"]


def test_price_subject_requires_price_source():
    c = IndicatorCondition(
        id="c1",
        timeframe="1h",
        left=IndicatorRef(name="EMA", settings={"length": 50}),
        op="crossesAbove",
        right=IndicatorCompare(indicator=ComponentRef(component="line")),
        subject=PriceSubject(),
        target=ComponentTarget(component="line"),
    )
    assert validate_condition(c) == ["Price source is required for price-based conditions"]
    assert validate_condition(c.model_copy(update={"price_source": "close"})) == []


def test_price_source_on_subject_satisfies_requirement():
    # 価格ソースは条件側・サブジェクト側のどちらで指定してもよい
    c = IndicatorCondition(
        id="c1",
        timeframe="1h",
        left=IndicatorRef(name="EMA", settings={"length": 50}),
        op="crossesAbove",
        right=IndicatorCompare(indicator=ComponentRef(component="line")),
        subject=PriceSubject(source="hl2"),
        target=ComponentTarget(component="line"),
    )
    assert c.price_source is None
    assert validate_condition(c) == []


def test_timing_modifiers():
    c = _rsi(
        sequence=11,
        must_occur_within=TimingBound(amount=0),
        stays_valid_for=TimingBound(amount=-2, unit="minutes"),
    )
    assert validate_condition(c) == [
        "Sequence must be between 1 and 10",
        "Must occur within amount must be positive",
        "Stays valid for amount must be positive",
    ]


def test_webhook_trigger_requires_match_key():
    hook = WebhookTrigger(id="w1", match=WebhookMatch(key="", equals="buy"))
    assert validate_trigger(hook) == ["Webhook match key is required"]
    assert validate_trigger(hook.model_copy(update={"match": WebhookMatch(key="s", equals=1)})) == []


# ---- ルールセット ----
def test_default_rules_are_valid():
    assert validate_rule_set(default_entry_rules()) == []


def test_both_slots_empty_is_rejected():
    assert validate_rule_set(_rules()) == ["At least one main trigger is required"]


def test_trigger_issues_are_labelled_by_slot():
    errors = validate_rule_set(_rules(None, _rsi(150)))
    assert errors == ["Main Trigger 2: Value 150 is above maximum 100"]


def test_supporting_condition_limit():
    set_a = ConditionGroup(id="setA", conditions=[_rsi(cid=f"a{i}") for i in range(6)])
    set_b = ConditionGroup(id="setB", logic="OR", conditions=[_rsi(cid=f"b{i}") for i in range(5)])
    errors = validate_rule_set(_rules(_rsi(), set_a=set_a, set_b=set_b))
    assert errors == [
        "Too many supporting conditions: 11/10",
        "Set B, Condition 5: exceeds the limit of 10 supporting conditions",
    ]

    ten = set_b.model_copy(update={"conditions": set_b.conditions[:4]})
    assert validate_rule_set(_rules(_rsi(), set_a=set_a, set_b=ten)) == []


def test_supporting_issues_are_labelled_by_set_and_position():
    set_b = ConditionGroup(id="setB", conditions=[_rsi(), _rsi(101)])
    assert validate_rule_set(_rules(_rsi(), set_b=set_b)) == [
        "Set B, Condition 2: Value 101 is above maximum 100"
    ]


def test_time_window_order():
    tw = TimeWindow(enabled=True, start="15:30", end="09:15")
    assert validate_rule_set(_rules(_rsi(), time_window=tw)) == [
        "Time window start must be before end time (15:30 >= 09:15)"
    ]
    # 無効化されていれば検査しない
    disabled = tw.model_copy(update={"enabled": False})
    assert validate_rule_set(_rules(_rsi(), time_window=disabled)) == []


def test_time_window_format_and_timezone():
    bad_format = TimeWindow(enabled=True, start="9:15", end="15:30")
    assert validate_rule_set(_rules(_rsi(), time_window=bad_format)) == [
        "Time window times must be in HH:MM format"
    ]
    missing = TimeWindow(enabled=True, start="", end="15:30")
    assert validate_rule_set(_rules(_rsi(), time_window=missing)) == [
        "Time window start and end times are required"
    ]
    bad_tz = TimeWindow(enabled=True, start="09:15", end="15:30", timezone="Not/AZone")
    assert validate_rule_set(_rules(_rsi(), time_window=bad_tz)) == [
        "Unknown time window timezone: Not/AZone"
    ]


def test_duplicate_trigger_sequences():
    hook = WebhookTrigger(id="w1", match=WebhookMatch(key="signal", equals="buy"), sequence=2)
    errors = validate_rule_set(_rules(_rsi(sequence=2), hook))
    assert errors == ["Duplicate trigger sequences: 2"]


def test_supporting_sequences_are_not_checked_for_duplicates():
    set_a = ConditionGroup(id="setA", conditions=[_rsi(cid="a1", sequence=1)])
    assert validate_rule_set(_rules(_rsi(sequence=1), set_a=set_a)) == []


def test_negative_cooldown():
    assert validate_rule_set(_rules(_rsi(), cooldown_bars=-1)) == [
        "Cooldown must be zero or more bars"
    ]


def test_parsed_document_with_odd_values_never_raises():
    rules = EntryRuleSet.model_validate(
        {
            "mainTriggers": [{"id": "t1", "kind": "indicator"}, None],
            "timeWindow": {"enabled": True, "start": "25:00", "end": "xx"},
            "cooldownBars": -3,
        }
    )
    assert validate_rule_set(rules) == [
        "Main Trigger 1: Indicator name is required",
        "Time window times must be in HH:MM format",
        "Cooldown must be zero or more bars",
    ]
