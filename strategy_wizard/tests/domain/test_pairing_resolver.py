from __future__ import annotations

import pytest

from strategy_wizard.adapters.yaml.fallback_loader_yaml import builtin_fallback_definitions
from strategy_wizard.domain.dto.indicator_def import (
    ComponentTarget,
    DerivedSubject,
    IndicatorSubject,
    PriceSubject,
    ValueTarget,
)
from strategy_wizard.domain.services.pairing_resolver import (
    is_legal,
    subject_label,
    target_label,
    valid_operators,
    valid_subjects,
    valid_targets,
)

ALL_IDS = sorted(builtin_fallback_definitions())


@pytest.mark.parametrize("indicator_id", ALL_IDS)
def test_some_subject_has_targets(defs, indicator_id):
    d = defs[indicator_id]
    subjects = valid_subjects(d)
    assert subjects
    assert any(valid_targets(d, s) for s in subjects)


def test_subjects_are_distinct_in_pairing_order(defs):
    # RSI は line が2つの Pairing に分かれているが Subject は1つ
    assert valid_subjects(defs["RSI"]) == (IndicatorSubject(component="line"),)
    assert valid_subjects(defs["MACD"]) == (
        IndicatorSubject(component="macd"),
        IndicatorSubject(component="histogram"),
    )


def test_targets_merge_pairings_with_same_subject(defs):
    entries = valid_targets(defs["RSI"], IndicatorSubject(component="line"))
    assert [type(e.target) for e in entries] == [ValueTarget, ComponentTarget]
    assert entries[1].target.component == "ema"


def test_subject_matching_by_variant(defs):
    # price は source に関係なく一致、derived は id で一致
    assert valid_targets(defs["EMA"], PriceSubject(source="hl2"))
    assert valid_targets(defs["BBANDS"], DerivedSubject(id="%B", label="whatever"))
    assert valid_targets(defs["BBANDS"], DerivedSubject(id="%K", label="%B")) == ()
    assert valid_targets(defs["MACD"], IndicatorSubject(component="line")) == ()


def test_operators_narrow_by_target(defs):
    macd = IndicatorSubject(component="macd")
    ops = valid_operators(defs["MACD"], macd, ComponentTarget(component="zero"))
    assert "crossesAbove" in ops
    assert valid_operators(defs["MACD"], macd, ComponentTarget(component="ema")) == ()
    # 値ターゲットは範囲に関係なく一致
    rsi_ops = valid_operators(defs["RSI"], IndicatorSubject(component="line"), ValueTarget())
    assert "crossesAbove" in rsi_ops
    assert "=" in rsi_ops


def test_is_legal_with_and_without_operator(defs):
    line, ema = IndicatorSubject(component="line"), ComponentTarget(component="ema")
    assert is_legal(defs["RSI"], line, ema)
    assert is_legal(defs["RSI"], line, ema, ">")
    assert not is_legal(defs["RSI"], line, ema, "=")


def test_labels():
    assert subject_label(PriceSubject()) == "CLOSE"
    assert subject_label(PriceSubject(source="hlc3")) == "HLC3"
    assert subject_label(IndicatorSubject(component="histogram")) == "HISTOGRAM"
    assert subject_label(DerivedSubject(id="%B", label="%B")) == "%B"
    assert target_label(ComponentTarget(component="zero")) == "Zero line"
    assert target_label(ComponentTarget(component="signal")) == "SIGNAL"
    assert target_label(ValueTarget(min=0, max=100)) == "Value"
