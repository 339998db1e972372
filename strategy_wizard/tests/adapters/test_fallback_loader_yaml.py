from __future__ import annotations

import pytest

from strategy_wizard.adapters.yaml.fallback_loader_yaml import (
    YamlFallbackDefinitions,
    builtin_fallback_definitions,
)
from strategy_wizard.config.defaults import FALLBACK_INDICATORS
from strategy_wizard.domain.dto.indicator_def import ComponentTarget, DerivedSubject, ValueTarget


def test_builtin_definitions_cover_fallback_list():
    defs = builtin_fallback_definitions()
    assert [x["id"] for x in FALLBACK_INDICATORS] == list(defs)
    for item in FALLBACK_INDICATORS:
        assert defs[item["id"]].label == item["label"]


def test_builtin_definitions_are_loaded_once():
    assert builtin_fallback_definitions() is builtin_fallback_definitions()


def test_bbands_shape():
    bb = builtin_fallback_definitions()["BBANDS"]
    assert bb.settings["std"].default == 2
    price, derived = bb.pairings
    assert price.ui.default_price_source == "close"
    assert [e.target for e in price.targets] == [
        ComponentTarget(component=c) for c in ("upper", "middle", "lower")
    ]
    assert derived.subject == DerivedSubject(id="%B", label="%B")
    assert derived.targets[0].target == ValueTarget(min=0, max=1, step=0.01)


def test_custom_file(tmp_path):
    path = tmp_path / "defs.yaml"
    path.write_text(
        "- id: OBV\n"
        "  label: On Balance Volume\n"
        "  pairings:\n"
        "    - subject: {kind: indicator-component, component: line}\n"
        "      targets:\n"
        "        - target: {kind: zero}\n"
        "          operators: [crossesAbove]\n",
        encoding="utf-8",
    )
    obv = YamlFallbackDefinitions(path).load()["OBV"]
    assert obv.version == "1.0.0"
    assert obv.pairings[0].targets[0].target.is_zero


def test_non_list_yaml_is_rejected(tmp_path):
    path = tmp_path / "defs.yaml"
    path.write_text("id: RSI\n", encoding="utf-8")
    with pytest.raises(ValueError):
        YamlFallbackDefinitions(path).load()
