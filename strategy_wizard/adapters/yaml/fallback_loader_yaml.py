from __future__ import annotations

from collections.abc import Mapping
from functools import lru_cache
from pathlib import Path

import yaml

from strategy_wizard.domain.dto.indicator_def import IndicatorDefinition

DEFAULT_FALLBACK_PATH = Path(__file__).resolve().parents[2] / "config" / "fallback_definitions.yaml"


class YamlFallbackDefinitions:
    """オフライン用の固定定義をYAMLから読み込み、IndicatorDefinition へ厳密変換。
    - Pydantic v2: `IndicatorDefinition.model_validate(obj)` を使用。
    - YAML は `safe_load` のみ利用。
    """

    def __init__(self, path: Path = DEFAULT_FALLBACK_PATH) -> None:
        self.path = path

    def load(self) -> Mapping[str, IndicatorDefinition]:
        data = yaml.safe_load(self.path.read_text(encoding="utf-8")) or []
        if not isinstance(data, list):
            raise ValueError("fallback definitions YAML must be a list of definitions")
        defs: dict[str, IndicatorDefinition] = {}
        for obj in data:
            d = IndicatorDefinition.model_validate(obj)
            defs[d.id] = d
        return defs


@lru_cache(maxsize=1)
def builtin_fallback_definitions() -> Mapping[str, IndicatorDefinition]:
    """同梱YAMLの定義（決定的・プロセス内で1回だけ読む）"""
    return YamlFallbackDefinitions().load()
