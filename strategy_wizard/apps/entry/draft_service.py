"""
ドラフト（単一JSONドキュメント）の保存・読込境界。

エントリールールは `entryV2` キーに置き、他のボット設定メタデータは保持する。
読込時は全インジケータ条件を現在の定義に対して migrate する（スキーマ変化への追従）。
自動保存は DraftAutoSaver による明示的なデバウンス副作用で、書き手はそれだけ。
"""

from __future__ import annotations

import asyncio
import secrets
import time
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, ClassVar

from pydantic import ValidationError

from strategy_wizard.apps.catalog.definition_catalog import DefinitionCatalog
from strategy_wizard.config.defaults import ENTRY_RULES_KEY
from strategy_wizard.domain.dto.entry_rules import (
    ConditionGroup,
    EntryRuleSet,
    IndicatorCondition,
    IndicatorRef,
    SupportingSets,
    TimeWindow,
    TimingBound,
    ValueCompare,
)
from strategy_wizard.domain.dto.indicator_def import IndicatorSubject, ValueTarget
from strategy_wizard.domain.ports.draft_store import DraftStorePort
from strategy_wizard.domain.services.condition_migration import migrate_rule_set
from strategy_wizard.shared.logging import get_logger

log = get_logger(__name__)

__all__ = [
    "DraftAutoSaver",
    "DraftService",
    "default_entry_rules",
    "generate_condition_id",
    "generate_group_id",
    "generate_trigger_id",
    "migrate_from_v1",
]


def _make_id(prefix: str) -> str:
    return f"{prefix}-{int(time.time() * 1000)}-{secrets.token_hex(5)[:9]}"


def generate_condition_id() -> str:
    return _make_id("condition")


def generate_trigger_id() -> str:
    return _make_id("trigger")


def generate_group_id() -> str:
    return _make_id("group")


def default_entry_rules() -> EntryRuleSet:
    trigger = IndicatorCondition(
        id="trigger-1",
        timeframe="15m",
        left=IndicatorRef(name="RSI", component="line", settings={"length": 14}),
        op="crossesAbove",
        right=ValueCompare(value=30),
        subject=IndicatorSubject(component="line"),
        target=ValueTarget(min=0, max=100, step=0.1),
        sequence=1,
        stays_valid_for=TimingBound(amount=5, unit="bars"),
    )
    support = IndicatorCondition(
        id="support-1",
        timeframe="1h",
        left=IndicatorRef(name="EMA", component="line", settings={"length": 50}),
        op=">",
        right=ValueCompare(value=0),
    )
    return EntryRuleSet(
        main_triggers=(trigger, None),
        supporting=SupportingSets(
            set_a=ConditionGroup(id="setA", logic="AND", conditions=[support])
        ),
        trigger_timing="onBarClose",
        cooldown_bars=5,
        time_window=TimeWindow(
            enabled=False, start="09:15", end="15:30", timezone="Asia/Kolkata"
        ),
        reset_if_stale=True,
        notes="",
    )


def migrate_from_v1(old: Mapping[str, Any] | None) -> EntryRuleSet:
    """旧エントリー形式 {main, supporting: [group...], notes} を既定ルールの上に写す。
    壊れた入力は warning を出して既定ルールを返す。"""
    rules = default_entry_rules()
    if not isinstance(old, Mapping) or not old:
        return rules
    try:
        updates: dict[str, Any] = {}
        main = old.get("main")
        if main:
            trigger = IndicatorCondition.model_validate(
                {**main, "sequence": 1, "staysValidFor": {"amount": 5, "unit": "bars"}}
            )
            updates["main_triggers"] = (trigger, None)
        groups = old.get("supporting") or []
        if groups and (groups[0] or {}).get("conditions"):
            first = groups[0]
            updates["supporting"] = SupportingSets(
                set_a=ConditionGroup.model_validate(
                    {
                        "id": "setA",
                        "logic": first.get("logic") or "AND",
                        "conditions": first["conditions"],
                    }
                )
            )
        if old.get("notes"):
            updates["notes"] = old["notes"]
    except (ValidationError, AttributeError, TypeError, KeyError) as e:
        log.warning("v1_migration_failed_using_defaults", error=str(e))
        return rules
    return rules.model_copy(update=updates)


def _indicator_names(rules: EntryRuleSet) -> list[str]:
    names = [t.left.name for _, t in rules.active_triggers() if isinstance(t, IndicatorCondition)]
    for _, group in rules.supporting.groups():
        names.extend(c.left.name for c in group.conditions)
    return names


class DraftService:
    __responsibility__: ClassVar[str] = "ドラフト保存・読込と読込時マイグレーション"

    def __init__(self, store: DraftStorePort, *, catalog: DefinitionCatalog | None = None) -> None:
        self.store = store
        self.catalog = catalog

    def load_document(self) -> dict[str, Any]:
        try:
            return dict(self.store.load() or {})
        except (OSError, ValueError) as e:
            log.warning("draft_load_failed", error=str(e))
            return {}

    def parse_entry_rules(self, document: Mapping[str, Any]) -> EntryRuleSet | None:
        raw = document.get(ENTRY_RULES_KEY)
        if raw is None:
            # entryV2 が無く旧形式 entry があれば写し替える
            legacy = document.get("entry")
            return migrate_from_v1(legacy) if isinstance(legacy, Mapping) else None
        try:
            return EntryRuleSet.model_validate(raw)
        except ValidationError as e:
            log.warning("draft_entry_rules_invalid", error=str(e))
            return None

    async def load_entry_rules(self) -> EntryRuleSet | None:
        rules = self.parse_entry_rules(self.load_document())
        if rules is None or self.catalog is None:
            return rules
        definitions = await self.catalog.definitions_for(_indicator_names(rules))
        return migrate_rule_set(rules, definitions)

    def save_entry_rules(self, rules: EntryRuleSet) -> None:
        """既存ドラフトが読めなければ上書きせず OSError/ValueError を送出する"""
        document = dict(self.store.load() or {})
        document[ENTRY_RULES_KEY] = rules.to_document()
        self.store.save(document)

    def clear_entry_rules(self) -> None:
        document = dict(self.store.load() or {})
        if document.pop(ENTRY_RULES_KEY, None) is not None:
            self.store.save(document)


class DraftAutoSaver:
    """編集ごとに schedule し、静止期間後に最後の内容だけを保存する"""

    def __init__(
        self,
        service: DraftService,
        *,
        debounce_sec: float = 0.3,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.service = service
        self.debounce_sec = debounce_sec
        self._sleep = sleep
        self._generation = 0
        self._pending: EntryRuleSet | None = None
        self.saves = 0

    def _write(self, rules: EntryRuleSet) -> bool:
        try:
            self.service.save_entry_rules(rules)
        except (OSError, ValueError) as e:
            log.warning("draft_autosave_failed", error=str(e))
            return False
        self.saves += 1
        return True

    async def schedule(self, rules: EntryRuleSet) -> bool:
        """保存したら True、後続の編集に追い越されたら False"""
        self._generation += 1
        gen = self._generation
        self._pending = rules
        await self._sleep(self.debounce_sec)
        if gen != self._generation or self._pending is None:
            return False
        pending, self._pending = self._pending, None
        return self._write(pending)

    def flush(self) -> bool:
        """保留中の内容を即時保存（終了時など）"""
        if self._pending is None:
            return False
        self._generation += 1
        pending, self._pending = self._pending, None
        return self._write(pending)
