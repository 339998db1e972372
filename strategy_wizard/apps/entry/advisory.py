"""
リモートのアドバイザリチェック（構造検証＋自然文生成）。

- 同一条件への連続編集はデバウンスし、静止期間内の最後のペイロードだけ送る
- 応答は生成元ペイロードでタグ付けし、最新ペイロードと一致しなければ捨てる
- オフライン時はリモートを呼ばず、ローカル検証＋ローカル定型文のみ
- リモートの失敗はログして無視。保存可否はローカル検証だけで決まる
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import ClassVar, Literal

from strategy_wizard.domain.dto.advisory import ConditionPayload, SentenceResult, ValidationResult
from strategy_wizard.domain.dto.entry_rules import IndicatorCondition, ValueCompare
from strategy_wizard.domain.dto.indicator_def import PriceSubject
from strategy_wizard.domain.errors import IndicatorApiError
from strategy_wizard.domain.ports.advisory import AdvisoryPort
from strategy_wizard.domain.services.rule_validator import validate_condition
from strategy_wizard.domain.services.sentence import describe_condition
from strategy_wizard.shared.logging import get_logger
from strategy_wizard.shared.settings import WizardEnvSettings

log = get_logger(__name__)


def build_payload(c: IndicatorCondition) -> ConditionPayload | None:
    """完全に解決済みの条件だけをペイロード化（未解決なら None）"""
    if not c.left.name or not c.timeframe or c.op is None:
        return None
    if c.subject is None or c.target is None:
        return None
    price_source = c.price_source
    if price_source is None and isinstance(c.subject, PriceSubject):
        price_source = c.subject.source
    return ConditionPayload(
        indicator_id=c.left.name,
        timeframe=c.timeframe,
        settings=dict(c.left.settings),
        subject=c.subject,
        target=c.target,
        operator=c.op,
        value=c.right.value if isinstance(c.right, ValueCompare) else None,
        price_source=price_source,
    )


def merge_issues(local: tuple[str, ...], remote: tuple[str, ...]) -> tuple[str, ...]:
    """ローカルを先頭に、リモート側の未出メッセージを後ろへ足す（置換はしない）"""
    return local + tuple(e for e in dict.fromkeys(remote) if e not in local)


@dataclass(frozen=True, slots=True)
class AdvisoryOutcome:
    payload: ConditionPayload | None
    local_issues: tuple[str, ...]
    remote_issues: tuple[str, ...] = ()
    sentence: str = ""
    sentence_source: Literal["remote", "local"] = "local"
    remote_checked: bool = False

    @property
    def issues(self) -> tuple[str, ...]:
        return merge_issues(self.local_issues, self.remote_issues)

    @property
    def can_save(self) -> bool:
        # リモートの結果は助言のみ
        return not self.local_issues


class AdvisoryChecker:
    __responsibility__: ClassVar[str] = "デバウンス付き best-effort リモート検証と文章生成"

    def __init__(
        self,
        advisory: AdvisoryPort,
        *,
        is_offline: Callable[[], bool] = lambda: False,
        debounce_sec: float = 0.3,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.advisory = advisory
        self.is_offline = is_offline
        self.debounce_sec = debounce_sec
        self._sleep = sleep
        # 世代番号は全条件で単調増加（エントリ削除後も再利用しない）
        self._seq = 0
        self._generation: dict[str, int] = {}
        self._latest: dict[str, ConditionPayload | None] = {}

    @classmethod
    def from_settings(
        cls,
        advisory: AdvisoryPort,
        settings: WizardEnvSettings,
        *,
        is_offline: Callable[[], bool] = lambda: False,
    ) -> AdvisoryChecker:
        return cls(advisory, is_offline=is_offline, debounce_sec=settings.ADVISORY__DEBOUNCE_SEC)

    def forget(self, condition_id: str) -> None:
        """削除された条件の追跡状態を捨てる（実行中のチェックは結果を返さなくなる）"""
        self._generation.pop(condition_id, None)
        self._latest.pop(condition_id, None)

    def _settle(self, key: str, gen: int) -> None:
        # 最新世代のチェックが完了したら追跡状態は不要
        if self._generation.get(key) == gen:
            self.forget(key)

    async def _remote_validate(self, payload: ConditionPayload) -> ValidationResult | None:
        try:
            return await self.advisory.validate_condition(payload)
        except IndicatorApiError as e:
            log.warning("remote_validation_failed", indicator=payload.indicator_id, error=str(e))
            return None

    async def _remote_sentence(self, payload: ConditionPayload) -> SentenceResult | None:
        try:
            return await self.advisory.get_sentence(payload)
        except IndicatorApiError as e:
            log.warning("remote_sentence_failed", indicator=payload.indicator_id, error=str(e))
            return None

    async def check(self, condition: IndicatorCondition) -> AdvisoryOutcome | None:
        """編集ごとに呼ぶ。後続の編集に追い越された場合は None"""
        key = condition.id
        self._seq += 1
        gen = self._seq
        self._generation[key] = gen
        payload = build_payload(condition)
        self._latest[key] = payload

        local = tuple(validate_condition(condition))
        await self._sleep(self.debounce_sec)
        if self._generation.get(key) != gen:
            return None

        fallback = AdvisoryOutcome(
            payload=payload, local_issues=local, sentence=describe_condition(condition)
        )
        if payload is None or self.is_offline():
            self._settle(key, gen)
            return fallback

        validation, sentence = await asyncio.gather(
            self._remote_validate(payload), self._remote_sentence(payload)
        )
        if self._latest.get(key) != payload:
            log.debug("advisory_stale_response_dropped", condition_id=key)
            return None

        self._settle(key, gen)
        remote = tuple(validation.errors) if validation is not None and not validation.ok else ()
        return AdvisoryOutcome(
            payload=payload,
            local_issues=local,
            remote_issues=remote,
            sentence=sentence.text if sentence is not None else fallback.sentence,
            sentence_source="remote" if sentence is not None else "local",
            remote_checked=validation is not None,
        )
