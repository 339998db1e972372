from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import ClassVar, Literal

from strategy_wizard.adapters.yaml.fallback_loader_yaml import builtin_fallback_definitions
from strategy_wizard.config.defaults import FALLBACK_INDICATORS
from strategy_wizard.domain.dto.indicator_def import IndicatorDefinition, IndicatorSummary
from strategy_wizard.domain.errors import DefinitionUnavailableError, IndicatorApiError
from strategy_wizard.domain.ports.indicator_source import IndicatorSourcePort
from strategy_wizard.shared.logging import get_logger

log = get_logger(__name__)

DefinitionSource = Literal["remote", "session", "fallback", "none"]


@dataclass(frozen=True, slots=True)
class IndicatorListing:
    indicators: tuple[IndicatorSummary, ...]
    offline: bool
    error: str | None = None


@dataclass(frozen=True, slots=True)
class DefinitionLookup:
    definition: IndicatorDefinition | None
    offline: bool
    source: DefinitionSource
    error: str | None = None


class DefinitionCatalog:
    """
    同期層の上に立つ定義カタログ。
    - 定義はセッション中 id をキーに無期限キャッシュ（コールドフェッチのみ）
    - ヘルスチェックで先にオフラインを判定し、タイムアウト待ちを避ける
    - オフライン／失敗時は同梱の固定定義へ決定的に縮退（固定定義はキャッシュしない）
    """

    __responsibility__: ClassVar[str] = "インジケータ一覧・定義の供給とオフライン縮退"

    def __init__(
        self,
        source: IndicatorSourcePort,
        *,
        fallbacks: Mapping[str, IndicatorDefinition] | None = None,
        fallback_list: Iterable[Mapping[str, str]] = FALLBACK_INDICATORS,
        probe_health: bool = True,
    ) -> None:
        self.source = source
        self.fallbacks = dict(fallbacks if fallbacks is not None else builtin_fallback_definitions())
        self.fallback_list = tuple(IndicatorSummary.model_validate(x) for x in fallback_list)
        self.probe_health = probe_health
        self.offline = False
        self._session: dict[str, IndicatorDefinition] = {}

    async def refresh_health(self) -> bool:
        """生存確認し、結果を offline 状態に反映して返す"""
        healthy = await self.source.check_health()
        self.offline = not healthy
        return healthy

    async def _reachable(self) -> bool:
        if not self.probe_health:
            return True
        return await self.refresh_health()

    async def list_indicators(self) -> IndicatorListing:
        if not await self._reachable():
            log.warning("indicator_list_offline_fallback")
            return IndicatorListing(indicators=self.fallback_list, offline=True)
        try:
            items = tuple(await self.source.list_indicators())
        except IndicatorApiError as e:
            self.offline = True
            log.warning("indicator_list_failed", error=str(e))
            return IndicatorListing(indicators=self.fallback_list, offline=True, error=str(e))
        self.offline = False
        return IndicatorListing(indicators=items, offline=False)

    def _fallback(self, indicator_id: str, error: str | None) -> DefinitionLookup:
        d = self.fallbacks.get(indicator_id)
        if d is None:
            log.warning("definition_unavailable_offline", indicator=indicator_id)
            return DefinitionLookup(definition=None, offline=True, source="none", error=error)
        log.warning("definition_offline_fallback", indicator=indicator_id)
        return DefinitionLookup(definition=d, offline=True, source="fallback", error=error)

    async def get_definition(self, indicator_id: str) -> DefinitionLookup:
        cached = self._session.get(indicator_id)
        if cached is not None:
            return DefinitionLookup(definition=cached, offline=self.offline, source="session")
        if not await self._reachable():
            return self._fallback(indicator_id, None)
        try:
            d = await self.source.get_definition(indicator_id)
        except IndicatorApiError as e:
            self.offline = True
            log.warning("definition_fetch_failed", indicator=indicator_id, error=str(e))
            return self._fallback(indicator_id, str(e))
        self.offline = False
        self._session[indicator_id] = d
        return DefinitionLookup(definition=d, offline=False, source="remote")

    async def require_definition(self, indicator_id: str) -> IndicatorDefinition:
        lookup = await self.get_definition(indicator_id)
        if lookup.definition is None:
            raise DefinitionUnavailableError(indicator_id)
        return lookup.definition

    async def definitions_for(self, indicator_ids: Iterable[str]) -> dict[str, IndicatorDefinition]:
        """取得できたものだけを返す（マイグレーション用）"""
        out: dict[str, IndicatorDefinition] = {}
        for i in dict.fromkeys(indicator_ids):
            if not i:
                continue
            lookup = await self.get_definition(i)
            if lookup.definition is not None:
                out[i] = lookup.definition
        return out
