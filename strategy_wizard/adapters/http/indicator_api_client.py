from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from typing import Any, ClassVar, TypeVar
from urllib.parse import quote

import httpx
from pydantic import TypeAdapter

from strategy_wizard.adapters.http.response_cache import ResponseCache
from strategy_wizard.domain.dto.advisory import ConditionPayload, SentenceResult, ValidationResult
from strategy_wizard.domain.dto.indicator_def import IndicatorDefinition, IndicatorSummary
from strategy_wizard.domain.errors import (
    ApiConnectionError,
    ApiStatusError,
    ApiTimeoutError,
    IndicatorApiError,
)
from strategy_wizard.domain.ports.advisory import AdvisoryPort
from strategy_wizard.domain.ports.indicator_source import IndicatorSourcePort
from strategy_wizard.shared.logging import get_logger
from strategy_wizard.shared.settings import WizardEnvSettings

T = TypeVar("T")

log = get_logger(__name__)

INDICATORS_LIST_KEY = "indicators-list"
SUMMARIES = TypeAdapter(tuple[IndicatorSummary, ...])


def definition_cache_key(indicator_id: str) -> str:
    return f"indicator-def-{indicator_id}"


class IndicatorApiClient(IndicatorSourcePort, AdvisoryPort):
    """
    インジケータAPI（/v1/indicators, /v1/conditions/*, /health）の httpx 非同期クライアント。
    - 全呼び出しにハードタイムアウト（読み取り既定5秒、ヘルスチェック2秒）
    - GET は ETag による条件付き再検証。304 はキャッシュ済みの値をそのまま返す
    - 失敗時にキャッシュがあれば（古くても）それを返して warning。無ければ例外
    """

    __responsibility__: ClassVar[str] = "リモート定義カタログ取得と条件アドバイザリ呼び出し"

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        *,
        read_timeout_sec: float = 5.0,
        health_timeout_sec: float = 2.0,
        cache: ResponseCache | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.read_timeout_sec = read_timeout_sec
        self.health_timeout_sec = health_timeout_sec
        self.cache = cache or ResponseCache()
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=read_timeout_sec,
            transport=transport,
        )

    @classmethod
    def from_settings(
        cls, settings: WizardEnvSettings, *, transport: httpx.AsyncBaseTransport | None = None
    ) -> IndicatorApiClient:
        return cls(
            settings.API__BASE_URL,
            read_timeout_sec=settings.API__READ_TIMEOUT_SEC,
            health_timeout_sec=settings.API__HEALTH_TIMEOUT_SEC,
            cache=ResponseCache(ttl_sec=settings.API__CACHE_TTL_SEC),
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> IndicatorApiClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()

    # ---- transport ----
    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        headers: dict[str, str] | None = None,
        timeout_sec: float | None = None,
    ) -> httpx.Response:
        limit = timeout_sec or self.read_timeout_sec
        try:
            # httpx の timeout はフェーズ単位なので、全体の上限を別に掛ける
            async with asyncio.timeout(limit):
                return await self._client.request(
                    method, path, json=json, headers=headers, timeout=limit
                )
        except (httpx.TimeoutException, TimeoutError) as e:
            raise ApiTimeoutError(f"Request timeout: {method} {path}") from e
        except httpx.RequestError as e:  # 接続失敗・本文デコード失敗など
            raise ApiConnectionError(f"Failed to reach {self.base_url}{path}: {e}") from e

    @staticmethod
    def _ensure_ok(resp: httpx.Response, what: str) -> None:
        if not resp.is_success:
            raise ApiStatusError(
                f"{what}: HTTP {resp.status_code} {resp.reason_phrase}", resp.status_code
            )

    @staticmethod
    def _parse(resp: httpx.Response, parse: Callable[[Any], T]) -> T:
        try:
            return parse(resp.json())
        except ValueError as e:  # JSONDecodeError / pydantic.ValidationError
            raise IndicatorApiError(f"Malformed response body: {e}", resp.status_code) from e

    async def _fetch_cached(self, path: str, key: str, parse: Callable[[Any], T]) -> T:
        cached = self.cache.get(key)
        fresh = self.cache.get_fresh(key)
        headers = {"If-None-Match": fresh.etag} if fresh is not None and fresh.etag else None
        try:
            resp = await self._request("GET", path, headers=headers)
            if resp.status_code == httpx.codes.NOT_MODIFIED:
                if cached is None:
                    raise ApiStatusError("Not Modified without a cached entry", resp.status_code)
                self.cache.touch(key)
                return cached.payload
            self._ensure_ok(resp, f"GET {path}")
            payload = self._parse(resp, parse)
            self.cache.put(key, etag=resp.headers.get("ETag"), payload=payload, raw=resp.content)
            return payload
        except IndicatorApiError as e:
            if cached is None:
                raise
            log.warning(
                "api_error_using_cache",
                key=key,
                error=str(e),
                stale=fresh is None,
            )
            return cached.payload

    # ---- catalog ----
    async def list_indicators(self) -> Sequence[IndicatorSummary]:
        return await self._fetch_cached(
            "/v1/indicators",
            INDICATORS_LIST_KEY,
            SUMMARIES.validate_python,
        )

    async def get_definition(self, indicator_id: str) -> IndicatorDefinition:
        return await self._fetch_cached(
            f"/v1/indicators/{quote(indicator_id, safe='')}",
            definition_cache_key(indicator_id),
            IndicatorDefinition.model_validate,
        )

    async def check_health(self) -> bool:
        try:
            resp = await self._request("GET", "/health", timeout_sec=self.health_timeout_sec)
        except IndicatorApiError as e:
            log.info("health_check_failed", error=str(e))
            return False
        return resp.is_success

    # ---- advisory ----
    async def validate_condition(self, payload: ConditionPayload) -> ValidationResult:
        resp = await self._request("POST", "/v1/conditions/validate", json=payload.to_wire())
        self._ensure_ok(resp, "Validation failed")
        return self._parse(resp, ValidationResult.model_validate)

    async def get_sentence(self, payload: ConditionPayload) -> SentenceResult:
        resp = await self._request("POST", "/v1/conditions/sentence", json=payload.to_wire())
        self._ensure_ok(resp, "Sentence generation failed")
        return self._parse(resp, SentenceResult.model_validate)
