from __future__ import annotations

import asyncio

import pytest

from strategy_wizard.adapters.static.static_indicator_source import StaticIndicatorSource
from strategy_wizard.apps.catalog.definition_catalog import DefinitionCatalog
from strategy_wizard.domain.errors import ApiTimeoutError, DefinitionUnavailableError


class FlakySource(StaticIndicatorSource):
    """StaticIndicatorSource に生存状態・失敗注入・呼び出し回数を足したもの"""

    def __init__(self, definitions, *, healthy=True, fail=None):
        super().__init__(definitions)
        self.healthy = healthy
        self.fail = fail
        self.calls: list[str] = []

    async def check_health(self):
        self.calls.append("health")
        return self.healthy

    async def list_indicators(self):
        self.calls.append("list")
        if self.fail:
            raise self.fail
        return await super().list_indicators()

    async def get_definition(self, indicator_id):
        self.calls.append(f"get:{indicator_id}")
        if self.fail:
            raise self.fail
        return await super().get_definition(indicator_id)


@pytest.fixture
def remote_defs(defs):
    # リモート側は版違いにして縮退と区別する
    return {k: v.model_copy(update={"version": "2.0.0"}) for k, v in defs.items()}


def test_definitions_are_cached_for_the_session(remote_defs):
    source = FlakySource(remote_defs)
    catalog = DefinitionCatalog(source)

    async def scenario():
        return await catalog.get_definition("RSI"), await catalog.get_definition("RSI")

    first, second = asyncio.run(scenario())
    assert (first.source, second.source) == ("remote", "session")
    assert second.definition is first.definition
    assert first.definition.version == "2.0.0"
    assert source.calls == ["health", "get:RSI"]
    assert not catalog.offline


def test_unhealthy_source_falls_back_without_fetching(remote_defs):
    source = FlakySource(remote_defs, healthy=False)
    catalog = DefinitionCatalog(source)

    lookup = asyncio.run(catalog.get_definition("MACD"))
    assert lookup.source == "fallback"
    assert lookup.offline
    assert lookup.definition.version == "1.0.0"
    assert source.calls == ["health"]
    assert catalog.offline


def test_fetch_failure_falls_back_and_recovers(remote_defs):
    source = FlakySource(remote_defs, fail=ApiTimeoutError())
    catalog = DefinitionCatalog(source)

    async def scenario():
        down = await catalog.get_definition("EMA")
        source.fail = None
        up = await catalog.get_definition("EMA")
        return down, up

    down, up = asyncio.run(scenario())
    assert down.source == "fallback"
    assert down.error == "Request timeout"
    # 縮退した定義はセッションに残さない
    assert up.source == "remote"
    assert up.definition.version == "2.0.0"
    assert not catalog.offline


def test_unknown_indicator_offline(remote_defs):
    catalog = DefinitionCatalog(FlakySource(remote_defs, healthy=False))
    lookup = asyncio.run(catalog.get_definition("SUPERTREND"))
    assert lookup.definition is None
    assert lookup.source == "none"
    with pytest.raises(DefinitionUnavailableError) as exc:
        asyncio.run(catalog.require_definition("SUPERTREND"))
    assert exc.value.indicator_id == "SUPERTREND"


def test_unknown_indicator_online_is_a_fetch_failure(remote_defs):
    catalog = DefinitionCatalog(FlakySource(remote_defs))
    lookup = asyncio.run(catalog.get_definition("SUPERTREND"))
    assert lookup.source == "none"
    assert "Unknown indicator" in lookup.error


def test_indicator_listing(remote_defs):
    source = FlakySource(remote_defs)
    catalog = DefinitionCatalog(source)
    listing = asyncio.run(catalog.list_indicators())
    assert not listing.offline
    assert {i.version for i in listing.indicators} == {"2.0.0"}

    source.healthy = False
    listing = asyncio.run(catalog.list_indicators())
    assert listing.offline
    assert [i.id for i in listing.indicators] == [
        "RSI", "EMA", "BBANDS", "MACD", "ADX", "DI", "VWAP"
    ]


def test_definitions_for_skips_blanks_and_missing(remote_defs):
    source = FlakySource(remote_defs)
    catalog = DefinitionCatalog(source, probe_health=False)
    out = asyncio.run(catalog.definitions_for(["RSI", "", "RSI", "NOPE", "EMA"]))
    assert sorted(out) == ["EMA", "RSI"]
    assert "health" not in source.calls
    assert source.calls.count("get:RSI") == 1
