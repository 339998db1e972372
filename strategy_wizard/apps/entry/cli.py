from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path

import typer
from dotenv import load_dotenv

from strategy_wizard.adapters.http.indicator_api_client import IndicatorApiClient
from strategy_wizard.adapters.static.static_indicator_source import StaticIndicatorSource
from strategy_wizard.adapters.storage.json_draft_store import JsonFileDraftStore
from strategy_wizard.adapters.yaml.fallback_loader_yaml import builtin_fallback_definitions
from strategy_wizard.apps.catalog.definition_catalog import DefinitionCatalog
from strategy_wizard.apps.entry.advisory import AdvisoryChecker
from strategy_wizard.apps.entry.draft_service import DraftService, default_entry_rules
from strategy_wizard.config.defaults import TIMEFRAMES
from strategy_wizard.domain.dto.entry_rules import IndicatorCondition
from strategy_wizard.domain.errors import DefinitionUnavailableError
from strategy_wizard.domain.services.pairing_resolver import (
    operator_label,
    subject_label,
    target_label,
    valid_subjects,
    valid_targets,
)
from strategy_wizard.domain.services.rule_validator import validate_rule_set
from strategy_wizard.domain.services.sentence import describe_trigger
from strategy_wizard.shared.logging import get_logger, setup_logging
from strategy_wizard.shared.settings import WizardEnvSettings

app = typer.Typer(help="エントリー条件エンジン CLI（定義カタログ／ドラフト検証）", no_args_is_help=True)

OFFLINE_OPTION = typer.Option(False, "--offline", help="ネットワークを使わず同梱の定義だけで動かす")
PATH_OPTION = typer.Option(None, "--path", help="ドラフトJSONのパス（既定: DRAFT__PATH）")


@asynccontextmanager
async def _catalog(offline: bool):
    if offline:
        source = StaticIndicatorSource(builtin_fallback_definitions())
        yield DefinitionCatalog(source, probe_health=False)
        return
    client = IndicatorApiClient.from_settings(WizardEnvSettings())
    try:
        yield DefinitionCatalog(client)
    finally:
        await client.aclose()


def _bootstrap() -> WizardEnvSettings:
    load_dotenv()
    setup_logging(reset_handlers=True, console_output=True, json_format=False)
    return WizardEnvSettings()


@app.command("indicators")
def list_indicators(offline: bool = OFFLINE_OPTION) -> None:
    """利用可能なインジケータ一覧を表示。"""
    _bootstrap()

    async def _run() -> None:
        async with _catalog(offline) as catalog:
            listing = await catalog.list_indicators()
        if listing.offline:
            typer.secho("⚠ オフライン: 同梱の一覧を表示しています", fg=typer.colors.YELLOW)
        for item in listing.indicators:
            typer.echo(f"{item.id:<8} {item.label} (v{item.version})")

    asyncio.run(_run())


@app.command("definition")
def show_definition(indicator_id: str, offline: bool = OFFLINE_OPTION) -> None:
    """インジケータの比較文法（Subject → Target → Operator）を表示。"""
    _bootstrap()

    async def _run() -> None:
        async with _catalog(offline) as catalog:
            definition = await catalog.require_definition(indicator_id)
        typer.echo(f"{definition.label} (v{definition.version})")
        for subject in valid_subjects(definition):
            for entry in valid_targets(definition, subject):
                ops = ", ".join(operator_label(o) for o in entry.operators)
                typer.echo(f"  {subject_label(subject)} vs {target_label(entry.target)}: {ops}")

    try:
        asyncio.run(_run())
    except DefinitionUnavailableError as e:
        get_logger(__name__).error("definition_unavailable", error=str(e))
        typer.secho(f"❌ エラー: {e}", fg=typer.colors.RED)
        raise typer.Exit(code=1) from None


@app.command("draft-init")
def draft_init(path: Path | None = PATH_OPTION) -> None:
    """既定のエントリールールでドラフトを作成。"""
    settings = _bootstrap()
    store = JsonFileDraftStore(path or Path(settings.DRAFT__PATH))
    try:
        DraftService(store).save_entry_rules(default_entry_rules())
    except (OSError, ValueError) as e:
        # 読めないドラフトは上書きしない（他のメタデータを失うため）
        get_logger(__name__).error("draft_save_failed", path=str(store.path), error=str(e))
        typer.secho(f"❌ ドラフトを保存できません: {store.path}: {e}", fg=typer.colors.RED)
        raise typer.Exit(code=1) from None
    typer.echo(f"✅ ドラフトを書き込みました: {store.path}")


@app.command("draft-validate")
def draft_validate(path: Path | None = PATH_OPTION, offline: bool = OFFLINE_OPTION) -> None:
    """ドラフトを読み込み（必要ならマイグレーション）、ローカル検証結果を表示。"""
    settings = _bootstrap()
    store = JsonFileDraftStore(path or Path(settings.DRAFT__PATH))

    async def _run():
        async with _catalog(offline) as catalog:
            return await DraftService(store, catalog=catalog).load_entry_rules()

    rules = asyncio.run(_run())
    if rules is None:
        typer.secho(f"❌ エントリールールが見つかりません: {store.path}", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    for slot, trigger in rules.active_triggers():
        typer.echo(f"Main Trigger {slot}: {describe_trigger(trigger)}")
    issues = validate_rule_set(rules)
    if issues:
        for issue in issues:
            typer.secho(f"  - {issue}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    typer.echo("✅ 検証OK")


@app.command("timeframes")
def list_timeframes() -> None:
    """選択できる時間足のプリセットを表示。"""
    for key, label in TIMEFRAMES.items():
        typer.echo(f"{key:<4} {label}")


@app.command("draft-check")
def draft_check(path: Path | None = PATH_OPTION, offline: bool = OFFLINE_OPTION) -> None:
    """メイントリガーごとにアドバイザリチェック（リモート検証と文章生成）を実行。
    オフライン時はローカル検証とローカル定型文だけになる。"""
    settings = _bootstrap()
    store = JsonFileDraftStore(path or Path(settings.DRAFT__PATH))

    async def _run():
        async with IndicatorApiClient.from_settings(settings) as client:
            source = StaticIndicatorSource(builtin_fallback_definitions()) if offline else client
            catalog = DefinitionCatalog(source, probe_health=not offline)
            rules = await DraftService(store, catalog=catalog).load_entry_rules()
            if rules is None:
                return None
            checker = AdvisoryChecker.from_settings(
                client, settings, is_offline=lambda: offline or catalog.offline
            )
            return [
                (slot, await checker.check(t))
                for slot, t in rules.active_triggers()
                if isinstance(t, IndicatorCondition)
            ]

    results = asyncio.run(_run())
    if results is None:
        typer.secho(f"❌ エントリールールが見つかりません: {store.path}", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    blocked = False
    for slot, outcome in results:
        if outcome is None:
            continue
        typer.echo(f"Main Trigger {slot}: {outcome.sentence} [{outcome.sentence_source}]")
        for issue in outcome.issues:
            typer.secho(f"  - {issue}", fg=typer.colors.RED)
        blocked = blocked or not outcome.can_save
    if blocked:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
