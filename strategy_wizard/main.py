from __future__ import annotations

import typer

from strategy_wizard.apps.entry.cli import app as entry_cli_app

"""
ルート集約Typer。
例: python -m strategy_wizard.main entry draft-validate --offline
"""

app = typer.Typer(help="strategy-wizard root CLI", no_args_is_help=True)

# `entry` サブコマンド配下にエントリー条件の CLI をぶら下げる
app.add_typer(entry_cli_app, name="entry", help="Entry rule catalog and draft commands")


if __name__ == "__main__":
    app()
