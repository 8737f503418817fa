"""
Root Typer application for the sheet-server CLI.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as pkg_version

import typer
from typer import Typer

app = Typer(
    name="sheet-server",
    help="sheet-server: multi-tenant spreadsheet HTTP server.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

FALLBACK_VERSION = "0.1.0"


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        try:
            v = pkg_version("sheet-server")
        except PackageNotFoundError:
            v = FALLBACK_VERSION
        typer.echo(f"sheet-server {v}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """sheet-server CLI: run and configure the spreadsheet server."""


# ── Sub-command registration ─────────────────────────────────────────────

from sheetserver.cli.config import app as config_app  # noqa: E402
from sheetserver.cli.serve import app as serve_app  # noqa: E402

app.add_typer(serve_app, name="serve", help="Start the HTTP server.")
app.add_typer(config_app, name="config", help="Configuration inspection.")
