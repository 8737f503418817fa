"""
CLI: ``sheet-server config``, inspect the effective settings.
"""

from __future__ import annotations

import typer
from rich.table import Table

from sheetserver.api.settings import SheetServerSettings
from sheetserver.cli.utils import console, err_console
from sheetserver.core.errors import SheetServerError
from sheetserver.core.locales import LocaleTable

app = typer.Typer(no_args_is_help=True)


@app.command("show")
def show_config(
    format: str = typer.Option("table", "--format", "-f", help="Output format: table, json, env"),
) -> None:
    """Show current configuration."""
    settings = SheetServerSettings()

    if format == "json":
        console.print_json(settings.model_dump_json())
        return

    if format == "env":
        for key, value in sorted(settings.model_dump().items()):
            console.print(f"SHEETSERVER_{key.upper()}={value}")
        return

    table = Table(title="sheet-server settings")
    table.add_column("Setting")
    table.add_column("Value")
    for key, value in sorted(settings.model_dump().items()):
        table.add_row(key, str(value))
    console.print(table)


@app.command("validate")
def validate_config() -> None:
    """Validate configuration, including the default locale."""
    try:
        settings = SheetServerSettings()
        locale = LocaleTable().require(settings.default_locale)
    except (ValueError, SheetServerError) as e:
        err_console.print(f"[red]Configuration Error:[/red] {e}")
        raise typer.Exit(1) from e

    console.print(f"[green]✓[/green] Configuration valid (default locale {locale})")
