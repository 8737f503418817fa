"""
CLI: ``sheet-server serve``, start the HTTP server.
"""

from __future__ import annotations

import os

import typer
import uvicorn

from sheetserver.api.deps import get_settings
from sheetserver.cli.utils import console

app = typer.Typer(no_args_is_help=True)


@app.command("start")
def start(
    host: str | None = typer.Option(None, "--host", "-h", help="Bind address [default: settings]"),
    port: int | None = typer.Option(None, "--port", "-p", help="Bind port [default: settings]"),
    static_dir: str | None = typer.Option(None, "--static-dir", help="Directory served for unmatched paths"),
    reload: bool = typer.Option(False, "--reload", help="Auto-reload on changes"),
    log_level: str = typer.Option("info", "--log-level"),
) -> None:
    """Start the sheet-server REST API.

    Spreadsheets live in process memory, so the server always runs a single worker.
    """
    if static_dir is not None:
        # The app factory reads settings from the environment of the worker.
        os.environ["SHEETSERVER_STATIC_DIR"] = static_dir
    settings = get_settings()
    host = host or settings.host
    port = port or settings.port

    console.print(f"[bold green]Starting sheet-server[/bold green] on {host}:{port}")
    uvicorn.run(
        "sheetserver.api:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        workers=1,
        log_level=log_level,
    )
