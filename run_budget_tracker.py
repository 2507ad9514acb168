"""Mini README: Entry point CLI for launching the cyclebudget dashboard.

This script exposes a Typer CLI that starts the FastAPI application with
configurable host, port and production flags. Defaults come from
``CYCLEBUDGET_`` environment variables when they are set.
"""

from __future__ import annotations

import typer
import uvicorn

from cyclebudget.configuration import get_settings
from cyclebudget.logging_utils import configure_root_logger

cli = typer.Typer(help="Launch the cyclebudget expense dashboard.")


@cli.command()
def run(
    host: str = typer.Option(None, help="Host interface to bind."),
    port: int = typer.Option(None, help="Port to listen on."),
    production: bool = typer.Option(
        False, help="Use production server settings (disable auto-reload)."
    ),
) -> None:
    """Start the dashboard using uvicorn."""

    settings = get_settings()
    effective_host = host or settings.interface_host
    effective_port = port or settings.interface_port
    configure_root_logger()

    # Browsers cannot navigate to the wildcard bind address.
    browser_host = "127.0.0.1" if effective_host in {"0.0.0.0", "::"} else effective_host
    typer.echo(
        f"Starting cyclebudget on {effective_host}:{effective_port} "
        f"(storage namespace '{settings.resource_namespace}').\n"
        f"Open your browser at http://{browser_host}:{effective_port}"
    )
    uvicorn.run(
        "cyclebudget.interface.web_app:create_application",
        host=effective_host,
        port=effective_port,
        factory=True,
        reload=not production,
    )


if __name__ == "__main__":
    cli()
