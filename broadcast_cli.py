"""
Broadcast Server CLI.

    broadcast-server start     Start the broadcast server
    broadcast-server connect   Connect an interactive client to the server

Both commands read the port from PORT (environment or config.env),
default 5001.
"""

import asyncio

import typer
from rich.console import Console
from rich.markup import escape

from broadcast_gateway import __version__
from broadcast_shared.config.settings import DEFAULT_PORT, settings
from broadcast_shared.config.logging import setup_logging
from broadcast_shared.utils.exceptions import ServerUnavailableError

app = typer.Typer(
    name="broadcast-server",
    help="CLI for Broadcast Server",
    add_completion=False,
)
console = Console()


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"broadcast-server {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show the version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
):
    """CLI for Broadcast Server."""


# =============================================================================
# Server
# =============================================================================

@app.command()
def start(
    host: str = typer.Option(None, "--host", help=f"Interface to bind (default: {settings.host})"),
    port: int = typer.Option(None, "--port", "-p", help=f"Port to listen on (default: PORT or {DEFAULT_PORT})"),
):
    """Start the broadcast server."""
    from broadcast_gateway.server import run_server

    setup_logging()

    for problem in settings.validate_production_settings():
        console.print(f"[yellow]⚠ {problem}[/yellow]")

    exit_code = run_server(host or settings.host, port or settings.port)
    raise typer.Exit(exit_code)


# =============================================================================
# Client
# =============================================================================

@app.command()
def connect(
    host: str = typer.Option(None, "--host", help=f"Server host (default: {settings.client_host})"),
    port: int = typer.Option(None, "--port", "-p", help=f"Server port (default: PORT or {DEFAULT_PORT})"),
):
    """Connect a client to the broadcast server (WebSocket)."""
    from broadcast_client.shell import InteractiveShell

    url = settings.server_url(host, port)
    shell = InteractiveShell(url, console=console)

    try:
        exit_code = asyncio.run(shell.run())
    except ServerUnavailableError as e:
        console.print(f"[red]❌ Connection failed: {escape(str(e))}[/red]")
        console.print("Make sure the server is running with 'broadcast-server start'")
        raise typer.Exit(1)
    except KeyboardInterrupt:
        exit_code = 0

    raise typer.Exit(exit_code)


if __name__ == "__main__":
    app()
