"""CLI commands for running the site and managing the access token.

Commands:
- openheart serve [--host HOST] [--port PORT] [--session-db PATH] [--no-login]
- openheart status [--url URL]
- openheart auth show/reset/rotate
"""

from __future__ import annotations

from pathlib import Path

import click
from rich.console import Console
from rich.panel import Panel

from openheart.config import Settings

console = Console()


@click.command()
@click.option("--host", default="127.0.0.1", help="Bind host")
@click.option("--port", default=47300, help="Bind port")
@click.option(
    "--session-db",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Keep sessions in this SQLite file instead of memory",
)
@click.option("--no-login", is_flag=True, help="Disable login (form unreachable)")
@click.option("--log-level", default="info", help="Log level")
def serve(
    host: str, port: int, session_db: Path | None, no_login: bool, log_level: str
):
    """Start the web server."""
    from openheart.web.app import run_server

    settings = Settings(host=host, port=port, login_enabled=not no_login)
    if session_db is not None:
        settings.session_backend = "sqlite"
        settings.session_db_path = session_db.expanduser()

    console.print(f"[bold blue]Starting {settings.site_name}[/bold blue]")
    console.print(f"[dim]Binding to http://{host}:{port}[/dim]")
    if host not in ("127.0.0.1", "localhost"):
        console.print(
            "[yellow]Warning: listening on a non-loopback address[/yellow]"
        )
    if no_login:
        console.print(
            Panel(
                "[yellow]Login disabled:[/yellow]\n"
                "• /reviews/new always shows 'Authentication Required'\n"
                "• /login does not accept tokens",
                title="No Login",
            )
        )

    try:
        run_server(host=host, port=port, settings=settings, log_level=log_level)
    except KeyboardInterrupt:
        console.print("\n[yellow]Server stopped by user[/yellow]")


@click.command()
@click.option("--url", default="http://127.0.0.1:47300", help="Server base URL")
def status(url: str):
    """Check whether the server is up."""
    import sys

    import httpx
    from rich.table import Table

    try:
        response = httpx.get(f"{url.rstrip('/')}/health", timeout=5.0)
    except httpx.ConnectError:
        console.print("[red]Cannot connect to server[/red]")
        console.print("[dim]Is it running? Start with: openheart serve[/dim]")
        sys.exit(1)

    if response.status_code != 200:
        console.print(f"[red]Server returned {response.status_code}[/red]")
        console.print(f"[dim]{response.text}[/dim]")
        sys.exit(1)

    data = response.json()
    table = Table(title="Server Status")
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Status", data.get("status", "unknown"))
    table.add_row("Version", data.get("version", "unknown"))
    table.add_row("Session Backend", data.get("session_backend", "unknown"))
    console.print(table)


@click.group()
def auth():
    """Access token management."""
    pass


@auth.command("show")
@click.option("--reveal", is_flag=True, help="Print the full token")
def show_token(reveal: bool):
    """Show the token the login form accepts (masked unless --reveal)."""
    import sys

    from openheart.web import tokens

    try:
        token = tokens.vault.load()
    except tokens.SecurityError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)
    if token:
        shown = token if reveal else tokens.mask_token(token)
        console.print(f"[bold]Token:[/bold] {shown}")
        console.print(f"[dim]Stored in the OS keychain or {tokens.vault.path}[/dim]")
    else:
        console.print("[yellow]No access token found.[/yellow]")
        console.print("[dim]Run 'openheart auth reset' to generate one.[/dim]")


@auth.command("reset")
@click.confirmation_option(prompt="This will invalidate the current token. Continue?")
def reset_token():
    """Delete the access token and generate a new one."""
    from openheart.web import tokens

    new_token = tokens.vault.reset()
    console.print("[green]✓ Access token reset[/green]")
    console.print(f"[bold]New token:[/bold] {tokens.mask_token(new_token)}")
    console.print("[yellow]Note: Restart the server to pick up the new token.[/yellow]")


@auth.command("rotate")
def rotate_token():
    """Replace the access token. Existing logins stay valid."""
    from openheart.web import tokens

    new_token = tokens.vault.rotate()
    console.print("[green]✓ Access token rotated[/green]")
    console.print(f"[bold]New token:[/bold] {tokens.mask_token(new_token)}")
    console.print("[yellow]Note: Restart the server to pick up the new token.[/yellow]")


def register_cli_commands(cli_group):
    """Register server and auth commands with the main CLI."""
    cli_group.add_command(serve)
    cli_group.add_command(status)
    cli_group.add_command(auth)
