"""Whoop dashboard command line interface."""

import asyncio
import webbrowser
from datetime import datetime

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from whoopdash.config.logs import configure_logging
from whoopdash.config.settings import settings

app = typer.Typer(
    name="whoopdash",
    help="Whoop Dashboard - fetch Whoop data into the dashboard snapshot",
    no_args_is_help=True,
)
passport_app = typer.Typer(help="Manage the stored Whoop token passport", no_args_is_help=True)
app.add_typer(passport_app, name="passport")

console = Console()


@app.callback()
def main(
    log_level: str | None = typer.Option(None, help="Override LOG_LEVEL"),
    json_logs: bool = typer.Option(False, "--json-logs", help="Emit JSON log lines"),
):
    """Configure logging for every command."""
    configure_logging(
        log_level or settings.log_level,
        "json" if json_logs else settings.log_format,
    )


@app.command()
def sync():
    """Fetch Whoop data once and write the snapshot file."""
    from whoopdash.sync import run_sync

    exit_code = asyncio.run(run_sync())
    if exit_code == 0:
        console.print(f"[green]✓ Snapshot written to {settings.dashboard.snapshot_file}[/green]")
    else:
        console.print(f"[red]✗ Fetch failed; error snapshot written to {settings.dashboard.snapshot_file}[/red]")
    raise typer.Exit(exit_code)


@app.command()
def schedule(
    interval: int | None = typer.Option(None, help="Minutes between fetches (default: DASHBOARD_SYNC_INTERVAL_MINUTES)"),
    run_now: bool = typer.Option(True, help="Fetch once immediately on start"),
):
    """Run the fetch cycle on an interval until interrupted."""
    from whoopdash.autonomous.scheduler import run_scheduler

    console.print(Panel("Whoop Sync Scheduler", style="blue"))
    try:
        asyncio.run(run_scheduler(interval, run_now=run_now))
    except KeyboardInterrupt:
        console.print("[yellow]Scheduler stopped[/yellow]")


@app.command()
def login(
    timeout: float = typer.Option(180.0, help="Seconds to wait for the browser callback"),
    open_browser: bool = typer.Option(True, help="Open the authorization URL automatically"),
):
    """Authorize with Whoop in the browser and store the first token passport."""
    from whoopdash.auth.bootstrap import (
        AuthorizationError,
        build_authorize_url,
        exchange_code,
        new_state,
        wait_for_callback,
    )
    from whoopdash.adapters.base import ReauthorizationRequired
    from whoopdash.auth.store import TokenStore

    console.print(Panel("Whoop OAuth Setup", style="blue"))

    whoop = settings.whoop
    client_secret = whoop.client_secret.get_secret_value()
    if not whoop.client_id or not client_secret:
        console.print(
            "[yellow]Whoop credentials not configured.[/yellow]\n"
            "1. Go to https://developer.whoop.com/\n"
            "2. Create an application\n"
            "3. Add to .env:\n"
            "   WHOOP_CLIENT_ID=your_client_id\n"
            "   WHOOP_CLIENT_SECRET=your_client_secret\n"
            f"4. Register the redirect URI {whoop.redirect_uri}"
        )
        raise typer.Exit(1)

    state = new_state()
    url = build_authorize_url(whoop.auth_url, whoop.client_id, whoop.redirect_uri, whoop.scopes, state)
    console.print(f"Open this URL if the browser does not start:\n{url}\n")
    if open_browser:
        webbrowser.open(url)

    try:
        code = wait_for_callback(whoop.redirect_uri, state, timeout=timeout)
        record = asyncio.run(
            exchange_code(
                code,
                client_id=whoop.client_id,
                client_secret=client_secret,
                redirect_uri=whoop.redirect_uri,
                token_url=whoop.token_url,
                timeout=settings.dashboard.request_timeout_seconds,
            )
        )
    except (AuthorizationError, ReauthorizationRequired) as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(1)

    TokenStore(settings.dashboard.token_file).save(record)
    console.print(f"[green]✓ Whoop authenticated! Passport saved to {settings.dashboard.token_file}[/green]")


@passport_app.command("setup")
def passport_setup(
    expires_in: int = typer.Option(86400, prompt="Token expiration in seconds", help="Access token lifetime"),
):
    """Create a passport from tokens copied out of the Whoop developer portal."""
    from whoopdash.auth.bootstrap import create_passport
    from whoopdash.auth.store import TokenStore

    console.print(Panel("Whoop Access Token Passport Setup", style="blue"))
    access_token = typer.prompt("Access Token", hide_input=True)
    refresh_token = typer.prompt("Refresh Token", hide_input=True)

    try:
        record = create_passport(access_token, refresh_token, expires_in)
    except ValueError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(1)

    TokenStore(settings.dashboard.token_file).save(record)
    console.print(f"[green]✓ Passport saved to {settings.dashboard.token_file}[/green]")


@passport_app.command("info")
def passport_info():
    """Show when the stored passport was issued and when it expires."""
    from whoopdash.auth.store import TokenStore
    from whoopdash.auth.tokens import utcnow

    record = TokenStore(settings.dashboard.token_file).load()
    if record is None:
        console.print("[yellow]No passport found. Run `whoopdash login` or `whoopdash passport setup`.[/yellow]")
        raise typer.Exit(1)

    now = utcnow()
    remaining = record.seconds_remaining(now)
    expired = remaining <= 0

    table = Table(title="Whoop Access Token Passport")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("File", str(settings.dashboard.token_file))
    table.add_row("Issued", _local(record.issued_at))
    table.add_row("Expires", _local(record.expires_at))
    table.add_row("Scope", record.scope or "-")
    if expired:
        table.add_row("Status", "[red]EXPIRED[/red] (refreshed automatically on next use)")
    else:
        table.add_row("Status", "[green]VALID[/green]")
        table.add_row("Time remaining", f"{remaining // 3600}h {(remaining % 3600) // 60}m")
    console.print(table)


@passport_app.command("refresh")
def passport_refresh():
    """Refresh the access token now, regardless of expiry."""
    from whoopdash.adapters.base import WhoopDashError
    from whoopdash.sync import build_token_manager

    manager = build_token_manager(settings.whoop, settings.dashboard)
    record = manager.store.load()
    refresh_token = record.refresh_token if record else settings.whoop.refresh_token.get_secret_value()
    if not refresh_token:
        console.print("[red]✗ No refresh token stored or configured[/red]")
        raise typer.Exit(1)

    try:
        refreshed = asyncio.run(manager.refresh(refresh_token))
    except WhoopDashError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]✓ Token refreshed, expires {_local(refreshed.expires_at)}[/green]")
    if refreshed.refresh_token != refresh_token:
        console.print("[yellow]The refresh token was rotated; update WHOOP_REFRESH_TOKEN if you keep it outside the passport file.[/yellow]")


@passport_app.command("delete")
def passport_delete(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Delete the stored passport."""
    from whoopdash.auth.store import TokenStore

    store = TokenStore(settings.dashboard.token_file)
    if not store.path.exists():
        console.print("No passport file found.")
        return
    if not yes and not typer.confirm("Are you sure you want to delete your passport?"):
        console.print("Passport deletion cancelled.")
        return
    store.delete()
    console.print("[green]✓ Passport deleted[/green]")


@app.command()
def version():
    """Show whoopdash version."""
    from whoopdash import __version__

    console.print(f"whoopdash v{__version__}")


def _local(moment: datetime) -> str:
    return moment.astimezone().strftime("%Y-%m-%d %H:%M:%S %Z")


if __name__ == "__main__":
    app()
