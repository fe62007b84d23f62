"""Token commands: inspect/evict cached delegated credentials, fetch the app-only token."""

import asyncio
from datetime import datetime, timezone

import typer
from rich.table import Table

from src.auth import AuthError, ServiceCredentialCache

from .shared import build_endpoint, console, logger, open_store


def tokens(
    forget: str | None = typer.Option(None, "--forget", "-f", help="Evict one cached identity"),
    clear: bool = typer.Option(False, "--clear", help="Evict every cached identity"),
) -> None:
    """List cached delegated credentials (identity and refresh deadline)."""
    log = logger.bind(command="tokens")
    store = open_store()

    if clear:
        asyncio.run(store.clear())
        console.print("[green]Credential store cleared.[/green]")
        log.info("tokens.cleared", path=str(store.path))
        return
    if forget:
        removed = asyncio.run(store.evict(forget))
        if not removed:
            console.print(f"[yellow]No cached credential for {forget!r}[/yellow]")
            raise typer.Exit(1)
        console.print(f"[green]Evicted {forget}[/green]")
        log.info("tokens.evicted", identity=forget)
        return

    now = datetime.now(timezone.utc)
    table = Table(title=f"Cached delegated credentials ({store.path})")
    table.add_column("Identity", style="cyan")
    table.add_column("Refresh after (UTC)", style="green")
    table.add_column("State", justify="center")
    for identity in store.identities():
        record = store.get(identity)
        state = "fresh" if record.is_fresh(now) else "[yellow]stale[/yellow]"
        table.add_row(identity, record.expires_at.isoformat(timespec="seconds"), state)
    console.print(table)
    log.info("tokens.listed", count=len(store))


def app_token() -> None:
    """Acquire the application token via client credentials and show its expiry."""
    log = logger.bind(command="app-token")
    cache = ServiceCredentialCache(build_endpoint())
    try:
        asyncio.run(cache.obtain())
    except AuthError as e:
        console.print(f"[red]Client-credentials exchange failed: {e}[/red]")
        log.error("app_token.fail", error=str(e), retryable=e.retryable)
        raise typer.Exit(1) from e
    console.print(f"[green]Application token acquired; refresh after {cache.expires_at.isoformat(timespec='seconds')}[/green]")
    log.info("app_token.ok")
