"""Serve mode: run the FastAPI gateway with uvicorn."""

import sys

import typer
import uvicorn

from src.api import create_app
from src.config import SERVER_PORT

from .shared import console, logger
from .validate_config import missing_settings


def serve(
    port: int = typer.Option(SERVER_PORT, "--port", "-p", help="Port for the HTTP server"),
    host: str = typer.Option("0.0.0.0", "--host", "-h", help="Bind host"),
) -> None:
    """Start the gateway HTTP server."""
    log = logger.bind(command="serve", port=port)
    log.info("serve.start")

    missing = missing_settings()
    if missing:
        console.print(f"[red]Missing environment variables: {', '.join(missing)}[/red]")
        log.warning("serve.missing_env", missing=missing)
        raise typer.Exit(1)

    app = create_app()
    console.print(f"[green]Starting gateway on http://{host}:{port}[/green]")
    console.print("[dim]Endpoints: /health, /auth/app-token, /api/organization, /api/discovery/*, /api/meetings/find, /api/messaging/chats/find[/dim]")
    try:
        uvicorn.run(
            app,
            host=host,
            port=port,
            log_level="info",
            timeout_graceful_shutdown=15,
        )
    except KeyboardInterrupt:
        console.print("\n[dim]Shutting down...[/dim]")
        sys.exit(0)
