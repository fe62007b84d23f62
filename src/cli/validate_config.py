"""Validate configuration: required Azure AD settings, token store location."""

from src import config

from .shared import console, logger

REQUIRED_SETTINGS = ("AZURE_TENANT_ID", "AZURE_CLIENT_ID", "AZURE_CLIENT_SECRET")


def missing_settings() -> list[str]:
    return [name for name in REQUIRED_SETTINGS if not getattr(config, name)]


def validate_config() -> None:
    """Check required environment variables and print the effective settings."""
    log = logger.bind(command="validate-config")
    log.info("validate_config.start")

    missing = missing_settings()
    if missing:
        for name in missing:
            console.print(f"[red]Missing environment variable: {name}[/red]")
        log.error("validate_config.fail", missing=missing)
        raise SystemExit(1)

    from rich.table import Table

    table = Table(title="Gateway config")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Tenant", config.AZURE_TENANT_ID[:8] + "...")
    table.add_row("Client", config.AZURE_CLIENT_ID[:8] + "...")
    table.add_row("Authority", config.AUTHORITY_HOST)
    table.add_row("Graph", config.GRAPH_BASE_URL)
    table.add_row("Delegated scopes", ", ".join(config.DELEGATED_SCOPES))
    table.add_row("Token store", str(config.TOKEN_STORE_PATH))
    table.add_row("Expiry margin", f"{config.TOKEN_EXPIRY_MARGIN_SECONDS}s")
    table.add_row("Static fallback token", "set" if config.GRAPH_ACCESS_TOKEN else "not set")
    console.print(table)
    console.print("[green]Config valid.[/green]")
    log.info("validate_config.ok")
