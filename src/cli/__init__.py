"""CLI commands: one module per command (serve, tokens, app-token, validate-config)."""

from typer import Typer

from src.cli import serve_mode, tokens_mode, validate_config as validate_config_module

app = Typer(help="Teams Graph gateway: delegated token manager and id resolver")


def register_commands() -> None:
    """Register all CLI commands on the global app."""
    app.command()(serve_mode.serve)
    app.command()(tokens_mode.tokens)
    app.command(name="app-token")(tokens_mode.app_token)
    app.command(name="validate-config")(validate_config_module.validate_config)


register_commands()
