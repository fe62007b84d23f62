"""Shared CLI helpers: console, logger, component construction."""

from rich.console import Console

from src.auth import CredentialStore, TokenEndpoint
from src.config import TOKEN_STORE_PATH
from src.utils.logger import get_logger

console = Console()
logger = get_logger("teams_gateway.cli")


def open_store() -> CredentialStore:
    """Credential store at the configured path."""
    return CredentialStore(TOKEN_STORE_PATH)


def build_endpoint() -> TokenEndpoint:
    return TokenEndpoint()
