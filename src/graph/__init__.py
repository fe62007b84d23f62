"""Minimal authenticated client for the Microsoft Graph directory API."""

from src.graph.client import DirectoryClient, odata_literal
from src.graph.errors import DirectoryError, DirectoryTimeout, DirectoryUnavailable

__all__ = [
    "DirectoryClient",
    "DirectoryError",
    "DirectoryTimeout",
    "DirectoryUnavailable",
    "odata_literal",
]
