"""Credential lifecycle: delegated user tokens, app-only tokens, and request token selection."""

from src.auth.claims import SENTINEL_IDENTITY, decode_claims, token_expiry, token_identity
from src.auth.delegated import DelegatedCredentialManager, RequestCredentials
from src.auth.errors import (
    AuthError,
    AuthRequired,
    DecodeError,
    RefreshFailed,
    ServiceCredentialError,
    StoreIOError,
    TokenEndpointTimeout,
    TokenEndpointUnavailable,
)
from src.auth.service import ServiceCredentialCache
from src.auth.token_endpoint import TokenEndpoint, TokenGrant
from src.auth.token_store import CredentialRecord, CredentialStore

__all__ = [
    "SENTINEL_IDENTITY",
    "AuthError",
    "AuthRequired",
    "CredentialRecord",
    "CredentialStore",
    "DecodeError",
    "DelegatedCredentialManager",
    "RefreshFailed",
    "RequestCredentials",
    "ServiceCredentialCache",
    "ServiceCredentialError",
    "StoreIOError",
    "TokenEndpoint",
    "TokenEndpointTimeout",
    "TokenEndpointUnavailable",
    "TokenGrant",
    "decode_claims",
    "token_expiry",
    "token_identity",
]
