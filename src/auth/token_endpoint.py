"""Azure AD token endpoint access via MSAL (refresh-token and client-credentials grants)."""

from __future__ import annotations

import asyncio
from typing import Any, Callable

import msal
from pydantic import BaseModel

from src.auth.errors import (
    RefreshFailed,
    ServiceCredentialError,
    TokenEndpointTimeout,
    TokenEndpointUnavailable,
)
from src.config import (
    AUTHORITY_HOST,
    AZURE_CLIENT_ID,
    AZURE_CLIENT_SECRET,
    AZURE_TENANT_ID,
    DELEGATED_SCOPES,
    GRAPH_DEFAULT_SCOPE,
    TOKEN_ENDPOINT_TIMEOUT_SECONDS,
)
from src.utils.logger import get_logger

logger = get_logger("teams_gateway.auth.token_endpoint")


class TokenGrant(BaseModel):
    """Successful token endpoint response (subset we need)."""

    access_token: str
    refresh_token: str | None = None
    expires_in: int


def _grant_from_result(result: dict[str, Any]) -> TokenGrant:
    return TokenGrant(
        access_token=result["access_token"],
        refresh_token=result.get("refresh_token"),
        expires_in=int(result.get("expires_in") or 0),
    )


class TokenEndpoint:
    """Confidential-client token exchanges against the configured tenant.

    MSAL is synchronous, so each exchange runs in a worker thread and is bounded by
    ``timeout``. Nothing here retries: timeouts and transport failures surface as
    retryable errors for the caller to handle.
    """

    def __init__(
        self,
        tenant_id: str = AZURE_TENANT_ID,
        client_id: str = AZURE_CLIENT_ID,
        client_secret: str = AZURE_CLIENT_SECRET,
        *,
        authority_host: str = AUTHORITY_HOST,
        delegated_scopes: list[str] | None = None,
        timeout: float = TOKEN_ENDPOINT_TIMEOUT_SECONDS,
    ):
        self._tenant_id = tenant_id
        self._client_id = client_id
        self._client_secret = client_secret
        self._authority = f"{authority_host}/{tenant_id}"
        self._delegated_scopes = delegated_scopes or list(DELEGATED_SCOPES)
        self._timeout = timeout
        self._app: msal.ConfidentialClientApplication | None = None

    def _application(self) -> msal.ConfidentialClientApplication:
        # Built lazily: MSAL fetches authority metadata on construction
        if self._app is None:
            self._app = msal.ConfidentialClientApplication(
                client_id=self._client_id,
                client_credential=self._client_secret,
                authority=self._authority,
                timeout=self._timeout,
            )
        return self._app

    async def _call(self, operation: str, func: Callable[[], dict[str, Any]]) -> dict[str, Any]:
        try:
            return await asyncio.wait_for(asyncio.to_thread(func), timeout=self._timeout)
        except asyncio.TimeoutError as e:
            logger.warning("auth.token_endpoint.timeout", operation=operation, timeout=self._timeout)
            raise TokenEndpointTimeout(f"{operation} timed out after {self._timeout}s") from e
        except Exception as e:
            logger.warning(
                "auth.token_endpoint.unavailable",
                operation=operation,
                error_type=type(e).__name__,
                error=str(e),
            )
            raise TokenEndpointUnavailable(f"{operation} failed: {e}") from e

    async def refresh(self, refresh_token: str) -> TokenGrant:
        """Redeem a refresh credential for a new access credential (delegated)."""
        result = await self._call(
            "refresh_token",
            lambda: self._application().acquire_token_by_refresh_token(
                refresh_token, scopes=self._delegated_scopes
            ),
        )
        if not result or "access_token" not in result:
            error = (result or {}).get("error")
            description = (result or {}).get("error_description") or error or "no access token returned"
            logger.info("auth.token_endpoint.refresh_rejected", error=error)
            raise RefreshFailed(description, error_code=error)
        return _grant_from_result(result)

    async def acquire_for_client(self) -> TokenGrant:
        """Client-credentials exchange for an application (non-delegated) credential."""
        result = await self._call(
            "client_credentials",
            lambda: self._application().acquire_token_for_client(scopes=[GRAPH_DEFAULT_SCOPE]),
        )
        if not result or "access_token" not in result:
            error = (result or {}).get("error")
            description = (result or {}).get("error_description") or error or "no access token returned"
            logger.error("auth.token_endpoint.client_credentials_rejected", error=error)
            raise ServiceCredentialError(description, error_code=error)
        return _grant_from_result(result)
