"""Application (client-credentials) token cache."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable, Protocol

from src.auth.token_endpoint import TokenGrant
from src.config import TOKEN_EXPIRY_MARGIN_SECONDS
from src.utils.logger import get_logger

logger = get_logger("teams_gateway.auth.service")


class ClientCredentialsEndpoint(Protocol):
    async def acquire_for_client(self) -> TokenGrant: ...


class ServiceCredentialCache:
    """Single-slot cache of the app-only Graph token.

    Not persisted; a restart simply re-acquires. Concurrent callers that miss the
    cache at the same time may each run an exchange; the last one stored wins.
    """

    def __init__(
        self,
        endpoint: ClientCredentialsEndpoint,
        *,
        margin_seconds: int = TOKEN_EXPIRY_MARGIN_SECONDS,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self._endpoint = endpoint
        self._margin = timedelta(seconds=margin_seconds)
        self._clock = clock
        self._token: str | None = None
        self._expires_at: datetime | None = None

    @property
    def expires_at(self) -> datetime | None:
        return self._expires_at

    async def obtain(self) -> str:
        if self._token and self._expires_at and self._clock() < self._expires_at:
            return self._token

        grant = await self._endpoint.acquire_for_client()
        self._token = grant.access_token
        self._expires_at = self._clock() + timedelta(seconds=grant.expires_in) - self._margin
        logger.info("auth.service.acquired", expires_at=self._expires_at.isoformat())
        return self._token

    def invalidate(self) -> None:
        """Forget the cached token so the next obtain() re-acquires."""
        self._token = None
        self._expires_at = None
