"""Delegated (per-user) credential lifecycle: cache, expiry detection, refresh, persistence."""

from __future__ import annotations

import asyncio
from collections import Counter
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import AsyncIterator, Callable, Protocol

from pydantic import BaseModel

from src.auth.claims import SENTINEL_IDENTITY, decode_claims, expiry_from_claims, identity_from_claims
from src.auth.errors import AuthRequired, DecodeError, RefreshFailed, StoreIOError
from src.auth.token_endpoint import TokenGrant
from src.auth.token_store import CredentialRecord, CredentialStore
from src.config import TOKEN_EXPIRY_MARGIN_SECONDS
from src.utils.logger import get_logger, token_fingerprint

logger = get_logger("teams_gateway.auth.delegated")

# Lifetime assumed for access credentials whose expiry cannot be read
ASSUMED_TOKEN_LIFETIME = timedelta(hours=1)


class RefreshEndpoint(Protocol):
    async def refresh(self, refresh_token: str) -> TokenGrant: ...


class RequestCredentials(BaseModel):
    """Credentials supplied with one inbound request."""

    access_token: str
    refresh_token: str | None = None


class _TokenInfo(BaseModel):
    identity: str
    expires_at: datetime | None = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DelegatedCredentialManager:
    """Hands out a usable delegated access credential for a request.

    Resolution order for :meth:`obtain`:

    1. Key the request by the token's subject (undecodable tokens share
       ``SENTINEL_IDENTITY``).
    2. Supplied token already expired and a refresh credential supplied: refresh now.
    3. Cached record: return it while fresh, refresh it once inside the margin
       (preferring the request's refresh credential over the cached one).
    4. No cache entry but a refresh credential and a valid token: start caching.
    5. Otherwise pass the supplied token through unchanged.

    A rejected refresh evicts the identity and raises :class:`RefreshFailed`.
    Store write failures are logged and do not affect the returned credential.
    """

    def __init__(
        self,
        store: CredentialStore,
        endpoint: RefreshEndpoint,
        *,
        margin_seconds: int = TOKEN_EXPIRY_MARGIN_SECONDS,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._store = store
        self._endpoint = endpoint
        self._margin = timedelta(seconds=margin_seconds)
        self._clock = clock
        self._refresh_locks: dict[str, asyncio.Lock] = {}
        self._lock_users: Counter[str] = Counter()

    @property
    def store(self) -> CredentialStore:
        return self._store

    @property
    def margin(self) -> timedelta:
        return self._margin

    def _inspect(self, access_token: str) -> _TokenInfo:
        try:
            claims = decode_claims(access_token)
            identity = identity_from_claims(claims)
        except DecodeError as e:
            logger.info(
                "auth.delegated.decode_failed",
                token=token_fingerprint(access_token),
                error=str(e),
            )
            return _TokenInfo(identity=SENTINEL_IDENTITY)

        # A readable subject with an unreadable exp keeps its own identity
        try:
            expires_at = expiry_from_claims(claims)
        except DecodeError as e:
            logger.info("auth.delegated.exp_unreadable", identity=identity, error=str(e))
            expires_at = None
        return _TokenInfo(identity=identity, expires_at=expires_at)

    @asynccontextmanager
    async def _identity_lock(self, identity: str) -> AsyncIterator[None]:
        """Hold the refresh lock for ``identity``; the lock is dropped once no task uses it."""
        lock = self._refresh_locks.setdefault(identity, asyncio.Lock())
        self._lock_users[identity] += 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[identity] -= 1
            if self._lock_users[identity] <= 0:
                del self._lock_users[identity]
                del self._refresh_locks[identity]

    def _record_expiry(self, access_token: str, lifetime: timedelta, now: datetime) -> datetime:
        """Margin-adjusted expiry: the token's own exp claim, else ``now + lifetime``."""
        try:
            expires_at = expiry_from_claims(decode_claims(access_token))
        except DecodeError:
            expires_at = None
        if expires_at is None:
            expires_at = now + lifetime
        return expires_at - self._margin

    async def _write_through(self, record: CredentialRecord) -> None:
        try:
            await self._store.put(record)
        except StoreIOError as e:
            logger.warning("auth.delegated.persist_failed", identity=record.identity, error=str(e))

    async def _evict(self, identity: str) -> None:
        try:
            await self._store.evict(identity)
        except StoreIOError as e:
            logger.warning("auth.delegated.persist_failed", identity=identity, error=str(e))

    async def _refresh(
        self,
        identity: str,
        refresh_token: str,
        seen: CredentialRecord | None,
    ) -> str:
        """Refresh and persist under the identity's lock.

        ``seen`` is the record the caller based its decision on. If another task
        replaced it with a fresh record while we waited for the lock, that record is
        returned instead of refreshing a second time.
        """
        async with self._identity_lock(identity):
            current = self._store.get(identity)
            if current is not None and current is not seen and current.is_fresh(self._clock()):
                logger.debug("auth.delegated.refresh_coalesced", identity=identity)
                return current.access_token

            log = logger.bind(identity=identity, refresh=token_fingerprint(refresh_token))
            log.debug("auth.delegated.refresh_start")
            try:
                grant = await self._endpoint.refresh(refresh_token)
            except RefreshFailed as e:
                log.warning("auth.delegated.refresh_failed", error=str(e), error_code=e.error_code)
                await self._evict(identity)
                raise

            now = self._clock()
            record = CredentialRecord(
                identity=identity,
                access_token=grant.access_token,
                refresh_token=grant.refresh_token or refresh_token,
                expires_at=self._record_expiry(
                    grant.access_token, timedelta(seconds=grant.expires_in), now
                ),
            )
            await self._write_through(record)
            log.info(
                "auth.delegated.refreshed",
                expires_at=record.expires_at.isoformat(),
                rotated=bool(grant.refresh_token and grant.refresh_token != refresh_token),
            )
            return record.access_token

    async def obtain(self, credentials: RequestCredentials) -> str:
        """Return an access credential usable for the current request."""
        access_token = credentials.access_token
        if not access_token:
            raise AuthRequired("Delegated user token required. Login first.")
        refresh_token = credentials.refresh_token or None

        info = self._inspect(access_token)
        identity = info.identity
        now = self._clock()
        cached = self._store.get(identity)

        if refresh_token and info.expires_at is not None and info.expires_at <= now:
            logger.debug("auth.delegated.supplied_expired", identity=identity)
            return await self._refresh(identity, refresh_token, cached)

        if cached is not None:
            if cached.is_fresh(now):
                return cached.access_token
            logger.debug("auth.delegated.cache_stale", identity=identity)
            return await self._refresh(identity, refresh_token or cached.refresh_token, cached)

        if refresh_token and (info.expires_at is None or info.expires_at > now):
            record = CredentialRecord(
                identity=identity,
                access_token=access_token,
                refresh_token=refresh_token,
                expires_at=(info.expires_at or now + ASSUMED_TOKEN_LIFETIME) - self._margin,
            )
            await self._write_through(record)
            logger.info(
                "auth.delegated.cached",
                identity=identity,
                expires_at=record.expires_at.isoformat(),
            )
            return access_token

        return access_token

    async def forget(self, identity: str) -> bool:
        """Evict ``identity`` from the store (e.g. after sign-out)."""
        return await self._store.evict(identity)
