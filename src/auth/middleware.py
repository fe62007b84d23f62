"""Per-request Graph token selection: delegated user token vs. app-only token.

Routes depend on :func:`require_graph_token`. Paths under
``DELEGATED_ONLY_PREFIXES`` get the caller's delegated token; any other router
that uses the dependency (e.g. ``/api/organization``) gets the application token.
"""

from __future__ import annotations

from typing import Literal

from fastapi import Request
from pydantic import BaseModel

from src.auth.delegated import DelegatedCredentialManager, RequestCredentials
from src.auth.errors import AuthRequired
from src.auth.service import ServiceCredentialCache
from src.config import GRAPH_ACCESS_TOKEN
from src.utils.logger import get_logger

logger = get_logger("teams_gateway.auth.middleware")

DELEGATED_ONLY_PREFIXES = ("/api/discovery", "/api/messaging", "/api/meetings")
REFRESH_TOKEN_HEADER = "X-Refresh-Token"
_BODY_METHODS = ("POST", "PUT", "PATCH")


class GraphToken(BaseModel):
    """Token chosen for a request, attached as ``request.state.graph_token``."""

    token: str
    kind: Literal["delegated", "application"]


def _bearer(request: Request) -> str | None:
    header = request.headers.get("authorization") or ""
    if header.startswith("Bearer "):
        return header[len("Bearer "):].strip() or None
    return None


async def _json_body(request: Request) -> dict:
    if request.method not in _BODY_METHODS:
        return {}
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


class RequestTokenResolver:
    """Decides which credential an inbound request needs and obtains it.

    Routes under ``delegated_prefixes`` act on behalf of the signed-in user and
    go through the delegated credential manager; everything else uses the
    application credential.
    """

    def __init__(
        self,
        delegated: DelegatedCredentialManager,
        service: ServiceCredentialCache,
        *,
        delegated_prefixes: tuple[str, ...] = DELEGATED_ONLY_PREFIXES,
        fallback_token: str = GRAPH_ACCESS_TOKEN,
    ):
        self._delegated = delegated
        self._service = service
        self._prefixes = delegated_prefixes
        self._fallback_token = fallback_token

    def requires_delegated(self, path: str) -> bool:
        return any(path.startswith(prefix) for prefix in self._prefixes)

    async def credentials_from_request(self, request: Request) -> RequestCredentials | None:
        """Access token from the Authorization header, JSON body or static fallback."""
        body = await _json_body(request)
        access_token = _bearer(request) or body.get("accessToken") or self._fallback_token
        if not access_token:
            return None
        refresh_token = request.headers.get(REFRESH_TOKEN_HEADER) or body.get("refreshToken")
        return RequestCredentials(access_token=access_token, refresh_token=refresh_token or None)

    async def resolve(self, request: Request) -> GraphToken:
        path = request.url.path
        if self.requires_delegated(path):
            credentials = await self.credentials_from_request(request)
            if credentials is None:
                logger.info("auth.middleware.missing_delegated_token", path=path)
                raise AuthRequired("Delegated user token required. Login first.")
            graph_token = GraphToken(token=await self._delegated.obtain(credentials), kind="delegated")
        else:
            graph_token = GraphToken(token=await self._service.obtain(), kind="application")

        request.state.graph_token = graph_token
        return graph_token


async def require_graph_token(request: Request) -> GraphToken:
    """FastAPI dependency: resolve the request's Graph token via ``app.state.token_resolver``."""
    resolver: RequestTokenResolver = request.app.state.token_resolver
    return await resolver.resolve(request)
