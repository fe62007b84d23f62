"""Auth API: app-only token endpoint."""

from typing import Any

from fastapi import APIRouter, Request

from src.auth import ServiceCredentialCache

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/app-token")
async def app_token(request: Request) -> dict[str, Any]:
    """Return the cached application token (acquiring it if needed) and its refresh deadline."""
    cache: ServiceCredentialCache = request.app.state.service_cache
    token = await cache.obtain()
    return {
        "type": "application",
        "token": token,
        "expiresAt": cache.expires_at.isoformat() if cache.expires_at else None,
    }
