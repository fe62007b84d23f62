"""FastAPI app exposing discovery endpoints on top of the token manager and resolver."""

from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from src.api.auth_routes import router as auth_router
from src.api.directory_routes import router as directory_router
from src.api.discovery_routes import router as discovery_router
from src.auth import (
    AuthError,
    AuthRequired,
    CredentialStore,
    DelegatedCredentialManager,
    RefreshFailed,
    ServiceCredentialCache,
    TokenEndpoint,
    TokenEndpointTimeout,
)
from src.auth.middleware import RequestTokenResolver
from src.config import TOKEN_STORE_PATH
from src.graph import DirectoryClient, DirectoryError, DirectoryTimeout
from src.resolver import IdentifierResolver
from src.resolver.resolver import ClientFactory
from src.utils.logger import bind_context, clear_context, get_logger

logger = get_logger("teams_gateway.api.server")


def _auth_error_status(exc: AuthError) -> int:
    if isinstance(exc, (AuthRequired, RefreshFailed)):
        return 401
    if isinstance(exc, TokenEndpointTimeout):
        return 504
    if exc.retryable:
        return 503
    return 500


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AuthError)
    async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
        status = _auth_error_status(exc)
        logger.info(
            "api.auth_error",
            path=request.url.path,
            error_type=type(exc).__name__,
            status=status,
        )
        content: dict[str, Any] = {"error": str(exc), "type": type(exc).__name__, "retryable": exc.retryable}
        if isinstance(exc, RefreshFailed):
            content["message"] = "Refresh token rejected; sign in again."
        return JSONResponse(status_code=status, content=content)

    @app.exception_handler(DirectoryError)
    async def directory_error_handler(request: Request, exc: DirectoryError) -> JSONResponse:
        status = exc.status or (504 if isinstance(exc, DirectoryTimeout) else 502)
        logger.info(
            "api.directory_error",
            path=request.url.path,
            status=status,
            code=exc.code,
        )
        return JSONResponse(
            status_code=status,
            content={"error": str(exc), "details": exc.body, "retryable": exc.retryable},
        )


@asynccontextmanager
async def _lifespan(app: FastAPI):
    logger.info(
        "api.startup",
        token_store=str(app.state.delegated_manager.store.path),
        cached_identities=len(app.state.delegated_manager.store),
    )
    yield
    # Service token is process-local; drop it so nothing outlives the app
    app.state.service_cache.invalidate()
    logger.info("api.shutdown")


def create_app(
    delegated_manager: DelegatedCredentialManager | None = None,
    service_cache: ServiceCredentialCache | None = None,
    resolver: IdentifierResolver | None = None,
    token_resolver: RequestTokenResolver | None = None,
    client_factory: ClientFactory = DirectoryClient,
) -> FastAPI:
    """
    Create the FastAPI app. Components not passed in are built from configuration:
    one TokenEndpoint shared by the delegated manager and the service cache, and a
    CredentialStore at TOKEN_STORE_PATH.
    """
    if delegated_manager is None or service_cache is None:
        endpoint = TokenEndpoint()
        if delegated_manager is None:
            delegated_manager = DelegatedCredentialManager(CredentialStore(TOKEN_STORE_PATH), endpoint)
        if service_cache is None:
            service_cache = ServiceCredentialCache(endpoint)

    app = FastAPI(
        title="Teams Graph Gateway",
        version="0.1.0",
        lifespan=_lifespan,
    )
    app.state.delegated_manager = delegated_manager
    app.state.service_cache = service_cache
    app.state.client_factory = client_factory
    app.state.resolver = resolver or IdentifierResolver(client_factory)
    app.state.token_resolver = token_resolver or RequestTokenResolver(delegated_manager, service_cache)

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        clear_context()
        bind_context(method=request.method, path=request.url.path)
        try:
            return await call_next(request)
        finally:
            clear_context()

    _register_exception_handlers(app)
    app.include_router(auth_router)
    app.include_router(discovery_router)
    app.include_router(directory_router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app
