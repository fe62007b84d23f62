"""Async Microsoft Graph request wrapper (GET/POST/PATCH/DELETE with a bearer token)."""

from __future__ import annotations

from typing import Any, AsyncIterator

import httpx

from src.config import GRAPH_BASE_URL, HTTP_TIMEOUT_SECONDS
from src.graph.errors import DirectoryError, DirectoryTimeout, DirectoryUnavailable
from src.utils.logger import get_logger

logger = get_logger("teams_gateway.graph.client")


def odata_literal(value: str) -> str:
    """Quote a string for use inside an OData $filter expression."""
    return "'" + value.replace("'", "''") + "'"


def _parse_body(response: httpx.Response) -> Any:
    if response.status_code == 204 or not response.content:
        return None
    content_type = response.headers.get("content-type", "")
    if "json" in content_type:
        try:
            return response.json()
        except ValueError:
            return response.text
    return response.text


def _error_message(method: str, path: str, status: int, body: Any) -> str:
    detail = None
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        detail = body["error"].get("message") or body["error"].get("code")
    return f"{method} {path} failed with status {status}" + (f": {detail}" if detail else "")


class DirectoryClient:
    """Graph client bound to one access token.

    Use as an async context manager so the underlying connection pool is closed::

        async with DirectoryClient(token) as client:
            me = await client.get("/me")

    Every call carries the configured timeout; timeouts and transport failures are
    raised as retryable errors and never retried here.
    """

    def __init__(
        self,
        access_token: str,
        *,
        base_url: str = GRAPH_BASE_URL,
        timeout: float = HTTP_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if not access_token:
            raise ValueError("access_token is required to initialize DirectoryClient")
        self._http = httpx.AsyncClient(
            base_url=base_url,
            headers={
                "Authorization": f"Bearer {access_token}",
                "Content-Type": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "DirectoryClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def request(
        self,
        method: str,
        path: str,
        *,
        body: Any = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Send one request and return the parsed body; raise DirectoryError on non-2xx."""
        try:
            response = await self._http.request(method, path, json=body, params=params)
        except httpx.TimeoutException as e:
            logger.warning("graph.request.timeout", method=method, path=path)
            raise DirectoryTimeout(f"{method} {path} timed out") from e
        except httpx.TransportError as e:
            logger.warning(
                "graph.request.transport_error",
                method=method,
                path=path,
                error_type=type(e).__name__,
            )
            raise DirectoryUnavailable(f"{method} {path} failed: {e}") from e

        payload = _parse_body(response)
        if response.is_success:
            return payload

        logger.debug(
            "graph.request.error",
            method=method,
            path=path,
            status=response.status_code,
        )
        raise DirectoryError(
            _error_message(method, path, response.status_code, payload),
            status=response.status_code,
            body=payload,
        )

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, body: Any = None) -> Any:
        return await self.request("POST", path, body=body)

    async def patch(self, path: str, body: Any = None) -> Any:
        return await self.request("PATCH", path, body=body)

    async def delete(self, path: str) -> Any:
        return await self.request("DELETE", path)

    async def iter_collection(
        self,
        path: str,
        params: dict[str, Any] | None = None,
    ) -> AsyncIterator[dict[str, Any]]:
        """Yield items of a collection response, following @odata.nextLink pages."""
        url: str | None = path
        page_params = params
        while url:
            page = await self.get(url, params=page_params)
            if not isinstance(page, dict):
                return
            for item in page.get("value") or []:
                yield item
            # nextLink is absolute and already carries the query string
            url = page.get("@odata.nextLink")
            page_params = None
