"""Tenant-level directory API served with the application credential."""

from typing import Any

from fastapi import APIRouter, Depends, Request

from src.auth.middleware import GraphToken, require_graph_token

router = APIRouter(prefix="/api/organization", tags=["directory"])


@router.get("")
async def get_organization(request: Request, graph: GraphToken = Depends(require_graph_token)) -> dict[str, Any]:
    """The tenant's organization record(s)."""
    async with request.app.state.client_factory(graph.token) as client:
        data = await client.get("/organization")
    return {"success": True, "credential": graph.kind, "data": (data or {}).get("value") or []}
