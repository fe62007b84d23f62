"""Discovery API: look up teams, channels, users, meetings and chats by id or name."""

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel

from src.auth.middleware import GraphToken, require_graph_token
from src.resolver import IdentifierResolver, MeetingCriteria, ResourceKind

router = APIRouter(prefix="/api", tags=["discovery"])


def _resolver(request: Request) -> IdentifierResolver:
    return request.app.state.resolver


async def _graph_get(request: Request, token: str, path: str) -> Any:
    async with request.app.state.client_factory(token) as client:
        return await client.get(path)


@router.get("/discovery/me")
async def get_me(request: Request, graph: GraphToken = Depends(require_graph_token)) -> dict[str, Any]:
    return {"success": True, "data": await _graph_get(request, graph.token, "/me")}


@router.get("/discovery/teams/{team}")
async def get_team(
    team: str,
    request: Request,
    graph: GraphToken = Depends(require_graph_token),
) -> dict[str, Any]:
    """Team details; ``team`` may be an id or a display name."""
    team_id = await _resolver(request).resolve_team(graph.token, team)
    if not team_id:
        raise HTTPException(status_code=404, detail=f"Team not found: {team}")
    return {"success": True, "data": await _graph_get(request, graph.token, f"/teams/{team_id}")}


@router.get("/discovery/teams/{team}/channels")
async def list_channels(
    team: str,
    request: Request,
    graph: GraphToken = Depends(require_graph_token),
) -> dict[str, Any]:
    team_id = await _resolver(request).resolve_team(graph.token, team)
    if not team_id:
        raise HTTPException(status_code=404, detail=f"Team not found: {team}")
    data = await _graph_get(request, graph.token, f"/teams/{team_id}/channels")
    return {"success": True, "teamId": team_id, "data": data}


@router.get("/discovery/teams/{team}/channels/{channel}")
async def get_channel(
    team: str,
    channel: str,
    request: Request,
    graph: GraphToken = Depends(require_graph_token),
) -> dict[str, Any]:
    resolved = await _resolver(request).resolve_channel(graph.token, channel, team)
    if resolved is None:
        raise HTTPException(status_code=404, detail=f"Channel not found: {channel} (team: {team})")
    data = await _graph_get(
        request, graph.token, f"/teams/{resolved.scope_id}/channels/{resolved.canonical_id}"
    )
    return {"success": True, "teamId": resolved.scope_id, "channelId": resolved.canonical_id, "data": data}


@router.get("/discovery/users/{user}")
async def get_user(
    user: str,
    request: Request,
    graph: GraphToken = Depends(require_graph_token),
) -> dict[str, Any]:
    """User details; ``user`` may be an id, email, UPN or display-name prefix."""
    user_id = await _resolver(request).resolve_user(graph.token, user)
    if not user_id:
        raise HTTPException(status_code=404, detail=f"User not found: {user}")
    return {"success": True, "data": await _graph_get(request, graph.token, f"/users/{user_id}")}


@router.get("/meetings/find")
async def find_meeting(
    request: Request,
    title: str | None = None,
    organizer: str | None = None,
    after: datetime | None = None,
    graph: GraphToken = Depends(require_graph_token),
) -> dict[str, Any]:
    """Most recent meeting matching the optional title/organizer/after filters."""
    criteria = MeetingCriteria(title=title, organizer=organizer, after=after)
    meeting_id = await _resolver(request).find_meeting_id(graph.token, criteria)
    if not meeting_id:
        raise HTTPException(status_code=404, detail="No matching meeting found")
    return {"success": True, "meetingId": meeting_id}


@router.get("/messaging/chats/find")
async def find_chat(
    request: Request,
    topic: str | None = None,
    participant: list[str] | None = Query(None),
    graph: GraphToken = Depends(require_graph_token),
) -> dict[str, Any]:
    chat_id = await _resolver(request).resolve_chat(graph.token, topic, participants=participant)
    if not chat_id:
        raise HTTPException(status_code=404, detail="No matching chat found")
    return {"success": True, "chatId": chat_id}


class ResolveRequest(BaseModel):
    """Body of POST /api/discovery/resolve; ``accessToken``/``refreshToken`` may ride along."""

    kind: ResourceKind
    value: str
    scope: str | None = None


@router.post("/discovery/resolve")
async def resolve_identifier(
    body: ResolveRequest,
    request: Request,
    graph: GraphToken = Depends(require_graph_token),
) -> dict[str, Any]:
    """Resolve any kind of identifier; ``scope`` is the team for channels."""
    resolved = await _resolver(request).resolve(body.kind, graph.token, body.value, scope=body.scope)
    if resolved is None:
        raise HTTPException(status_code=404, detail=f"{body.kind.value} not found: {body.value}")
    return {
        "success": True,
        "kind": resolved.kind.value,
        "canonicalId": resolved.canonical_id,
        "scopeId": resolved.scope_id,
    }
