"""Resolve human-readable team/channel/user/meeting/chat references to Graph ids."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Callable, Iterable
from urllib.parse import quote

from src.graph import DirectoryClient, DirectoryError, odata_literal
from src.resolver.identifiers import (
    Canonical,
    MeetingCriteria,
    ResolvedIdentifier,
    ResourceKind,
    parse_identifier,
)
from src.utils.logger import get_logger

logger = get_logger("teams_gateway.resolver")

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)
# Graph emits 0-7 fractional digits; fromisoformat on 3.10 accepts exactly 3 or 6
_FRACTION = re.compile(r"\.(\d+)")

ClientFactory = Callable[[str], DirectoryClient]


def _six_digit_fraction(match: re.Match) -> str:
    return "." + match.group(1)[:6].ljust(6, "0")


def _parse_timestamp(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and value:
        try:
            dt = datetime.fromisoformat(_FRACTION.sub(_six_digit_fraction, value.replace("Z", "+00:00")))
        except ValueError:
            return None
    else:
        return None
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def _organizer_id(meeting: dict[str, Any]) -> str | None:
    """participants.organizer.identity.user.id of an onlineMeeting, if present."""
    node: Any = meeting
    for key in ("participants", "organizer", "identity", "user", "id"):
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node


def _first_by_display_name(items: Iterable[dict[str, Any]], name: str, kind: ResourceKind) -> str | None:
    """Case-insensitive exact displayName match; first wins, duplicates are logged."""
    wanted = name.lower()
    matches = [i for i in items if (i.get("displayName") or "").lower() == wanted]
    if not matches:
        return None
    if len(matches) > 1:
        logger.warning(
            "resolver.ambiguous_match",
            kind=kind.value,
            name=name,
            candidates=[m.get("id") for m in matches],
        )
    return matches[0].get("id")


class IdentifierResolver:
    """Turns names, emails and titles into canonical ids.

    Canonical-looking input is returned as-is without any network call. Lookups
    that find nothing return ``None``; errors raised by the directory propagate.
    """

    def __init__(self, client_factory: ClientFactory = DirectoryClient):
        self._client_factory = client_factory

    async def _collect(self, client: DirectoryClient, path: str, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        return [item async for item in client.iter_collection(path, params)]

    async def resolve_team(self, token: str, raw: str) -> str | None:
        if not raw:
            return None
        parsed = parse_identifier(raw, ResourceKind.TEAM)
        if isinstance(parsed, Canonical):
            return parsed.id

        async with self._client_factory(token) as client:
            joined = await self._collect(client, "/me/joinedTeams")
            team_id = _first_by_display_name(joined, parsed.text, ResourceKind.TEAM)
            if team_id:
                logger.debug("resolver.team.joined_match", name=parsed.text, team_id=team_id)
                return team_id

            # Org-wide listing needs admin consent; lack of it just means "not found here"
            try:
                everything = await self._collect(client, "/teams")
            except DirectoryError as e:
                if e.status in (401, 403):
                    logger.debug("resolver.team.org_listing_denied", status=e.status)
                    return None
                raise
            team_id = _first_by_display_name(everything, parsed.text, ResourceKind.TEAM)

        logger.debug("resolver.team.resolved", name=parsed.text, team_id=team_id)
        return team_id

    async def resolve_channel(self, token: str, raw: str, team: str) -> ResolvedIdentifier | None:
        """Resolve a channel within ``team`` (team id or name)."""
        if not raw or not team:
            return None
        team_id = await self.resolve_team(token, team)
        if not team_id:
            logger.debug("resolver.channel.team_not_found", team=team)
            return None

        parsed = parse_identifier(raw, ResourceKind.CHANNEL)
        if isinstance(parsed, Canonical):
            return ResolvedIdentifier(kind=ResourceKind.CHANNEL, canonical_id=parsed.id, scope_id=team_id)

        async with self._client_factory(token) as client:
            channels = await self._collect(client, f"/teams/{team_id}/channels")
        channel_id = _first_by_display_name(channels, parsed.text, ResourceKind.CHANNEL)
        if not channel_id:
            return None
        return ResolvedIdentifier(kind=ResourceKind.CHANNEL, canonical_id=channel_id, scope_id=team_id)

    async def resolve_user(self, token: str, raw: str) -> str | None:
        """Resolve an email, display-name prefix or user principal name."""
        if not raw:
            return None
        parsed = parse_identifier(raw, ResourceKind.USER)
        if isinstance(parsed, Canonical):
            return parsed.id
        text = parsed.text
        literal = odata_literal(text)

        async with self._client_factory(token) as client:
            if "@" in text:
                found = await client.get(
                    "/users",
                    params={"$filter": f"startswith(mail,{literal}) or mail eq {literal}"},
                )
                users = (found or {}).get("value") or []
                if users:
                    return users[0].get("id")

            found = await client.get("/users", params={"$filter": f"startswith(displayName,{literal})"})
            users = (found or {}).get("value") or []
            if users:
                return users[0].get("id")

            try:
                user = await client.get(f"/users/{quote(text, safe='@')}")
            except DirectoryError as e:
                if e.status in (400, 404):
                    logger.debug("resolver.user.not_found", user=text, status=e.status)
                    return None
                raise
        return (user or {}).get("id")

    async def find_meeting_id(self, token: str, criteria: MeetingCriteria | None = None) -> str | None:
        """Most recent of the caller's online meetings matching every given criterion."""
        criteria = criteria or MeetingCriteria()
        async with self._client_factory(token) as client:
            meetings = await self._collect(client, "/me/onlineMeetings")
        if not meetings:
            return None

        if criteria.title:
            wanted = criteria.title.lower()
            meetings = [m for m in meetings if wanted in (m.get("subject") or "").lower()]

        if criteria.organizer:
            organizer_id = await self.resolve_user(token, criteria.organizer)
            if organizer_id:
                meetings = [m for m in meetings if _organizer_id(m) == organizer_id]
            else:
                logger.info("resolver.meeting.organizer_unresolved", organizer=criteria.organizer)

        if criteria.after:
            after = criteria.after if criteria.after.tzinfo else criteria.after.replace(tzinfo=timezone.utc)
            meetings = [
                m for m in meetings
                if (start := _parse_timestamp(m.get("startDateTime"))) is not None and start >= after
            ]

        meetings.sort(key=lambda m: _parse_timestamp(m.get("startDateTime")) or _EPOCH, reverse=True)
        return meetings[0].get("id") if meetings else None

    async def resolve_meeting(
        self,
        token: str,
        title: str | None = None,
        organizer: str | None = None,
        after: datetime | None = None,
    ) -> str | None:
        return await self.find_meeting_id(
            token, MeetingCriteria(title=title, organizer=organizer, after=after)
        )

    async def find_chat_id(
        self,
        token: str,
        topic: str | None = None,
        participants: list[str] | None = None,
    ) -> str | None:
        """First of the caller's chats matching the topic substring and containing all participants."""
        async with self._client_factory(token) as client:
            chats = await self._collect(client, "/me/chats", {"$expand": "members"})
        if not chats:
            return None

        if topic:
            wanted = topic.lower()
            chats = [c for c in chats if wanted in (c.get("topic") or "").lower()]

        if participants:
            participant_ids = [await self.resolve_user(token, p) for p in participants]
            if not all(participant_ids):
                return None

            def _has_everyone(chat: dict[str, Any]) -> bool:
                member_ids = {m.get("userId") or m.get("id") for m in chat.get("members") or []}
                return all(pid in member_ids for pid in participant_ids)

            chats = [c for c in chats if _has_everyone(c)]

        return chats[0].get("id") if chats else None

    async def resolve_chat(
        self,
        token: str,
        raw: str | None = None,
        participants: list[str] | None = None,
    ) -> str | None:
        """Chat id as given, or the first chat whose topic contains ``raw``."""
        if raw:
            parsed = parse_identifier(raw, ResourceKind.CHAT)
            if isinstance(parsed, Canonical):
                return parsed.id
            return await self.find_chat_id(token, topic=parsed.text, participants=participants)
        if participants:
            return await self.find_chat_id(token, participants=participants)
        return None

    async def resolve(
        self,
        kind: ResourceKind,
        token: str,
        raw: str,
        scope: str | None = None,
    ) -> ResolvedIdentifier | None:
        """Kind-dispatching entry point returning a ResolvedIdentifier."""
        if kind is ResourceKind.CHANNEL:
            return await self.resolve_channel(token, raw, scope or "")
        if kind is ResourceKind.TEAM:
            canonical = await self.resolve_team(token, raw)
        elif kind is ResourceKind.USER:
            canonical = await self.resolve_user(token, raw)
        elif kind is ResourceKind.MEETING:
            canonical = await self.resolve_meeting(token, title=raw or None)
        else:
            canonical = await self.resolve_chat(token, raw)
        if not canonical:
            return None
        return ResolvedIdentifier(kind=kind, canonical_id=canonical)
