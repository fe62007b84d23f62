"""Identifier parsing: canonical Graph id vs. human-supplied name."""

import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel


class ResourceKind(str, Enum):
    TEAM = "team"
    CHANNEL = "channel"
    USER = "user"
    MEETING = "meeting"
    CHAT = "chat"


GUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)
# Channel and chat ids, e.g. 19:abc123@thread.tacv2, 19:meeting_xyz@thread.v2
THREAD_ID_PATTERN = re.compile(r"^19:[^\s@]+@thread(\.[a-z0-9]+)?$", re.IGNORECASE)

_CANONICAL_PATTERNS = {
    ResourceKind.TEAM: (GUID_PATTERN,),
    ResourceKind.USER: (GUID_PATTERN,),
    ResourceKind.CHANNEL: (GUID_PATTERN, THREAD_ID_PATTERN),
    ResourceKind.CHAT: (GUID_PATTERN, THREAD_ID_PATTERN),
    # Meetings are always located by searching; no id shape short-circuits that
    ResourceKind.MEETING: (),
}


@dataclass(frozen=True)
class Canonical:
    """Already a Graph resource id; usable without a lookup."""

    id: str


@dataclass(frozen=True)
class Name:
    """Display name, email or title that must be looked up."""

    text: str


ParsedIdentifier = Union[Canonical, Name]


def is_canonical(raw: str, kind: ResourceKind) -> bool:
    return any(p.match(raw) for p in _CANONICAL_PATTERNS[kind])


def parse_identifier(raw: str, kind: ResourceKind) -> ParsedIdentifier:
    """Classify ``raw`` for ``kind``. Surrounding whitespace is ignored."""
    value = raw.strip()
    if is_canonical(value, kind):
        return Canonical(value)
    return Name(value)


class ResolvedIdentifier(BaseModel):
    """Outcome of a resolution. ``scope_id`` carries the owning team for channels."""

    kind: ResourceKind
    canonical_id: str
    scope_id: Optional[str] = None


class MeetingCriteria(BaseModel):
    """Optional filters for locating a meeting; all absent means "most recent"."""

    title: Optional[str] = None
    organizer: Optional[str] = None
    after: Optional[datetime] = None
