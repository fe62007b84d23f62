"""Name/email/title to Graph id resolution."""

from src.resolver.identifiers import (
    Canonical,
    MeetingCriteria,
    Name,
    ParsedIdentifier,
    ResolvedIdentifier,
    ResourceKind,
    is_canonical,
    parse_identifier,
)
from src.resolver.resolver import IdentifierResolver

__all__ = [
    "Canonical",
    "IdentifierResolver",
    "MeetingCriteria",
    "Name",
    "ParsedIdentifier",
    "ResolvedIdentifier",
    "ResourceKind",
    "is_canonical",
    "parse_identifier",
]
