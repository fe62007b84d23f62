"""Non-verifying JWT claim decoding.

The signature is NOT checked. Claims read here are only good enough to pick a
cache key and estimate expiry; they must never drive an authorization decision.
"""

import base64
import binascii
import json
from datetime import datetime, timezone
from typing import Any

from src.auth.errors import DecodeError

# Cache key used when an access credential cannot be decoded
SENTINEL_IDENTITY = "anonymous"

_IDENTITY_CLAIMS = ("oid", "sub", "upn", "preferred_username")


def decode_claims(token: str) -> dict[str, Any]:
    """Return the payload claims of a compact JWT without verifying it."""
    if not token:
        raise DecodeError("empty token")
    parts = token.split(".")
    if len(parts) != 3:
        raise DecodeError(f"expected 3 JWT segments, got {len(parts)}")
    payload = parts[1]
    padded = payload + "=" * (-len(payload) % 4)
    try:
        claims = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")))
    except (binascii.Error, UnicodeError, ValueError) as e:
        raise DecodeError(f"JWT payload is not valid base64 JSON: {e}") from e
    if not isinstance(claims, dict):
        raise DecodeError("JWT payload is not a JSON object")
    return claims


def identity_from_claims(claims: dict[str, Any]) -> str:
    """Pick the subject identifying the user (object id first)."""
    for name in _IDENTITY_CLAIMS:
        value = claims.get(name)
        if isinstance(value, str) and value:
            return value
    raise DecodeError("token carries no subject claim")


def expiry_from_claims(claims: dict[str, Any]) -> datetime | None:
    """Return the ``exp`` claim as an aware UTC datetime, or None when absent."""
    exp = claims.get("exp")
    if exp is None:
        return None
    try:
        return datetime.fromtimestamp(float(exp), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError) as e:
        raise DecodeError(f"invalid exp claim: {exp!r}") from e


def token_identity(token: str) -> str:
    """Identity used as the credential store key for ``token``."""
    return identity_from_claims(decode_claims(token))


def token_expiry(token: str) -> datetime | None:
    """Embedded expiry of ``token``; None when the token has no ``exp``."""
    return expiry_from_claims(decode_claims(token))
