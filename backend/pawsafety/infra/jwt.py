"""Access tokens handed to the mobile app.

HS256 with the application secret. The subject is the user id; ``name`` is an
optional display name claim.
"""

from __future__ import annotations

import time
from typing import Any, Dict, Mapping

import jwt
from jwt import InvalidTokenError

from pawsafety.settings import settings

ISSUER = "pawsafety-api"
AUDIENCE = "pawsafety-app"
ALGORITHM = "HS256"
DEFAULT_TTL_SECONDS = 3600

__all__ = ["InvalidTokenError", "decode_access", "encode_access"]


def encode_access(claims: Mapping[str, Any], *, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> str:
    issued_at = int(time.time())
    body: Dict[str, Any] = {
        "iss": ISSUER,
        "aud": AUDIENCE,
        "iat": issued_at,
        "exp": issued_at + ttl_seconds,
        **claims,
    }
    return jwt.encode(body, settings.secret_key, algorithm=ALGORITHM)


def decode_access(token: str) -> Dict[str, Any]:
    """Raises ``InvalidTokenError`` for bad signatures, expiry or a missing subject."""
    claims = jwt.decode(
        token,
        settings.secret_key,
        algorithms=[ALGORITHM],
        audience=AUDIENCE,
        issuer=ISSUER,
        leeway=5,
        options={"require": ["sub", "exp", "iat"]},
    )
    if not str(claims.get("sub") or "").strip():
        raise InvalidTokenError("empty subject")
    return claims
