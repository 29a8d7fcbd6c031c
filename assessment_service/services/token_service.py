"""JWT access token validation (HS256, shared secret).

Tokens are issued by the hosted database's auth service; this service
only verifies them. ``create_access_token`` mints compatible tokens for
tests and local scripts.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta

import jwt

from assessment_service.core.config import SETTINGS

ALGORITHM = "HS256"
ACCESS_TOKEN_TTL_MIN = 60


def create_access_token(
    *,
    sub: str,
    roles: list[str] | None = None,
    ttl_minutes: int = ACCESS_TOKEN_TTL_MIN,
) -> str:
    now = datetime.now(UTC)
    payload = {
        "sub": sub,
        "aud": SETTINGS.jwt_audience,
        "exp": now + timedelta(minutes=ttl_minutes),
        "iat": now,
        "jti": str(uuid.uuid4()),
        "roles": roles or ["user"],
    }
    return jwt.encode(payload, SETTINGS.jwt_secret, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Verify signature and claims, return the payload.

    Pins the algorithm to HS256 so alg:none and alg-switching are rejected.

    Raises jwt.ExpiredSignatureError, jwt.InvalidTokenError on failure.
    """
    return jwt.decode(
        token,
        SETTINGS.jwt_secret,
        algorithms=[ALGORITHM],
        audience=SETTINGS.jwt_audience,
        options={"require": ["sub", "exp"]},
    )
