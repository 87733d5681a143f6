"""JWT access token creation and validation (ES256).

coursehub does not run a login flow; it only validates bearer tokens to
learn who is calling. ``create_access_token`` exists for tests and the
local demo script so both sides share one key and one claims schema.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta

import jwt
from cryptography.hazmat.primitives.asymmetric import ec

# Dev/test: ephemeral EC key pair generated on import.
_private_key = ec.generate_private_key(ec.SECP256R1())
_public_key = _private_key.public_key()

ALGORITHM = "ES256"
ISSUER = "coursehub"
AUDIENCE = "coursehub"
ACCESS_TOKEN_TTL_MIN = 15


def create_access_token(
    *, sub: str, roles: list[str] | None = None, ttl: timedelta | None = None
) -> str:
    """Build and sign an access token with sub, iss, aud, exp, iat, jti, roles."""
    now = datetime.now(UTC)
    if ttl is None:
        ttl = timedelta(minutes=ACCESS_TOKEN_TTL_MIN)
    payload = {
        "sub": sub,
        "iss": ISSUER,
        "aud": AUDIENCE,
        "exp": now + ttl,
        "iat": now,
        "jti": str(uuid.uuid4()),
        "roles": roles or ["student"],
    }
    return jwt.encode(payload, _private_key, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Verify signature and claims, return the payload.

    Pins the algorithm to ES256 so alg:none and alg-switching tokens are
    rejected. Raises jwt.ExpiredSignatureError, jwt.InvalidTokenError.
    """
    return jwt.decode(
        token,
        _public_key,
        algorithms=[ALGORITHM],
        issuer=ISSUER,
        audience=AUDIENCE,
        options={"require": ["sub", "exp", "iat", "jti"]},
    )
