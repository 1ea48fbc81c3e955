"""JWT access token issuing and verification."""

from __future__ import annotations

import time
import uuid

import jwt

from restaurant_tenancy.auth.actor import Actor


def issue_access_token(
    actor: Actor,
    *,
    secret: str,
    algorithm: str = "HS256",
    ttl_seconds: int = 24 * 3600,
    tenant_id: int | None = None,
) -> str:
    """Encode an actor into a signed access token.

    Args:
        actor: Identity to encode.
        secret: Signing key.
        algorithm: JWT signing algorithm.
        ttl_seconds: Lifetime of the token.
        tenant_id: Optional override of the actor's tenant (tenant switching).

    Returns:
        Encoded JWT string.
    """
    now = int(time.time())
    payload = {
        "user_id": actor.id,
        "restaurant_id": tenant_id if tenant_id is not None else actor.tenant_id,
        "role": actor.role,
        "email": actor.email,
        "jti": str(uuid.uuid4()),
        "iat": now,
        "exp": now + ttl_seconds,
    }
    return jwt.encode(payload, secret, algorithm=algorithm)


def decode_access_token(
    token: str,
    *,
    secret: str,
    algorithm: str = "HS256",
) -> Actor:
    """Verify a token and return the actor it carries.

    Raises:
        jwt.InvalidTokenError: bad signature, expired, or missing claims.
    """
    payload = jwt.decode(
        token,
        secret,
        algorithms=[algorithm],
        options={"require": ["exp", "user_id", "role"]},
    )
    restaurant_id = payload.get("restaurant_id")
    try:
        return Actor(
            id=int(payload["user_id"]),
            role=str(payload["role"]),
            tenant_id=int(restaurant_id) if restaurant_id is not None else None,
            email=payload.get("email"),
        )
    except (TypeError, ValueError) as exc:
        raise jwt.InvalidTokenError("Malformed identity claims") from exc
