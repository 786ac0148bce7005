# app/services/supabase_auth.py
"""
Supabase access tokens: HS256, signed with the project's JWT secret.
Every failure is a ValueError; get_current_user turns it into a 401.
"""
from typing import Any, Dict
from uuid import UUID

from jose import jwt, JWTError

ALGORITHMS = ["HS256"]


def extract_token(authorization: str | None) -> str:
    scheme, _, token = (authorization or "").partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        raise ValueError("expected 'Authorization: Bearer <token>'")
    return token


def decode_access_token(
    token: str,
    *,
    secret: str,
    audience: str | None = None,
    issuer: str | None = None,
) -> Dict[str, Any]:
    try:
        return jwt.decode(
            token,
            secret,
            algorithms=ALGORITHMS,
            audience=audience or None,
            issuer=issuer or None,
            # Supabase always sets aud; only check it when one is configured
            options={"verify_aud": bool(audience)},
        )
    except JWTError as e:
        raise ValueError(f"invalid token: {e}") from e


async def verify_bearer(
    authorization: str | None,
    *,
    secret: str,
    audience: str | None = None,
    issuer: str | None = None,
) -> Dict[str, Any]:
    """Claims the API relies on: `user_id` (UUID from `sub`) and `email`."""
    claims = decode_access_token(
        extract_token(authorization), secret=secret, audience=audience, issuer=issuer
    )
    try:
        user_id = UUID(str(claims.get("sub")))
    except ValueError:
        raise ValueError("token subject is not a user id")

    return {
        "user_id": user_id,
        "email": claims.get("email"),
    }
