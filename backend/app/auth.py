"""
Authentication for operator-facing endpoints.

Supabase Auth is the identity provider: it yields a user id (the JWT ``sub``
claim). The role comes from the public ``users`` table; only ``ADMIN`` users
may review transfer records or use the parser test endpoint.

get_current_user verifies the JWT locally with python-jose when
SUPABASE_JWT_SECRET is set, and falls back to the Supabase Auth API otherwise.
"""

import os
from typing import Optional

from fastapi import Depends, Header, HTTPException
from jose import ExpiredSignatureError, JWTError, jwt

from app.db import supabase, supabase_admin

# Loaded once at startup (Project Settings > API > JWT Secret)
SUPABASE_JWT_SECRET: Optional[str] = os.environ.get("SUPABASE_JWT_SECRET") or None

ADMIN_ROLE = "ADMIN"


async def get_current_user(authorization: Optional[str] = Header(None)) -> str:
    """
    Extract and verify the bearer token from the Authorization header.

    Returns:
        user_id: the authenticated user's id

    Raises:
        HTTPException: 401 if the token is missing, malformed, invalid or expired
    """
    if not authorization:
        raise HTTPException(status_code=401, detail="Not authenticated")

    parts = authorization.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer":
        raise HTTPException(status_code=401, detail="Invalid authentication credentials")

    token = parts[1]

    if SUPABASE_JWT_SECRET:
        return _verify_jwt_locally(token)

    return await _verify_jwt_remotely(token)


def _verify_jwt_locally(token: str) -> str:
    """
    Verify a Supabase HS256 JWT with the project secret and return ``sub``.

    Raises:
        HTTPException 401 on any verification failure.
    """
    try:
        payload = jwt.decode(
            token,
            SUPABASE_JWT_SECRET,
            algorithms=["HS256"],
            options={"verify_aud": False},  # Supabase tokens carry aud="authenticated"
        )
    except ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token")

    user_id: Optional[str] = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid token")

    return user_id


async def _verify_jwt_remotely(token: str) -> str:
    """Verify a token through supabase.auth.get_user (no JWT secret configured)."""
    try:
        response = supabase.auth.get_user(token)
    except Exception as e:
        if "expired" in str(e).lower():
            raise HTTPException(status_code=401, detail="Token expired")
        raise HTTPException(status_code=401, detail="Invalid token")

    if not response or not response.user:
        raise HTTPException(status_code=401, detail="Invalid token")

    return response.user.id


async def require_admin(user_id: str = Depends(get_current_user)) -> str:
    """
    Dependency: the authenticated user must have role ADMIN.

    Returns:
        The admin's user id.

    Raises:
        HTTPException: 403 if the user is not an admin, 500 on database error
    """
    if supabase_admin is None:
        raise HTTPException(status_code=500, detail="Failed to verify role")

    try:
        result = (
            supabase_admin.table("users")
            .select("id, role")
            .eq("id", user_id)
            .execute()
        )
    except Exception:
        raise HTTPException(status_code=500, detail="Failed to verify role")

    if not result.data or result.data[0].get("role") != ADMIN_ROLE:
        raise HTTPException(status_code=403, detail="Admin access required")

    return user_id
