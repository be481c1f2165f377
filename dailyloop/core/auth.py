"""
Auth utilities for the dailyloop API.

Tokens are issued by the external auth service; this module only verifies
them and extracts the user id. Falls back to the X-User-Id header for
trusted internal callers and tests.
"""
from fastapi import Header, HTTPException, Request
from typing import Optional
from dailyloop.core.config import settings
import jwt
import logging

logger = logging.getLogger("dailyloop")


def verify_token(token: str, secret: Optional[str] = None) -> Optional[str]:
    """
    Verify an HS256 JWT and extract the user id.

    The auth service signs `{"id": <user id>, ...}`; a standard `sub` claim
    is accepted as well.

    Returns:
        user_id, or None when no JWT_SECRET is configured

    Raises:
        HTTPException 401: Invalid or expired token
    """
    key = secret or settings.JWT_SECRET
    if not key:
        logger.debug("No JWT_SECRET configured, skipping JWT validation")
        return None

    try:
        payload = jwt.decode(
            token,
            key,
            algorithms=["HS256"],
            options={"verify_signature": True, "verify_exp": True},
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError as e:
        logger.debug(f"Invalid token: {e}")
        raise HTTPException(status_code=401, detail="Invalid token")

    user_id = payload.get("id") or payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=401, detail="Token carries no user id")
    return str(user_id)


async def get_current_user_id(
    request: Request,
    x_user_id: Optional[str] = Header(None, description="Trusted caller / test user ID"),
) -> str:
    """
    Extract current user ID from request context.

    Priority:
    1. Bearer JWT from Authorization header
    2. X-User-Id header
    3. Raise 401 Unauthorized
    """
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        user_id = verify_token(auth_header[7:])
        if user_id:
            return user_id

    if x_user_id and x_user_id.strip():
        return x_user_id.strip()

    raise HTTPException(
        status_code=401,
        detail="Missing Authorization (Bearer JWT) or X-User-Id header",
    )
