"""
Caller identity.

Authentication happens upstream: the identity provider (gateway) puts the
authenticated user id in the X-User-ID header and we trust it as given.
"""

from typing import Optional

from fastapi import Header, HTTPException, status

USER_ID_HEADER = "X-User-ID"
MAX_USER_ID_LENGTH = 64


async def get_current_user_id(
    x_user_id: Optional[str] = Header(default=None, alias=USER_ID_HEADER),
) -> str:
    """Resolve the caller's user id or reject the request with 401."""
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing caller identity",
        )
    if len(user_id) > MAX_USER_ID_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"User id longer than {MAX_USER_ID_LENGTH} characters",
        )
    return user_id
