import secrets
from typing import Optional
from fastapi import Header, HTTPException, status

from . import config


async def get_current_user_id(
    x_user_id: Optional[str] = Header(default=None)
) -> Optional[str]:
    """User id forwarded by the identity provider's gateway."""
    return x_user_id or None


async def require_user_id(
    x_user_id: Optional[str] = Header(default=None)
) -> str:
    """Require an authenticated user."""
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated"
        )
    return x_user_id


async def require_admin(
    x_admin_token: Optional[str] = Header(default=None)
) -> None:
    """Require the operator token."""
    if not config.ADMIN_TOKEN or not x_admin_token or not secrets.compare_digest(x_admin_token, config.ADMIN_TOKEN):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
