"""
Security utilities: resolve the calling principal for a request.

Authentication happens upstream. The verified user id arrives in the
X-User-Id header; the role tag comes from the users collection.
"""

import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException, status

from app.models.user import Principal
from app.services.pulse_runtime import get_runtime

logger = logging.getLogger(__name__)


async def get_current_principal(x_user_id: Optional[str] = Header(None)) -> Principal:
    """
    Resolve the caller.

    Raises:
        401: X-User-Id header missing or blank
    """
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header"
        )
    return await get_runtime().users.get_principal(x_user_id.strip())


async def require_admin(principal: Principal = Depends(get_current_principal)) -> Principal:
    """
    Raises:
        403: Caller is not an admin
    """
    if not principal.is_admin:
        logger.warning(f"Non-admin {principal.uid} ({principal.role.value}) denied admin view")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin role required"
        )
    return principal
