"""
FastAPI Authentication Dependencies for Microservices

Identity is established upstream (gateway); services read it from headers.
"""

from fastapi import Header, HTTPException, status, Request
from typing import Optional
import logging
import os

logger = logging.getLogger(__name__)

INTERNAL_SERVICE_SECRET = os.getenv(
    "INTERNAL_SERVICE_SECRET",
    "dev-internal-secret-change-in-production"
)

INTERNAL_SERVICE_USER = "internal-service"
ADMIN_ROLE = "admin"


def _is_internal(x_internal_service: Optional[str], secret: Optional[str]) -> bool:
    return x_internal_service == "true" and bool(secret) and secret == INTERNAL_SERVICE_SECRET


async def require_user(
    user_id: Optional[str] = Header(None, alias="user-id"),
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
) -> str:
    """
    Require an authenticated customer.

    Returns:
        user_id from the user-id or X-User-Id header

    Raises:
        HTTPException 401: no identity header
    """
    user_id_value = user_id or x_user_id
    if user_id_value:
        return user_id_value

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="User authentication required"
    )


async def require_admin(
    request: Request,
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
    x_user_role: Optional[str] = Header(None, alias="X-User-Role"),
    x_internal_service: Optional[str] = Header(None, alias="X-Internal-Service"),
    x_internal_service_secret: Optional[str] = Header(None, alias="X-Internal-Service-Secret"),
) -> str:
    """
    Require an administrator or an internal service call.

    Returns:
        admin user id, or "internal-service"

    Raises:
        HTTPException 401: no identity header
        HTTPException 403: identity without the admin role
    """
    if _is_internal(x_internal_service, x_internal_service_secret):
        logger.debug(f"Internal service request to {request.url.path}")
        return INTERNAL_SERVICE_USER

    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User authentication required"
        )

    if (x_user_role or "").lower() != ADMIN_ROLE:
        logger.warning(f"Non-admin user {x_user_id} denied access to {request.url.path}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )

    return x_user_id
