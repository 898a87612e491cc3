"""Admin authentication dependencies for FastAPI endpoints.

Provides reusable Depends() callables for admin-only endpoints so that
individual routers do not need to repeat the role-checking boilerplate.
"""

import logging
import uuid
from typing import Any, Optional

from fastapi import Depends, HTTPException, Request, status

from app.auth import get_current_user
from app.deps import get_workflow_repository
from app.repositories import SqlWorkflowRepository
from app.security import log_security_event

logger = logging.getLogger(__name__)

ADMIN_ROLES = ("admin", "service_role")
SERVICE_ROLE = "service_role"


async def assert_admin(
    request: Request,
    current_user: Optional[dict[str, Any]],
    repo: SqlWorkflowRepository,
    allow_service_role: bool = True,
) -> dict[str, Any]:
    """Check that *current_user* may perform admin actions.

    The role claim in the token is checked first; for human admins the
    ``users`` table is consulted as well so that a revoked role takes
    effect before the token expires.  ``service_role`` tokens belong to
    trusted backends and have no users row; pass
    ``allow_service_role=False`` where the action must be attributed to a
    user (manual status changes).

    Raises:
        HTTPException: 401 without a user, 403 when not an admin.
    """
    if current_user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    role = current_user.get("role", "")
    if role not in ADMIN_ROLES:
        log_security_event(
            "admin_access_denied", request, {"user_id": current_user.get("id")}
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )

    if role == SERVICE_ROLE:
        if allow_service_role:
            return current_user
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="This action requires an admin user account",
        )

    try:
        user_id = uuid.UUID(str(current_user["id"]))
    except (KeyError, ValueError) as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
        ) from exc

    user = await repo.get_user(user_id)
    if user is None or user.role != "admin":
        log_security_event(
            "admin_role_mismatch", request, {"user_id": str(user_id)}
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return current_user


async def require_admin(
    request: Request,
    current_user: dict = Depends(get_current_user),
    repo: SqlWorkflowRepository = Depends(get_workflow_repository),
) -> dict:
    """FastAPI dependency that enforces admin-level access.

    Usage::

        @router.get("/admin/something")
        async def admin_endpoint(
            user: dict = Depends(require_admin),
        ):
            ...
    """
    return await assert_admin(request, current_user, repo)
