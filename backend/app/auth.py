"""Bearer-token authentication for the workflow API.

Tokens are HS256 JWTs signed with ``JWT_SECRET`` (python-jose).  The
identity provider that issues them for end users is outside this service;
:func:`create_access_token` exists for trusted service-to-service callers
such as the voting service and for tests.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from app.config import Settings
from app.security import log_security_event

logger = logging.getLogger(__name__)

JWT_EXPIRY_HOURS = 24

# ---------------------------------------------------------------------------
# HTTPBearer scheme (missing header is handled by the dependencies below)
# ---------------------------------------------------------------------------
security = HTTPBearer(auto_error=False)


def create_access_token(
    user_data: dict[str, Any],
    settings: Settings,
    expires_in: timedelta = timedelta(hours=JWT_EXPIRY_HOURS),
) -> str:
    """Create a signed JWT carrying the user's id, email, and role."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_data["id"]),
        "email": user_data.get("email", ""),
        "role": user_data.get("role", "user"),
        "exp": now + expires_in,
        "iat": now,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def _decode_token(request: Request, token: str) -> dict[str, Any]:
    settings: Settings = request.app.state.settings
    try:
        payload = jwt.decode(
            token, settings.jwt_secret, algorithms=[settings.jwt_algorithm]
        )
    except JWTError as exc:
        logger.warning("JWT validation failed: %s", exc)
        log_security_event("auth_invalid_token", request)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc

    user_id: str = payload.get("sub", "")
    if not user_id:
        log_security_event("auth_invalid_payload", request)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
        )

    return {
        "id": user_id,
        "email": payload.get("email", ""),
        "role": payload.get("role", "user"),
    }


async def get_optional_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[dict[str, Any]]:
    """FastAPI dependency -- the caller's identity, or None when anonymous.

    A token that is present but invalid is still rejected with 401.
    """
    if credentials is None or not credentials.credentials:
        return None
    return _decode_token(request, credentials.credentials)


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> dict[str, Any]:
    """FastAPI dependency -- extract and validate the Bearer JWT."""
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return _decode_token(request, credentials.credentials)
