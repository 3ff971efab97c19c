"""
Request context: who is calling and for which organization.

Tokens are HS256 JWTs signed with JWT_SECRET_KEY carrying `sub` (user id),
`org_id` and `role`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Dict, Any

from fastapi import Depends, HTTPException, Request, status
from jose import JWTError, jwt

from shelfmate.core.config import settings

logger = logging.getLogger(__name__)

# Higher number = more permissions
ROLE_LEVELS = {
    "readonly": 0,
    "teacher": 1,
    "admin": 2,
    "owner": 3,
}


@dataclass(frozen=True)
class RequestContext:
    user_id: str
    organization_id: Optional[str]
    role: str


def _unauthorized(detail: str = "Not authenticated") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _extract_bearer_token(request: Request) -> str:
    auth = request.headers.get("Authorization")
    if not auth:
        raise _unauthorized("Missing Authorization header")

    parts = auth.split()
    if len(parts) != 2:
        raise _unauthorized("Invalid Authorization header format. Expected 'Bearer <token>'")

    scheme, token = parts
    if scheme.lower() != "bearer":
        raise _unauthorized("Invalid auth scheme. Expected 'Bearer'")

    return token


def _decode_token(token: str) -> Dict[str, Any]:
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except JWTError as e:
        logger.warning(f"JWT validation failed: {e}")
        raise _unauthorized("Token validation failed")


def create_access_token(user_id: str, organization_id: Optional[str], role: str) -> str:
    """Issue a token for the given identity (used by tooling and tests)."""
    claims = {"sub": user_id, "role": role}
    if organization_id:
        claims["org_id"] = organization_id
    return jwt.encode(claims, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def get_request_context(request: Request) -> RequestContext:
    """FastAPI dependency: identity and tenant from the bearer token."""
    payload = _decode_token(_extract_bearer_token(request))

    user_id = payload.get("sub")
    if not user_id:
        raise _unauthorized("Token missing subject (sub)")

    role = payload.get("role")
    if role not in ROLE_LEVELS:
        raise _unauthorized("Token missing a valid role")

    return RequestContext(
        user_id=str(user_id),
        organization_id=payload.get("org_id") or None,
        role=role,
    )


def require_role(minimum: str):
    """Dependency factory: caller must be in an organization with at least `minimum` role."""
    required_level = ROLE_LEVELS[minimum]

    def dependency(ctx: RequestContext = Depends(get_request_context)) -> RequestContext:
        if ROLE_LEVELS.get(ctx.role, -1) < required_level:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={"error": "Insufficient permissions", "required": minimum},
            )
        if not ctx.organization_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Multi-tenant mode required",
            )
        return ctx

    return dependency
