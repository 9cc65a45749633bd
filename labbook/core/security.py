"""
Identity boundary.

Tokens are issued by the external identity provider and carry `sub` (the
actor id) and `role`. This module only verifies them and turns them into
an explicit Actor; there is no session state.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from labbook.core.config import get_settings
from labbook.core.logging import get_logger
from labbook.domain.roles import has_role
from labbook.domain.types import Actor, Role

logger = get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Issue a token in the identity provider's format (tests and tooling)."""
    settings = get_settings()
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_actor(token: str) -> Actor:
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError as e:
        logger.warning("token_rejected", error=str(e))
        raise _unauthorized("Could not validate credentials")

    subject = payload.get("sub")
    if not subject:
        raise _unauthorized("Could not validate credentials")

    try:
        role = Role(payload.get("role", Role.STUDENT.value))
    except ValueError:
        logger.warning("token_rejected", reason="unknown_role", subject=subject)
        raise _unauthorized("Unknown role")

    return Actor(id=str(subject), role=role)


async def get_current_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Actor:
    if credentials is None:
        raise _unauthorized("Not authenticated")
    return decode_actor(credentials.credentials)


def require_role(required: Role):
    """Dependency factory: the current actor, or 403 below `required`."""

    async def dependency(actor: Actor = Depends(get_current_actor)) -> Actor:
        if not has_role(actor, required):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={"code": "FORBIDDEN", "message": "Insufficient role"},
            )
        return actor

    return dependency
