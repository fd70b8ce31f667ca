"""Authentication dependencies.

Callers authenticate with a bearer JWT issued by the auth service. The
token carries the user id (``sub``), email and role; this module only
decodes and checks it.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Annotated

import structlog
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from storefront.domain.exceptions import AuthenticationError, PermissionDeniedError
from storefront.infrastructure.config import settings

logger = structlog.get_logger()

bearer_scheme = HTTPBearer(auto_error=False)


class Role(str, Enum):
    """User roles carried in the token."""

    CUSTOMER = "CUSTOMER"
    ADMIN = "ADMIN"
    SUPER_ADMIN = "SUPER_ADMIN"


ADMIN_ROLES = frozenset({Role.ADMIN, Role.SUPER_ADMIN})


@dataclass(frozen=True)
class CurrentUser:
    """Authenticated caller."""

    id: str
    email: str | None
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES


def create_access_token(
    user_id: str,
    email: str | None = None,
    role: Role = Role.CUSTOMER,
    expires_delta: timedelta | None = None,
) -> str:
    """Issue a signed access token."""
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    claims = {"sub": user_id, "email": email, "role": role.value, "exp": expire}
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> CurrentUser:
    """Decode and check a token.

    Raises:
        AuthenticationError: Token is malformed, expired or incomplete.
    """
    try:
        claims = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        logger.info("Rejected access token", error=str(e))
        raise AuthenticationError("Invalid or expired token.") from e

    user_id = claims.get("sub")
    if not user_id:
        raise AuthenticationError("Invalid or expired token.")
    try:
        role = Role(claims.get("role", Role.CUSTOMER.value))
    except ValueError as e:
        raise AuthenticationError("Invalid or expired token.") from e

    return CurrentUser(id=user_id, email=claims.get("email"), role=role)


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> CurrentUser:
    """Resolve the caller from the Authorization header."""
    if credentials is None:
        raise AuthenticationError()
    user = decode_access_token(credentials.credentials)
    structlog.contextvars.bind_contextvars(user_id=user.id)
    return user


async def require_admin(
    user: Annotated[CurrentUser, Depends(get_current_user)],
) -> CurrentUser:
    """Resolve the caller and require an admin role."""
    if not user.is_admin:
        logger.warning("Admin endpoint called without admin role", role=user.role.value)
        raise PermissionDeniedError()
    return user
