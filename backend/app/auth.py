"""Authentication utilities for the GreenKeep sync server."""

from datetime import datetime, timedelta, timezone
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from greenkeep.shared import Role

from .config import Settings, get_settings

# Bearer token scheme; missing credentials are reported as 401 below
security = HTTPBearer(auto_error=False)

# Where a superadmin may name the tenant to act on
TENANT_HEADER = "x-tenant-id"
TENANT_QUERY_PARAM = "tenant_id"


def create_access_token(
    user_id: str,
    settings: Settings,
    tenant_id: str | None = None,
    role: str = Role.TEAM.value,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a JWT access token for a user of one tenant."""
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.jwt_expire_minutes)

    to_encode = {
        "sub": user_id,
        "role": role,
        "exp": expire,
        "iat": datetime.now(timezone.utc),
        "type": "access",
    }
    # Superadmins are not bound to a tenant
    if tenant_id:
        to_encode["tenant_id"] = tenant_id
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str, settings: Settings) -> dict:
    """Decode and validate a JWT token."""
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
        return payload
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )


class AuthContext:
    """Context from JWT token containing user_id, tenant_id and role."""

    def __init__(self, user_id: str, tenant_id: str | None = None, role: str = Role.TEAM.value):
        self.user_id = user_id
        self.tenant_id = tenant_id
        self.role = role

    @property
    def is_superadmin(self) -> bool:
        return self.role == Role.SUPERADMIN.value

    def effective_tenant_id(self, request: Request) -> str:
        """Tenant the request acts on.

        The token's tenant, unless a superadmin names another one through
        the ``tenant_id`` query parameter or the ``X-Tenant-Id`` header (checked
        in that order).

        Raises:
            HTTPException: 400 if no tenant can be determined.
        """
        tenant_id = self.tenant_id
        if self.is_superadmin:
            override = request.query_params.get(TENANT_QUERY_PARAM) or request.headers.get(
                TENANT_HEADER
            )
            tenant_id = override or tenant_id
        if not tenant_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Tenant context required",
            )
        return tenant_id


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> AuthContext:
    """Get the current authenticated user context from the bearer token."""
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated - provide Authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_token(credentials.credentials, settings)
    user_id = payload.get("sub")
    role = payload.get("role") or Role.TEAM.value
    if not user_id or role not in {r.value for r in Role}:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return AuthContext(user_id=user_id, tenant_id=payload.get("tenant_id"), role=role)


# Type alias for dependency injection
CurrentUser = Annotated[AuthContext, Depends(get_current_user)]
