"""FastAPI dependencies for authentication.

Provides dependency injection for:
- Current user extraction from JWT
- Guest fallback for anonymous readers
- Role-based access control
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from jose import JWTError

from src.auth.permissions import UserRole, has_permission
from src.auth.schemas import AuthenticatedUser
from src.auth.security import decode_access_token
from src.config.settings import get_settings
from src.core.context import set_user_id


def get_token_from_header(request: Request) -> str | None:
    """Extract Bearer token from Authorization header.

    Returns:
        Token string or None if not present
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None

    expected_parts = 2
    parts = auth_header.split()
    if len(parts) != expected_parts or parts[0].lower() != "bearer":
        return None

    return parts[1]


def _user_from_token(token: str) -> AuthenticatedUser:
    payload = decode_access_token(token)
    try:
        role = UserRole(payload["role"])
    except ValueError as e:
        msg = f"Unknown role: {payload['role']}"
        raise JWTError(msg) from e

    user_id = str(payload["sub"])
    set_user_id(user_id)
    return AuthenticatedUser(id=user_id, email=payload.get("email"), role=role)


def guest_user() -> AuthenticatedUser:
    """The shared guest identity used for anonymous sessions."""
    return AuthenticatedUser(id=get_settings().auth_guest_user_id, role=UserRole.GUEST)


async def get_current_user(
    token: Annotated[str | None, Depends(get_token_from_header)],
) -> AuthenticatedUser:
    """Get current authenticated user from JWT token.

    Raises:
        HTTPException(401): If token is missing, invalid, or expired
    """
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Access token not provided",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return _user_from_token(token)
    except JWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


async def get_current_user_or_guest(
    token: Annotated[str | None, Depends(get_token_from_header)],
) -> AuthenticatedUser:
    """Authenticated user, or the guest identity when no token is sent.

    A token that is present but invalid is still rejected with 401.
    """
    if not token:
        user = guest_user()
        set_user_id(user.id)
        return user
    return await get_current_user(token)


def require_permission(required_role: UserRole):
    """Create dependency requiring at least a permission level.

    Uses hierarchical comparison: ADMIN >= TEACHER >= STUDENT >= GUEST
    """

    async def permission_checker(
        user: Annotated[AuthenticatedUser, Depends(get_current_user_or_guest)],
    ) -> AuthenticatedUser:
        if not has_permission(user.role, required_role):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permission",
            )
        return user

    return permission_checker


# ==============================================================================
# Type Aliases for Cleaner Code
# ==============================================================================

# Reader: signed-in user or guest
ReaderUser = Annotated[AuthenticatedUser, Depends(get_current_user_or_guest)]

# Writer: any signed-in user (guests get 403, missing token on its own is guest)
StudentUser = Annotated[
    AuthenticatedUser, Depends(require_permission(UserRole.STUDENT))
]

AdminUser = Annotated[AuthenticatedUser, Depends(require_permission(UserRole.ADMIN))]
