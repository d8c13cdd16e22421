"""Pydantic schemas for the authenticated caller."""

from pydantic import BaseModel, Field

from .permissions import UserRole


class AuthenticatedUser(BaseModel):
    """Caller identity extracted from the access token (or the guest)."""

    id: str = Field(..., description="Opaque user identifier")
    email: str | None = None
    role: UserRole = UserRole.GUEST
