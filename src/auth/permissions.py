"""Role-based access control (RBAC) for VideoLearn.

Hierarchical permission system:
- ADMIN (level 3): Maintenance operations on any user's progress
- TEACHER (level 2): Read access like a student
- STUDENT (level 1): Records and reads own progress
- GUEST (level 0): Anonymous reader, cannot record progress
"""

from enum import Enum


class UserRole(str, Enum):
    """User roles with hierarchical levels."""

    GUEST = "guest"  # Level 0: Anonymous session
    STUDENT = "student"  # Level 1: Signed-in learner
    TEACHER = "teacher"  # Level 2: Instructor
    ADMIN = "admin"  # Level 3: System administrator


# Role hierarchy mapping (role -> permission level)
ROLE_HIERARCHY: dict[UserRole, int] = {
    UserRole.GUEST: 0,
    UserRole.STUDENT: 1,
    UserRole.TEACHER: 2,
    UserRole.ADMIN: 3,
}


def get_role_level(role: UserRole | str) -> int:
    """Get the permission level for a role; unknown roles rank as guest."""
    if isinstance(role, str):
        try:
            role = UserRole(role)
        except ValueError:
            return 0
    return ROLE_HIERARCHY.get(role, 0)


def has_permission(user_role: UserRole | str, required_role: UserRole | str) -> bool:
    """Check if user has at least the required permission level.

    Examples:
        >>> has_permission(UserRole.ADMIN, UserRole.STUDENT)
        True
        >>> has_permission("guest", "student")
        False
    """
    return get_role_level(user_role) >= get_role_level(required_role)
