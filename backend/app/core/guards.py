"""
Security guards for role-based access control.

Provides dependencies for protecting endpoints. Role checks look at the
effective identity (the impersonated user while an admin impersonates),
except ``require_real_admin`` which only trusts the logged-in user.
"""

from typing import Iterable

from fastapi import Depends

from backend.app.core.dependencies import get_identity
from backend.app.core.exceptions import RoleForbiddenError
from backend.app.core.identity import Identity
from backend.app.models.enums import UserRole

ADMIN_ONLY = (UserRole.ADMIN,)
MANAGEMENT_ROLES = (UserRole.ADMIN, UserRole.HEAD_OF_OPERATIONS)
CHECKLIST_ROLES = (UserRole.ADMIN, UserRole.HEAD_OF_OPERATIONS, UserRole.AREA_MANAGER)


def require_role(allowed_roles: Iterable[UserRole]):
    """
    Dependency factory for role-based access control.

    Usage:
        @router.get("/api/users")
        async def list_users(identity: Identity = Depends(require_role(MANAGEMENT_ROLES))):
            ...

    Args:
        allowed_roles: UserRole values that are allowed to access the endpoint

    Returns:
        FastAPI dependency returning the caller's Identity

    Raises:
        RoleForbiddenError if the effective role is not in allowed_roles
    """
    allowed = tuple(allowed_roles)

    async def role_checker(identity: Identity = Depends(get_identity)) -> Identity:
        if not identity.effective.role.is_one_of(allowed):
            raise RoleForbiddenError(allowed, identity.effective.role)
        return identity

    return role_checker


async def require_real_admin(identity: Identity = Depends(get_identity)) -> Identity:
    """
    Dependency for actions an impersonated session must never unlock.

    Checks the real (logged-in) user, not the effective one.
    """
    if identity.real.role != UserRole.ADMIN:
        raise RoleForbiddenError(ADMIN_ONLY, identity.real.role)
    return identity
