"""
User Administration Endpoints.

Role changes, activation and manual or bulk user creation, with audit
logging attributed to the real (not impersonated) administrator.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.guards import MANAGEMENT_ROLES, require_role
from backend.app.core.identity import Identity
from backend.app.db.session import get_db
from backend.app.models.enums import UserRole
from backend.app.schemas.user import (
    BulkImportRequest,
    BulkImportResponse,
    RoleChangeRequest,
    UserCreate,
    UserResponse,
)
from backend.app.services import user_service
from backend.app.services.audit import AuditAction, log_admin_action

router = APIRouter(prefix="/api/users", tags=["Users"])


@router.get("", response_model=List[UserResponse])
async def list_users(
    role: Optional[UserRole] = Query(None),
    identity: Identity = Depends(require_role(MANAGEMENT_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    return await user_service.list_users(db, role=role)


@router.post("/add", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def add_user(
    payload: UserCreate,
    identity: Identity = Depends(require_role(MANAGEMENT_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    user = await user_service.create_user(db, payload.email, payload.display_name, payload.role)
    await log_admin_action(
        db, identity.real, AuditAction.USER_CREATED,
        target_user_id=user.id, target_email=user.email, metadata={"role": user.role.value},
    )
    return user


@router.post("/bulk-import", response_model=BulkImportResponse)
async def bulk_import(
    payload: BulkImportRequest,
    identity: Identity = Depends(require_role(MANAGEMENT_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    """Create many users; existing emails are skipped."""
    results = await user_service.bulk_import(db, [entry.model_dump() for entry in payload.users])
    await log_admin_action(
        db, identity.real, AuditAction.USER_CREATED,
        metadata={"bulk": True, "added": results["added"], "skipped": results["skipped"]},
    )
    return results


@router.post("/{user_id}/role", response_model=UserResponse)
async def change_role(
    user_id: int,
    payload: RoleChangeRequest,
    identity: Identity = Depends(require_role(MANAGEMENT_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    """Promote or demote; anything but Pending approves the user."""
    user = await user_service.update_role(db, user_id, payload.role)
    await log_admin_action(
        db, identity.real, AuditAction.ROLE_CHANGED,
        target_user_id=user.id, target_email=user.email, metadata={"role": user.role.value},
    )
    return user


@router.post("/{user_id}/toggle", response_model=UserResponse)
async def toggle_user(
    user_id: int,
    identity: Identity = Depends(require_role(MANAGEMENT_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    """Deactivating a user also invalidates their session on next request."""
    user = await user_service.toggle_active(db, user_id)
    action = AuditAction.USER_ACTIVATED if user.is_active else AuditAction.USER_DEACTIVATED
    await log_admin_action(db, identity.real, action, target_user_id=user.id, target_email=user.email)
    return user
