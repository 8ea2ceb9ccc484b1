"""
Admin Session Management Endpoints.

Thin wrappers over the session store, restricted to administrators.
"""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.guards import ADMIN_ONLY, require_role
from backend.app.core.identity import Identity
from backend.app.db.session import get_db
from backend.app.schemas.session import ActiveSessionItem, SessionActionResponse, UserSessionsGroup
from backend.app.services import session_store
from backend.app.services.audit import AuditAction, log_admin_action

router = APIRouter(prefix="/api/admin/sessions", tags=["Admin Sessions"])


@router.get("", response_model=List[ActiveSessionItem])
async def list_sessions(
    identity: Identity = Depends(require_role(ADMIN_ONLY)),
    db: AsyncSession = Depends(get_db)
):
    """All live sessions with the owning user's live session count."""
    return await session_store.list_active_sessions(db)


@router.get("/by-user", response_model=List[UserSessionsGroup])
async def list_sessions_by_user(
    identity: Identity = Depends(require_role(ADMIN_ONLY)),
    db: AsyncSession = Depends(get_db)
):
    return await session_store.list_sessions_by_user(db)


@router.post("/cleanup", response_model=SessionActionResponse)
async def cleanup_sessions(
    identity: Identity = Depends(require_role(ADMIN_ONLY)),
    db: AsyncSession = Depends(get_db)
):
    """Run the expired-session sweep now."""
    deleted = await session_store.cleanup_expired_sessions(db)
    await log_admin_action(db, identity.real, AuditAction.SESSIONS_CLEANED, metadata={"deleted": deleted})
    return SessionActionResponse(success=True, deleted=deleted)


@router.delete("/user/{user_id}", response_model=SessionActionResponse)
async def delete_user_sessions(
    user_id: int,
    identity: Identity = Depends(require_role(ADMIN_ONLY)),
    db: AsyncSession = Depends(get_db)
):
    """Sign a user out everywhere."""
    deleted = await session_store.delete_user_sessions(db, user_id)
    await log_admin_action(
        db, identity.real, AuditAction.USER_SESSIONS_TERMINATED,
        target_user_id=user_id, metadata={"deleted": deleted},
    )
    return SessionActionResponse(success=True, deleted=deleted)


@router.delete("/{session_id}", response_model=SessionActionResponse)
async def delete_session(
    session_id: int,
    identity: Identity = Depends(require_role(ADMIN_ONLY)),
    db: AsyncSession = Depends(get_db)
):
    """Terminate one session by its row id."""
    deleted = await session_store.delete_session_by_id(db, session_id)
    await log_admin_action(
        db, identity.real, AuditAction.SESSION_TERMINATED, metadata={"session_id": session_id, "deleted": deleted},
    )
    return SessionActionResponse(success=True, deleted=deleted)
