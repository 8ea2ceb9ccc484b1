"""
Admin API Endpoints.

Settings and audit trail.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.guards import ADMIN_ONLY, CHECKLIST_ROLES, MANAGEMENT_ROLES, require_role
from backend.app.core.identity import Identity
from backend.app.db.session import get_db
from backend.app.schemas.admin import (
    AuditLogResponse,
    AuditTrailResponse,
    PassingScoreResponse,
    PassingScoreUpdate,
)
from backend.app.services import settings_service
from backend.app.services.audit import AuditAction, get_audit_trail, log_admin_action

router = APIRouter(prefix="/api", tags=["Admin"])


@router.get("/settings/passing-score", response_model=PassingScoreResponse)
async def get_passing_score(
    identity: Identity = Depends(require_role(CHECKLIST_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    return PassingScoreResponse(passing_score=await settings_service.get_passing_score(db))


@router.put("/settings/passing-score", response_model=PassingScoreResponse)
async def set_passing_score(
    payload: PassingScoreUpdate,
    identity: Identity = Depends(require_role(MANAGEMENT_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    await settings_service.set_setting(
        db, settings_service.PASSING_SCORE_KEY, payload.passing_score, updated_by=identity.real.id,
    )
    await log_admin_action(
        db, identity.real, AuditAction.SETTING_CHANGED,
        metadata={"key": settings_service.PASSING_SCORE_KEY, "value": payload.passing_score},
    )
    return PassingScoreResponse(passing_score=payload.passing_score)


@router.get("/admin/audit-logs", response_model=AuditTrailResponse)
async def get_audit_logs(
    target_user_id: Optional[int] = Query(None, description="Filter by target user"),
    action: Optional[str] = Query(None, description="Filter by action type"),
    limit: int = Query(100, ge=1, le=500, description="Max records to return"),
    identity: Identity = Depends(require_role(ADMIN_ONLY)),
    db: AsyncSession = Depends(get_db)
):
    """
    Get audit trail (admin-only).

    Returns recent audit events with optional filtering.
    """
    logs = await get_audit_trail(db, target_user_id=target_user_id, action=action, limit=limit)

    return AuditTrailResponse(
        logs=[AuditLogResponse.model_validate(log) for log in logs],
        total=len(logs)
    )
