"""
Checklist API Endpoints.

JSON submission, live score preview, listing, statistics and admin removal.
"""

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import ResourceNotFoundError
from backend.app.core.guards import ADMIN_ONLY, CHECKLIST_ROLES, require_role
from backend.app.core.identity import Identity
from backend.app.db.session import get_db
from backend.app.domain.scoring.scoring_engine import score, round_percentage
from backend.app.schemas.checklist import (
    ChecklistCreate,
    ChecklistDetail,
    ChecklistStats,
    ChecklistSummary,
    ScorePreviewRequest,
    ScorePreviewResponse,
)
from backend.app.services import checklist_service, settings_service
from backend.app.services.audit import AuditAction, log_event

router = APIRouter(prefix="/api/checklists", tags=["Checklists"])


async def record_submission(db: AsyncSession, identity: Identity, checklist) -> None:
    metadata = {
        "document_number": checklist.document_number,
        "store_id": checklist.store_id,
        "score_percentage": checklist.score_percentage,
    }
    if identity.is_impersonating:
        metadata["acting_as"] = identity.effective.email
    await log_event(
        db,
        AuditAction.CHECKLIST_SUBMITTED,
        actor_id=identity.real.id,
        actor_email=identity.real.email,
        metadata=metadata,
    )


@router.post("", response_model=ChecklistDetail, status_code=status.HTTP_201_CREATED)
async def create_checklist(
    payload: ChecklistCreate,
    identity: Identity = Depends(require_role(CHECKLIST_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    """Submit a checklist; scores are computed server side."""
    user = identity.effective
    await checklist_service.ensure_can_submit_for_store(db, user, payload.store_id)

    submission = checklist_service.ChecklistSubmission(
        store_id=payload.store_id,
        audit_date=payload.audit_date,
        submitted_by=user.id,
        notes=payload.notes,
        answers=[
            checklist_service.AnswerInput(
                question_id=item.question_id,
                coefficient=item.coefficient,
                answer=item.answer.value,
                comment=item.comment,
            )
            for item in payload.answers
        ],
    )
    checklist = await checklist_service.submit_checklist(db, submission)
    await record_submission(db, identity, checklist)
    return checklist


@router.post("/preview", response_model=ScorePreviewResponse)
async def preview_score(
    payload: ScorePreviewRequest,
    identity: Identity = Depends(require_role(CHECKLIST_ROLES))
):
    """Score a form in progress exactly as a submission would be scored."""
    result = score((item.coefficient, item.answer) for item in payload.items)
    return ScorePreviewResponse(
        total_coefficient=result.total_coefficient,
        applicable_coefficient=result.applicable_coefficient,
        earned=result.earned,
        percentage=round_percentage(result.percentage),
    )


@router.get("", response_model=List[ChecklistSummary])
async def list_checklists(
    store_id: Optional[int] = Query(None, alias="storeId"),
    from_date: Optional[date] = Query(None, alias="fromDate"),
    to_date: Optional[date] = Query(None, alias="toDate"),
    limit: Optional[int] = Query(None, ge=1, le=500),
    identity: Identity = Depends(require_role(CHECKLIST_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    """Management sees every checklist; area managers see their own."""
    user = identity.effective
    if checklist_service.is_management(user):
        return await checklist_service.list_checklists(
            db, store_id=store_id, from_date=from_date, to_date=to_date, limit=limit,
        )
    return await checklist_service.list_submitted_by(db, user.id)


@router.get("/stats", response_model=ChecklistStats)
async def checklist_stats(
    store_id: Optional[int] = Query(None, alias="storeId"),
    from_date: Optional[date] = Query(None, alias="fromDate"),
    to_date: Optional[date] = Query(None, alias="toDate"),
    identity: Identity = Depends(require_role(CHECKLIST_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    user = identity.effective
    submitted_by = None if checklist_service.is_management(user) else user.id
    return await checklist_service.get_stats(
        db,
        store_id=store_id,
        submitted_by=submitted_by,
        from_date=from_date,
        to_date=to_date,
        passing_score=await settings_service.get_passing_score(db),
    )


@router.get("/by-number/{document_number}", response_model=ChecklistDetail)
async def get_checklist_by_number(
    document_number: str,
    identity: Identity = Depends(require_role(CHECKLIST_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    checklist = await checklist_service.get_by_document_number(db, document_number)
    if checklist is None:
        raise ResourceNotFoundError("Checklist", document_number)
    checklist_service.ensure_can_view(checklist, identity.effective)
    return checklist


@router.get("/{checklist_id}", response_model=ChecklistDetail)
async def get_checklist(
    checklist_id: int,
    identity: Identity = Depends(require_role(CHECKLIST_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    checklist = await checklist_service.get_checklist(db, checklist_id)
    if checklist is None:
        raise ResourceNotFoundError("Checklist", checklist_id)
    checklist_service.ensure_can_view(checklist, identity.effective)
    return checklist


@router.delete("/{checklist_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_checklist(
    checklist_id: int,
    identity: Identity = Depends(require_role(ADMIN_ONLY)),
    db: AsyncSession = Depends(get_db)
):
    """Remove a checklist and its answers (admin only)."""
    checklist = await checklist_service.delete_checklist(db, checklist_id)
    await log_event(
        db,
        AuditAction.CHECKLIST_DELETED,
        actor_id=identity.real.id,
        actor_email=identity.real.email,
        metadata={"document_number": checklist.document_number},
    )
