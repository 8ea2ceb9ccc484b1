"""
Dashboard endpoint.

Management sees recent checklists across all stores; area managers see
their own submissions and assigned stores.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.api.endpoints.checklist_forms import stores_for
from backend.app.core.guards import CHECKLIST_ROLES, require_role
from backend.app.core.identity import Identity
from backend.app.db.session import get_db
from backend.app.schemas.auth import IdentityUserResponse
from backend.app.schemas.catalog import StoreResponse
from backend.app.schemas.checklist import ChecklistStats, ChecklistSummary, DashboardResponse
from backend.app.services import checklist_service, settings_service

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])

RECENT_LIMIT = 50


@router.get("", response_model=DashboardResponse)
async def dashboard(
    identity: Identity = Depends(require_role(CHECKLIST_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    user = identity.effective
    passing_score = await settings_service.get_passing_score(db)

    if checklist_service.is_management(user):
        checklists = await checklist_service.list_checklists(db, limit=RECENT_LIMIT)
        stats = await checklist_service.get_stats(db, passing_score=passing_score)
    else:
        checklists = await checklist_service.list_submitted_by(db, user.id)
        stats = await checklist_service.get_stats(db, submitted_by=user.id, passing_score=passing_score)

    return DashboardResponse(
        user=IdentityUserResponse.model_validate(user),
        real_user=IdentityUserResponse.model_validate(identity.real),
        is_impersonating=identity.is_impersonating,
        stats=ChecklistStats(**stats),
        recent_checklists=[ChecklistSummary.model_validate(checklist) for checklist in checklists],
        stores=[StoreResponse.model_validate(store) for store in await stores_for(db, user)],
        passing_score=passing_score,
    )
