"""
Impersonation Endpoints.

Starting is reserved to a logged-in administrator (checked on the real
identity). Stopping is open to any authenticated caller.
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.cookies import clear_impersonation_cookie, set_impersonation_cookie
from backend.app.core.dependencies import get_identity
from backend.app.core.exceptions import ResourceNotFoundError
from backend.app.core.guards import require_real_admin
from backend.app.core.identity import Identity, UserIdentity
from backend.app.db.session import get_db
from backend.app.schemas.auth import IdentityUserResponse, ImpersonationResponse
from backend.app.services import user_service
from backend.app.services.audit import AuditAction, log_admin_action

logger = logging.getLogger("checklist.auth")

router = APIRouter(prefix="/api/impersonate", tags=["Impersonation"])


@router.post("/stop", response_model=ImpersonationResponse)
async def stop_impersonation(
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db)
):
    """Clear the impersonation cookie, whoever is effectively active."""
    if identity.is_impersonating:
        await log_admin_action(
            db, identity.real, AuditAction.IMPERSONATION_STOPPED,
            target_user_id=identity.effective.id, target_email=identity.effective.email,
        )
    response = JSONResponse(content=ImpersonationResponse(success=True).model_dump(mode="json"))
    clear_impersonation_cookie(response)
    return response


@router.post("/{user_id}", response_model=ImpersonationResponse)
async def start_impersonation(
    user_id: int,
    identity: Identity = Depends(require_real_admin),
    db: AsyncSession = Depends(get_db)
):
    """Act as ``user_id`` for the next hour."""
    target = await user_service.get_user(db, user_id)
    if target is None:
        raise ResourceNotFoundError("User", user_id)

    await log_admin_action(
        db, identity.real, AuditAction.IMPERSONATION_STARTED,
        target_user_id=target.id, target_email=target.email,
    )
    logger.info("Admin %s started impersonating %s", identity.real.email, target.email)

    body = ImpersonationResponse(
        success=True,
        impersonating=IdentityUserResponse.model_validate(UserIdentity.from_user(target)),
    )
    response = JSONResponse(content=body.model_dump(mode="json"))
    set_impersonation_cookie(response, target.id)
    return response
