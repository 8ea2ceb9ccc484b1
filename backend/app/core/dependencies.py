"""
Authentication dependencies for FastAPI.

``get_identity`` resolves the caller from the ``auth_token`` cookie and is
the single entry point of the authentication gate. Role checks in
``guards`` build on top of it.
"""

import logging
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.cookies import IMPERSONATION_COOKIE, SESSION_COOKIE
from backend.app.core.exceptions import (
    AuthenticationBackendError,
    NotAuthenticatedError,
    PendingApprovalError,
)
from backend.app.core.identity import Identity, ImpersonatedIdentity, RealIdentity, UserIdentity
from backend.app.core.tokens import is_valid_format
from backend.app.db.session import get_db
from backend.app.models.enums import UserRole
from backend.app.models.user import User
from backend.app.services import session_store

logger = logging.getLogger("checklist.auth")

AUTH_PATH_PREFIX = "/auth/"


def _parse_user_id(raw: Optional[str]) -> Optional[int]:
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


async def _impersonation_target(db: AsyncSession, raw_user_id: Optional[str]) -> Optional[User]:
    target_id = _parse_user_id(raw_user_id)
    if target_id is None:
        return None
    result = await db.execute(select(User).where(User.id == target_id))
    return result.scalar_one_or_none()


async def resolve_identity(request: Request, db: AsyncSession) -> Identity:
    """
    Run the authentication gate for one request.

    Order of checks:
    1. session cookie present
    2. token well formed (no lookup otherwise)
    3. live session found
    4. admin impersonation override
    5. pending gate (auth paths excepted)

    Raises:
        NotAuthenticatedError: steps 1 to 3 failed
        PendingApprovalError: caller's real role is Pending
        AuthenticationBackendError: persistence failed while resolving
    """
    token = request.cookies.get(SESSION_COOKIE)
    if not token:
        raise NotAuthenticatedError()

    if not is_valid_format(token):
        logger.info("Rejected malformed session token on %s", request.url.path)
        raise NotAuthenticatedError()

    try:
        view = await session_store.get_session(db, token)
        if view is None:
            raise NotAuthenticatedError()

        real = UserIdentity(
            id=view.user_id,
            email=view.email,
            display_name=view.display_name,
            role=view.role,
            is_approved=view.is_approved,
            is_active=view.is_active,
            delegated_access_token=view.delegated_access_token,
        )
        identity: Identity = RealIdentity(real)

        if real.role == UserRole.ADMIN:
            target = await _impersonation_target(db, request.cookies.get(IMPERSONATION_COOKIE))
            if target is not None:
                effective = UserIdentity.from_user(target, real.delegated_access_token)
                identity = ImpersonatedIdentity(real_user=real, effective_user=effective)
    except SQLAlchemyError as exc:
        logger.error("Session resolution failed: %s", exc)
        raise AuthenticationBackendError() from exc

    await session_store.touch_session(db, view.session_id)

    if real.role == UserRole.PENDING and not request.url.path.startswith(AUTH_PATH_PREFIX):
        raise PendingApprovalError()

    request.state.identity = identity
    return identity


async def get_identity(request: Request, db: AsyncSession = Depends(get_db)) -> Identity:
    """FastAPI dependency returning the resolved ``Identity``."""
    return await resolve_identity(request, db)
