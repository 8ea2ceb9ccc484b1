"""
User resolution at login and user administration.
"""

import logging
from typing import Dict, List, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.clock import utcnow
from backend.app.core.config import settings
from backend.app.core.exceptions import ConflictError, ResourceNotFoundError
from backend.app.models.enums import UserRole
from backend.app.models.user import User
from backend.app.services.identity_provider import IdentityProfile

logger = logging.getLogger("checklist.auth")


def _normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def is_admin_email(email: str) -> bool:
    configured = _normalize_email(settings.admin_email)
    return bool(configured) and _normalize_email(email) == configured


async def get_user(db: AsyncSession, user_id: int) -> Optional[User]:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    result = await db.execute(select(User).where(func.lower(User.email) == _normalize_email(email)))
    return result.scalar_one_or_none()


async def get_user_by_external_id(db: AsyncSession, external_id: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.external_id == external_id))
    return result.scalar_one_or_none()


async def resolve_login_user(db: AsyncSession, profile: IdentityProfile) -> User:
    """
    Find or create the local user for an identity-provider profile.

    Matches on the provider's subject id first, then on email. New users
    start as Pending, except the configured admin mailbox which starts as an
    approved Admin.
    """
    email = _normalize_email(profile.email)

    user = await get_user_by_external_id(db, profile.external_id)
    if user is None:
        user = await get_user_by_email(db, email)

    if user is not None:
        if user.email != email and await get_user_by_email(db, email) is None:
            logger.info("User %s email changed to %s", user.id, email)
            user.email = email
        user.external_id = profile.external_id
        user.display_name = profile.display_name
        user.last_login_at = utcnow()
        await db.commit()
        await db.refresh(user)
        return user

    admin = is_admin_email(email)
    user = User(
        email=email,
        display_name=profile.display_name,
        external_id=profile.external_id,
        role=UserRole.ADMIN if admin else UserRole.PENDING,
        is_approved=admin,
        is_active=True,
        last_login_at=utcnow(),
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    logger.info("New user %s registered as %s", email, user.role.value)
    return user


async def list_users(db: AsyncSession, role: Optional[UserRole] = None) -> List[User]:
    query = select(User).order_by(User.display_name, User.id)
    if role is not None:
        query = query.where(User.role == role)
    result = await db.execute(query)
    return result.scalars().all()


async def update_role(db: AsyncSession, user_id: int, role: UserRole) -> User:
    """Change a user's role; any role other than Pending counts as approved."""
    user = await get_user(db, user_id)
    if user is None:
        raise ResourceNotFoundError("User", user_id)

    user.role = role
    user.is_approved = role != UserRole.PENDING
    await db.commit()
    await db.refresh(user)
    return user


async def toggle_active(db: AsyncSession, user_id: int) -> User:
    user = await get_user(db, user_id)
    if user is None:
        raise ResourceNotFoundError("User", user_id)

    user.is_active = not user.is_active
    await db.commit()
    await db.refresh(user)
    return user


async def create_user(db: AsyncSession, email: str, display_name: str, role: UserRole) -> User:
    """
    Add a user ahead of their first login.

    Raises:
        ConflictError: a user with this email already exists
    """
    email = _normalize_email(email)
    if await get_user_by_email(db, email) is not None:
        raise ConflictError("User with this email already exists", details={"email": email})

    user = User(
        email=email,
        display_name=display_name,
        role=role,
        is_approved=role != UserRole.PENDING,
        is_active=True,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    logger.info("Created user %s as %s", email, role.value)
    return user


async def bulk_import(db: AsyncSession, entries: List[Dict]) -> Dict:
    """
    Create many users; existing emails are skipped, bad rows reported.

    Each entry carries ``email``, ``display_name`` and an optional ``role``
    (defaults to AreaManager).
    """
    results = {"added": 0, "skipped": 0, "errors": []}

    for entry in entries:
        email = entry.get("email")
        display_name = entry.get("display_name")
        if not email or not display_name:
            results["errors"].append(f"Invalid user data: {entry}")
            continue

        try:
            role = UserRole(entry.get("role") or UserRole.AREA_MANAGER)
        except ValueError:
            results["errors"].append(f"{email}: unknown role {entry.get('role')!r}")
            continue

        try:
            await create_user(db, email, display_name, role)
            results["added"] += 1
        except ConflictError:
            results["skipped"] += 1

    logger.info(
        "Bulk import complete: %s added, %s skipped, %s errors",
        results["added"], results["skipped"], len(results["errors"]),
    )
    return results
