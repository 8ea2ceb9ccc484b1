"""
Server-side session store.

Sessions are rows keyed by an opaque token. A user has at most one live
session: ``create_session`` removes every earlier session of the user
before inserting the new one. The delete and the insert are not serialized
against a concurrent login of the same user; two racing logins can both
end up with a row until the next login or sweep.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy import select, delete, update, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.app.core.clock import utcnow
from backend.app.core.config import settings
from backend.app.core.tokens import generate_session_token
from backend.app.models.enums import UserRole
from backend.app.models.session import AuthSession
from backend.app.models.user import User

logger = logging.getLogger("checklist.sessions")


@dataclass(frozen=True)
class DelegatedTokens:
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None


@dataclass(frozen=True)
class IssuedSession:
    session_id: int
    token: str
    expires_at: datetime


@dataclass(frozen=True)
class SessionView:
    """A live session joined with its owning user."""
    session_id: int
    token: str
    expires_at: datetime
    delegated_access_token: Optional[str]
    delegated_refresh_token: Optional[str]
    user_id: int
    email: str
    display_name: str
    role: UserRole
    is_approved: bool
    is_active: bool


def _token_hint(token: str) -> str:
    return f"{token[:12]}..."


async def create_session(
    db: AsyncSession,
    user_id: int,
    delegated: Optional[DelegatedTokens] = None,
) -> IssuedSession:
    """
    Replace every session of ``user_id`` with a fresh one.

    Other browsers logged in as the same user are signed out on their next
    request.
    """
    delegated = delegated or DelegatedTokens()

    removed = await db.execute(delete(AuthSession).where(AuthSession.user_id == user_id))

    token = generate_session_token(user_id)
    expires_at = utcnow() + timedelta(hours=settings.session_ttl_hours)
    row = AuthSession(
        token=token,
        user_id=user_id,
        expires_at=expires_at,
        delegated_access_token=delegated.access_token,
        delegated_refresh_token=delegated.refresh_token,
        last_activity=utcnow(),
    )
    db.add(row)
    await db.commit()

    if removed.rowcount:
        logger.info("Replaced %s earlier session(s) for user %s", removed.rowcount, user_id)
    logger.info("Session created for user %s (%s)", user_id, _token_hint(token))
    return IssuedSession(session_id=row.id, token=token, expires_at=expires_at)


async def get_session(db: AsyncSession, token: str) -> Optional[SessionView]:
    """
    Resolve a token to a live session.

    Returns None for unknown, expired or revoked tokens and for sessions of
    deactivated users.
    """
    query = (
        select(AuthSession, User)
        .join(User, User.id == AuthSession.user_id)
        .where(
            AuthSession.token == token,
            AuthSession.expires_at > utcnow(),
            User.is_active.is_(True),
        )
    )
    row = (await db.execute(query)).first()
    if row is None:
        return None

    auth_session, user = row
    return SessionView(
        session_id=auth_session.id,
        token=auth_session.token,
        expires_at=auth_session.expires_at,
        delegated_access_token=auth_session.delegated_access_token,
        delegated_refresh_token=auth_session.delegated_refresh_token,
        user_id=user.id,
        email=user.email,
        display_name=user.display_name,
        role=UserRole(user.role),
        is_approved=bool(user.is_approved),
        is_active=bool(user.is_active),
    )


async def touch_session(db: AsyncSession, session_id: int) -> None:
    """Best-effort ``last_activity`` update; never raises."""
    try:
        await db.execute(
            update(AuthSession)
            .where(AuthSession.id == session_id)
            .values(last_activity=utcnow())
        )
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.warning("Could not update activity for session %s: %s", session_id, exc)


async def delete_session(db: AsyncSession, token: str) -> int:
    """Remove a session by token. Unknown tokens are not an error."""
    result = await db.execute(delete(AuthSession).where(AuthSession.token == token))
    await db.commit()
    return result.rowcount or 0


async def delete_session_by_id(db: AsyncSession, session_id: int) -> int:
    result = await db.execute(delete(AuthSession).where(AuthSession.id == session_id))
    await db.commit()
    return result.rowcount or 0


async def delete_user_sessions(db: AsyncSession, user_id: int) -> int:
    result = await db.execute(delete(AuthSession).where(AuthSession.user_id == user_id))
    await db.commit()
    return result.rowcount or 0


async def cleanup_expired_sessions(db: AsyncSession) -> int:
    """Delete every session whose expiry lies in the past."""
    result = await db.execute(delete(AuthSession).where(AuthSession.expires_at < utcnow()))
    await db.commit()
    count = result.rowcount or 0
    if count:
        logger.info("Cleaned up %s expired session(s)", count)
    return count


async def list_active_sessions(db: AsyncSession) -> List[Dict]:
    """
    Live sessions with their user and the user's live session count.

    A ``session_count`` above one means the single-session rule was raced.
    """
    now = utcnow()
    counts = (
        select(AuthSession.user_id, func.count(AuthSession.id).label("session_count"))
        .where(AuthSession.expires_at > now)
        .group_by(AuthSession.user_id)
        .subquery()
    )
    query = (
        select(AuthSession, User, counts.c.session_count)
        .join(User, User.id == AuthSession.user_id)
        .join(counts, counts.c.user_id == AuthSession.user_id)
        .where(AuthSession.expires_at > now)
        .order_by(AuthSession.created_at.desc(), AuthSession.id.desc())
    )
    rows = (await db.execute(query)).all()

    return [
        {
            "id": auth_session.id,
            "token_preview": _token_hint(auth_session.token),
            "user_id": user.id,
            "email": user.email,
            "display_name": user.display_name,
            "role": UserRole(user.role),
            "created_at": auth_session.created_at,
            "last_activity": auth_session.last_activity,
            "expires_at": auth_session.expires_at,
            "session_count": session_count,
        }
        for auth_session, user, session_count in rows
    ]


async def list_sessions_by_user(db: AsyncSession) -> List[Dict]:
    """Live sessions grouped per user, users ordered by email."""
    grouped: Dict[int, Dict] = {}
    for entry in await list_active_sessions(db):
        group = grouped.setdefault(entry["user_id"], {
            "user_id": entry["user_id"],
            "email": entry["email"],
            "display_name": entry["display_name"],
            "role": entry["role"],
            "session_count": entry["session_count"],
            "sessions": [],
        })
        group["sessions"].append({
            "id": entry["id"],
            "token_preview": entry["token_preview"],
            "created_at": entry["created_at"],
            "last_activity": entry["last_activity"],
            "expires_at": entry["expires_at"],
        })
    return sorted(grouped.values(), key=lambda group: group["email"])


async def run_periodic_cleanup(session_factory: async_sessionmaker, interval_seconds: float) -> None:
    """
    Sweep expired sessions every ``interval_seconds`` until cancelled.

    A failed sweep is logged and the loop carries on.
    """
    while True:
        try:
            await asyncio.sleep(interval_seconds)
            async with session_factory() as db:
                await cleanup_expired_sessions(db)
        except asyncio.CancelledError:
            break
        except Exception:
            logger.exception("Expired session cleanup failed")
