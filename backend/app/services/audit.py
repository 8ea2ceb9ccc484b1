"""
Audit logging service for tracking security events and admin actions.

Provides centralized logging for compliance and security monitoring.
"""

from typing import Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
from backend.app.models.audit_log import AuditLog


# Audit event constants
class AuditAction:
    """Standardized audit action constants."""
    LOGIN_SUCCESS = "LOGIN_SUCCESS"
    LOGIN_FAILED = "LOGIN_FAILED"
    LOGOUT = "LOGOUT"

    # Session administration
    SESSION_TERMINATED = "SESSION_TERMINATED"
    USER_SESSIONS_TERMINATED = "USER_SESSIONS_TERMINATED"
    SESSIONS_CLEANED = "SESSIONS_CLEANED"

    IMPERSONATION_STARTED = "IMPERSONATION_STARTED"
    IMPERSONATION_STOPPED = "IMPERSONATION_STOPPED"

    # User management
    USER_CREATED = "USER_CREATED"
    ROLE_CHANGED = "ROLE_CHANGED"
    USER_ACTIVATED = "USER_ACTIVATED"
    USER_DEACTIVATED = "USER_DEACTIVATED"

    # Checklists
    CHECKLIST_SUBMITTED = "CHECKLIST_SUBMITTED"
    CHECKLIST_DELETED = "CHECKLIST_DELETED"

    SETTING_CHANGED = "SETTING_CHANGED"


async def log_event(
    db: AsyncSession,
    action: str,
    actor_id: Optional[int] = None,
    actor_email: Optional[str] = None,
    target_user_id: Optional[int] = None,
    target_email: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None
) -> AuditLog:
    """
    Log a security or admin event to the audit log.

    Args:
        db: Database session
        action: Action being performed (use AuditAction constants)
        actor_id: ID of user performing the action
        actor_email: Email of actor
        target_user_id: ID of user being acted upon (if applicable)
        target_email: Email of target
        metadata: Additional context as JSON
        ip_address: IP address of the request

    Returns:
        Created AuditLog instance
    """
    audit_log = AuditLog(
        actor_id=actor_id,
        actor_email=actor_email,
        action=action,
        target_user_id=target_user_id,
        target_email=target_email,
        meta_data=metadata,
        ip_address=ip_address
    )

    db.add(audit_log)
    await db.commit()
    await db.refresh(audit_log)

    return audit_log


async def log_admin_action(
    db: AsyncSession,
    admin,
    action: str,
    target_user_id: Optional[int] = None,
    target_email: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None
) -> AuditLog:
    """
    Log an action taken by a logged-in administrator.

    ``admin`` is the real ``UserIdentity``, never the impersonated one.
    """
    return await log_event(
        db=db,
        action=action,
        actor_id=admin.id,
        actor_email=admin.email,
        target_user_id=target_user_id,
        target_email=target_email,
        metadata=metadata
    )


async def log_auth_event(
    db: AsyncSession,
    action: str,
    user_id: Optional[int],
    email: Optional[str],
    ip_address: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None
) -> AuditLog:
    """
    Log an authentication event (login success/failure, logout).

    Args:
        db: Database session
        action: AuditAction.LOGIN_SUCCESS, LOGIN_FAILED or LOGOUT
        user_id: ID of user, when known
        email: Email of user, when known
        ip_address: IP address of the request
        metadata: Additional context (e.g., failure reason)

    Returns:
        Created AuditLog instance
    """
    return await log_event(
        db=db,
        action=action,
        actor_id=user_id,
        actor_email=email,
        ip_address=ip_address,
        metadata=metadata
    )


async def get_audit_trail(
    db: AsyncSession,
    target_user_id: Optional[int] = None,
    action: Optional[str] = None,
    limit: int = 100
) -> list[AuditLog]:
    """
    Retrieve audit trail with optional filtering.

    Returns:
        List of AuditLog instances, most recent first
    """
    query = select(AuditLog).order_by(desc(AuditLog.timestamp), desc(AuditLog.id))

    if target_user_id:
        query = query.where(AuditLog.target_user_id == target_user_id)

    if action:
        query = query.where(AuditLog.action == action)

    query = query.limit(limit)

    result = await db.execute(query)
    return result.scalars().all()
