"""
Authentication endpoints.

Login is delegated to the Microsoft identity platform. The callback turns a
provider login into a local user and a server-side session cookie.
"""

import logging
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.cookies import (
    SESSION_COOKIE,
    clear_impersonation_cookie,
    clear_session_cookie,
    set_session_cookie,
)
from backend.app.core.dependencies import get_identity
from backend.app.core.identity import Identity
from backend.app.core.tokens import is_valid_format
from backend.app.db.session import get_db
from backend.app.models.enums import UserRole
from backend.app.schemas.auth import (
    AuthConfigResponse,
    IdentityUserResponse,
    LoginErrorResponse,
    PendingApprovalResponse,
    SessionInfoResponse,
)
from backend.app.services import session_store, user_service
from backend.app.services.audit import AuditAction, log_auth_event
from backend.app.services.identity_provider import (
    IdentityProviderClient,
    IdentityProviderError,
    get_identity_provider,
)

logger = logging.getLogger("checklist.auth")

router = APIRouter(prefix="/auth", tags=["Authentication"])

DEFAULT_LANDING = "/dashboard"

LOGIN_ERRORS = {
    "no_code": "The sign-in response carried no authorization code.",
    "auth_failed": "Sign-in with the identity provider failed.",
    "account_disabled": "Your account has been deactivated.",
}


def is_safe_return_url(url: Optional[str]) -> bool:
    """Only same-site relative paths are followed after login."""
    return bool(url) and url.startswith("/") and not url.startswith("//") and "\\" not in url


def _client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


def _login_error_redirect(error: str) -> RedirectResponse:
    return RedirectResponse(f"/auth/login?error={error}", status_code=status.HTTP_302_FOUND)


@router.get("/login")
async def login(
    return_url: Optional[str] = Query(None, alias="returnUrl"),
    error: Optional[str] = Query(None),
    provider: IdentityProviderClient = Depends(get_identity_provider),
):
    """
    Start a login.

    Without ``error`` the browser is sent to the identity provider, carrying
    the return URL as ``state``. With ``error`` the failure is reported
    together with the URL that starts a fresh attempt.
    """
    state = return_url if is_safe_return_url(return_url) else None

    if error:
        login_url = "/auth/login"
        if state:
            login_url = f"{login_url}?returnUrl={quote(state, safe='')}"
        body = LoginErrorResponse(
            error=error,
            message=LOGIN_ERRORS.get(error, "Sign-in failed."),
            login_url=login_url,
        )
        return JSONResponse(status_code=status.HTTP_401_UNAUTHORIZED, content=body.model_dump())

    return RedirectResponse(provider.authorize_url(state), status_code=status.HTTP_302_FOUND)


@router.get("/config", response_model=AuthConfigResponse)
async def auth_config(provider: IdentityProviderClient = Depends(get_identity_provider)):
    """Public identity-provider settings for the browser."""
    return AuthConfigResponse(**provider.public_config())


@router.get("/callback")
async def callback(
    request: Request,
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    provider: IdentityProviderClient = Depends(get_identity_provider),
):
    """
    Identity-provider redirect target.

    Exchanges the code, resolves the local user (subject id, then email,
    then create) and replaces the user's session with a new one.
    """
    if not code:
        logger.warning("Callback without authorization code")
        return _login_error_redirect("no_code")

    try:
        tokens = await provider.exchange_code(code)
        profile = await provider.fetch_profile(tokens.access_token)
    except IdentityProviderError as exc:
        logger.warning("Login failed at identity provider: %s", exc)
        await log_auth_event(
            db, AuditAction.LOGIN_FAILED, None, None,
            ip_address=_client_ip(request), metadata={"reason": str(exc)},
        )
        return _login_error_redirect("auth_failed")

    try:
        user = await user_service.resolve_login_user(db, profile)
        if not user.is_active:
            logger.info("Login refused for deactivated user %s", user.email)
            return _login_error_redirect("account_disabled")

        issued = await session_store.create_session(
            db,
            user.id,
            session_store.DelegatedTokens(
                access_token=tokens.access_token,
                refresh_token=tokens.refresh_token,
            ),
        )
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Could not complete login for %s", profile.email)
        return _login_error_redirect("auth_failed")

    await log_auth_event(
        db, AuditAction.LOGIN_SUCCESS, user.id, user.email,
        ip_address=_client_ip(request), metadata={"role": user.role.value},
    )
    logger.info("User logged in: %s", user.email)

    target = state if is_safe_return_url(state) else DEFAULT_LANDING
    response = RedirectResponse(target, status_code=status.HTTP_302_FOUND)
    set_session_cookie(response, issued.token)
    clear_impersonation_cookie(response)
    return response


@router.get("/logout")
async def logout(request: Request, db: AsyncSession = Depends(get_db)):
    """End the current session. Safe to call without a session."""
    token = request.cookies.get(SESSION_COOKIE)

    if token and is_valid_format(token):
        view = await session_store.get_session(db, token)
        await session_store.delete_session(db, token)
        if view is not None:
            await log_auth_event(
                db, AuditAction.LOGOUT, view.user_id, view.email, ip_address=_client_ip(request),
            )
            logger.info("User logged out: %s", view.email)

    response = RedirectResponse("/auth/login", status_code=status.HTTP_302_FOUND)
    clear_session_cookie(response)
    clear_impersonation_cookie(response)
    return response


@router.get("/pending", response_model=PendingApprovalResponse)
async def pending(identity: Identity = Depends(get_identity)):
    """Holding page for users whose role is still Pending."""
    if identity.real.role != UserRole.PENDING:
        return RedirectResponse(DEFAULT_LANDING, status_code=status.HTTP_302_FOUND)

    return PendingApprovalResponse(
        status="pending",
        message="Your account is awaiting approval by an administrator.",
        email=identity.real.email,
        display_name=identity.real.display_name,
    )


@router.get("/session", response_model=SessionInfoResponse)
async def session_info(identity: Identity = Depends(get_identity)):
    """The logged-in user and the user they are currently acting as."""
    return SessionInfoResponse(
        user=IdentityUserResponse.model_validate(identity.effective),
        real_user=IdentityUserResponse.model_validate(identity.real),
        is_impersonating=identity.is_impersonating,
    )
