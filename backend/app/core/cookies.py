"""Cookie names and helpers for the session and impersonation cookies."""

from fastapi import Response

from backend.app.core.config import settings

SESSION_COOKIE = "auth_token"
IMPERSONATION_COOKIE = "impersonate_user"


def _cookie_kwargs() -> dict:
    return {
        "httponly": True,
        "secure": settings.is_production,
        "samesite": "lax",
        "path": "/",
    }


def set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        SESSION_COOKIE,
        token,
        max_age=settings.session_ttl_hours * 3600,
        **_cookie_kwargs(),
    )


def set_impersonation_cookie(response: Response, user_id: int) -> None:
    response.set_cookie(
        IMPERSONATION_COOKIE,
        str(user_id),
        max_age=settings.impersonation_ttl_minutes * 60,
        **_cookie_kwargs(),
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(SESSION_COOKIE, **_cookie_kwargs())


def clear_impersonation_cookie(response: Response) -> None:
    response.delete_cookie(IMPERSONATION_COOKIE, **_cookie_kwargs())
