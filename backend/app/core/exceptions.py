"""
Custom exceptions and error handlers for consistent error responses.

Provides standardized error codes and global exception handlers. Errors
raised by the authentication and authorization gates are answered
differently for API paths (JSON) and browser paths (redirect or HTML).
"""

import html
import logging
from typing import Any, Dict, Iterable
from urllib.parse import quote

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from starlette.exceptions import HTTPException

from backend.app.models.enums import UserRole

logger = logging.getLogger("checklist")

API_PREFIX = "/api/"
LOGIN_PATH = "/auth/login"
PENDING_PATH = "/auth/pending"


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class NotAuthenticatedError(AppException):
    """Missing, malformed, expired or unknown session token."""

    def __init__(self, message: str = "Not authenticated"):
        super().__init__(
            message=message,
            error_code="ERR_AUTH_001",
            status_code=status.HTTP_401_UNAUTHORIZED,
        )


class PendingApprovalError(AppException):
    """Authenticated user whose role is still Pending."""

    def __init__(self):
        super().__init__(
            message="Your account is awaiting approval",
            error_code="ERR_AUTH_003",
            status_code=status.HTTP_403_FORBIDDEN,
        )


class AuthenticationBackendError(AppException):
    """Persistence failure while resolving the caller's session."""

    def __init__(self, message: str = "Authentication error"):
        super().__init__(
            message=message,
            error_code="ERR_AUTH_500",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )


class RoleForbiddenError(AppException):
    """Authenticated caller whose role is not in the allowed set."""

    def __init__(self, required_roles: Iterable[UserRole], actual_role: UserRole):
        required = UserRole.describe(required_roles)
        self.required = required
        self.actual = actual_role.value
        super().__init__(
            message="Access denied",
            error_code="ERR_PERM_001",
            status_code=status.HTTP_403_FORBIDDEN,
            details={"required_roles": required, "actual_role": actual_role.value},
        )


class InsufficientPermissionsError(AppException):
    """Raised when user doesn't have permission to perform an action."""

    def __init__(self, message: str = "Insufficient permissions", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_PERM_002",
            status_code=status.HTTP_403_FORBIDDEN,
            details=details
        )


class ValidationFailedError(AppException):
    """Malformed submission rejected before any scoring or persistence."""

    def __init__(self, message: str, details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_VALIDATION_001",
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details
        )


class ResourceNotFoundError(AppException):
    """Raised when requested resource is not found."""

    def __init__(self, resource: str, resource_id: Any = None):
        message = f"{resource} not found"
        if resource_id is not None:
            message = f"{resource} with ID {resource_id} not found"
        super().__init__(
            message=message,
            error_code="ERR_NOT_FOUND_001",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "id": resource_id}
        )


class ConflictError(AppException):
    """Raised when a write would violate a uniqueness rule."""

    def __init__(self, message: str, details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_CONFLICT_001",
            status_code=status.HTTP_409_CONFLICT,
            details=details
        )


def is_api_path(path: str) -> bool:
    return path.startswith(API_PREFIX)


def login_redirect_url(request: Request) -> str:
    target = request.url.path
    if request.url.query:
        target = f"{target}?{request.url.query}"
    return f"{LOGIN_PATH}?returnUrl={quote(target, safe='')}"


def _error_body(exc: AppException) -> Dict[str, Any]:
    return {
        "error_code": exc.error_code,
        "message": exc.message,
        "details": exc.details
    }


# Global Exception Handlers

async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handler for custom application exceptions."""
    if exc.status_code >= 500:
        logger.error("%s on %s: %s", exc.error_code, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc))


async def not_authenticated_handler(request: Request, exc: NotAuthenticatedError):
    """401 JSON for API callers, login redirect for browsers."""
    if is_api_path(request.url.path):
        return JSONResponse(status_code=exc.status_code, content=_error_body(exc))
    return RedirectResponse(login_redirect_url(request), status_code=status.HTTP_302_FOUND)


async def pending_approval_handler(request: Request, exc: PendingApprovalError):
    """Pending users are parked on the pending-approval page, API calls included."""
    return RedirectResponse(PENDING_PATH, status_code=status.HTTP_302_FOUND)


async def role_forbidden_handler(request: Request, exc: RoleForbiddenError):
    """403 naming the required role(s) and the caller's actual role."""
    if is_api_path(request.url.path):
        return JSONResponse(status_code=exc.status_code, content=_error_body(exc))
    page = (
        "<!DOCTYPE html><html><head><title>Access Denied</title></head><body>"
        "<h1>Access Denied</h1>"
        "<p>You don't have permission to access this page.</p>"
        f"<p>Required role: {html.escape(exc.required)}</p>"
        f"<p>Your role: {html.escape(exc.actual)}</p>"
        '<p><a href="/dashboard">Back to dashboard</a></p>'
        "</body></html>"
    )
    return HTMLResponse(page, status_code=exc.status_code)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handler for FastAPI HTTPException with standardized format."""
    # Map status code to error code
    error_code_map = {
        400: "ERR_BAD_REQUEST",
        401: "ERR_UNAUTHORIZED",
        403: "ERR_FORBIDDEN",
        404: "ERR_NOT_FOUND",
        405: "ERR_METHOD_NOT_ALLOWED",
        500: "ERR_INTERNAL_SERVER"
    }

    error_code = error_code_map.get(exc.status_code, "ERR_UNKNOWN")

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": error_code,
            "message": exc.detail,
            "details": {}
        },
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handler for Pydantic validation errors."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error_code": "ERR_VALIDATION",
            "message": "Validation error",
            "details": {
                "errors": jsonable_errors(exc)
            }
        }
    )


def jsonable_errors(exc: RequestValidationError):
    # ctx may carry exception instances that JSON cannot encode
    errors = []
    for error in exc.errors():
        error = dict(error)
        if "ctx" in error:
            error["ctx"] = {key: str(value) for key, value in error["ctx"].items()}
        errors.append(error)
    return errors


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "ERR_INTERNAL_SERVER",
            "message": "An internal server error occurred",
            "details": {}
        }
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(NotAuthenticatedError, not_authenticated_handler)
    app.add_exception_handler(PendingApprovalError, pending_approval_handler)
    app.add_exception_handler(RoleForbiddenError, role_forbidden_handler)
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
