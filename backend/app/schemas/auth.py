"""
Authentication Schema Definitions.
"""

from pydantic import BaseModel
from typing import Optional, List
from backend.app.models.enums import UserRole


class IdentityUserResponse(BaseModel):
    id: int
    email: str
    display_name: str
    role: UserRole
    is_approved: bool
    is_active: bool

    class Config:
        from_attributes = True


class SessionInfoResponse(BaseModel):
    """Who is logged in and who they are acting as."""
    user: IdentityUserResponse
    real_user: IdentityUserResponse
    is_impersonating: bool


class AuthConfigResponse(BaseModel):
    client_id: str
    tenant_id: str
    authority: str
    redirect_uri: str
    scopes: List[str]


class LoginErrorResponse(BaseModel):
    error: str
    message: str
    login_url: str


class PendingApprovalResponse(BaseModel):
    status: str
    message: str
    email: str
    display_name: str


class ImpersonationResponse(BaseModel):
    success: bool
    impersonating: Optional[IdentityUserResponse] = None
